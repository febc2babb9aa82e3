from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class DatabaseKind(str, Enum):
    MYSQL = "mysql"
    POSTGRES = "pg"


class ServerConfig(BaseModel):
    kind: DatabaseKind
    host: Optional[str] = None
    port: int
    username: str
    password: Optional[str] = None

    @property
    def active(self) -> bool:
        return bool(self.host)


class S3Config(BaseModel):
    bucket: Optional[str] = None
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    endpoint_url: Optional[str] = None
    region: Optional[str] = None


class StorageConfig(BaseModel):
    type: str = "s3"
    base_path: str = "data"
    s3: S3Config = Field(default_factory=S3Config)


class Settings(BaseModel):
    schedule: str = "0 0 0 * * *"
    timezone: str = "UTC"
    storage: StorageConfig = Field(default_factory=StorageConfig)
    postgres: ServerConfig = Field(
        default_factory=lambda: ServerConfig(kind=DatabaseKind.POSTGRES, port=5432, username="postgres")
    )
    mysql: ServerConfig = Field(
        default_factory=lambda: ServerConfig(kind=DatabaseKind.MYSQL, port=3306, username="root")
    )
    tmp_dir: Optional[str] = None
    failed_upload_dir: Optional[str] = None
    metrics_port: Optional[int] = None

    def servers(self):
        """Servers in the order a cycle processes them."""
        return [self.mysql, self.postgres]


class BackupResult(BaseModel):
    database: str
    kind: DatabaseKind
    status: str = "running"
    remote_key: Optional[str] = None
    size_bytes: Optional[int] = None
    duration_seconds: Optional[float] = None
    error: Optional[str] = None
    error_summary: Optional[str] = None
