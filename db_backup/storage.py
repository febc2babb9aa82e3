# db_backup/storage.py
import abc
import os
import shutil
from typing import Optional

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from .errors import UploadError
from .logger import get_logger
from .models import Settings

logger = get_logger(__name__)


class StorageProvider(abc.ABC):
    @abc.abstractmethod
    def save(self, source_path: str, destination_path: str) -> None:
        pass

    @abc.abstractmethod
    def describe(self, destination_path: str) -> str:
        """Location of an object, for log messages."""


class LocalStorage(StorageProvider):
    def __init__(self, base_path: str):
        self.base_path = base_path

    def save(self, source_path: str, destination_path: str) -> None:
        final_destination = os.path.join(self.base_path, destination_path)
        try:
            os.makedirs(os.path.dirname(final_destination), exist_ok=True)
            shutil.copyfile(source_path, final_destination)
        except OSError as e:
            raise UploadError(source_path, e.errno, str(e), tool="copy") from e

    def describe(self, destination_path: str) -> str:
        return os.path.join(self.base_path, destination_path)


class S3Storage(StorageProvider):
    def __init__(
        self,
        bucket: Optional[str],
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        region: Optional[str] = None,
    ):
        # "bucket/some/prefix" behaves like s3://bucket/some/prefix
        self.bucket, _, self.prefix = (bucket or "").partition("/")
        self.prefix = self.prefix.strip("/")
        self.s3_client = boto3.client(
            's3',
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=access_key or None,
            aws_secret_access_key=secret_key or None,
            config=Config(signature_version='s3v4')
        )

    def object_key(self, destination_path: str) -> str:
        if self.prefix:
            return f"{self.prefix}/{destination_path}"
        return destination_path

    def save(self, source_path: str, destination_path: str) -> None:
        if not self.bucket:
            raise UploadError(source_path, None, "S3_BUCKET is not configured", tool="s3")

        try:
            self.s3_client.upload_file(source_path, self.bucket, self.object_key(destination_path))
        except ClientError as e:
            status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            raise UploadError(source_path, status, str(e), tool="s3") from e
        except (S3UploadFailedError, BotoCoreError) as e:
            raise UploadError(source_path, None, str(e), tool="s3") from e

    def describe(self, destination_path: str) -> str:
        return f"s3://{self.bucket}/{self.object_key(destination_path)}"


def get_storage_provider(settings: Settings) -> StorageProvider:
    storage_config = settings.storage
    if storage_config.type == "s3":
        s3 = storage_config.s3
        return S3Storage(
            bucket=s3.bucket,
            access_key=s3.access_key,
            secret_key=s3.secret_key,
            endpoint_url=s3.endpoint_url,
            region=s3.region,
        )
    if storage_config.type == "local":
        return LocalStorage(base_path=storage_config.base_path)
    raise ValueError(f"Unsupported storage type: {storage_config.type}")
