"""
Pytest fixtures shared by the test suite.

External tools are never executed: FakeRunner records every invocation and
simulates psql, mysql, pg_dump, mysqldump and gzip on the local filesystem.
"""

import gzip
import os
import shutil
from typing import Dict, List, Optional

import pytest

from db_backup.errors import UploadError
from db_backup.models import DatabaseKind, S3Config, ServerConfig, Settings, StorageConfig
from db_backup.runner import CommandResult, CommandRunner
from db_backup.storage import StorageProvider


# =============================================================================
# Fakes
# =============================================================================

class FakeRunner(CommandRunner):
    """Records invocations; scripted results override the simulated tool behaviour."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.scripted: List[tuple] = []
        self.listings: Dict[str, str] = {}

    def on(self, tool: str, returncode: int = 0, stdout: str = "", stderr: str = "", database: Optional[str] = None):
        self.scripted.append((tool, database, CommandResult(returncode, stdout, stderr)))
        return self

    def list_returns(self, tool: str, names: List[str], header: str = "datname"):
        """Scripts a database listing with a header row and the trailing empty line."""
        self.listings[tool] = "\n".join([header] + names) + "\n"
        return self

    def run(self, args, env=None) -> CommandResult:
        args = list(args)
        self.calls.append((args, dict(env or {})))
        tool = args[0]

        for scripted_tool, database, result in self.scripted:
            if scripted_tool == tool and (database is None or args[-1] == database):
                return result

        if tool in self.listings:
            return CommandResult(0, stdout=self.listings[tool])
        if tool in ("psql", "mysql"):
            return CommandResult(0, stdout="Database\n")
        if tool in ("pg_dump", "mysqldump"):
            prefix = "--file=" if tool == "pg_dump" else "--result-file="
            dest = next(a[len(prefix):] for a in args if a.startswith(prefix))
            with open(dest, "w") as f:
                f.write(f"-- {tool} of {args[-1]}\n")
            return CommandResult(0)
        if tool == "gzip":
            path = args[-1]
            with open(path, "rb") as src, gzip.open(f"{path}.gz", "wb") as dst:
                shutil.copyfileobj(src, dst)
            os.remove(path)
            return CommandResult(0)
        return CommandResult(127, stderr=f"{tool}: command not found")

    def tools(self) -> List[str]:
        return [args[0] for args, _ in self.calls]

    def calls_for(self, tool: str) -> List[tuple]:
        return [(args, env) for args, env in self.calls if args[0] == tool]


class FakeStorage(StorageProvider):
    """Keeps uploaded artifacts in memory, optionally failing for some databases."""

    def __init__(self, fail_for=()):
        self.saved: Dict[str, bytes] = {}
        self.fail_for = set(fail_for)
        self.attempts: List[str] = []

    def save(self, source_path: str, destination_path: str) -> None:
        self.attempts.append(destination_path)
        database = destination_path.split("/", 1)[0]
        if database in self.fail_for:
            raise UploadError(source_path, 403, "An error occurred (AccessDenied) when calling the PutObject operation")
        with open(source_path, "rb") as f:
            self.saved[destination_path] = f.read()

    def describe(self, destination_path: str) -> str:
        return f"memory://{destination_path}"


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def make_settings(tmp_path):
    """Builds settings with temp files under tmp_path; hosts default to inactive."""

    def _make(pg_host=None, mysql_host=None, **overrides) -> Settings:
        tmp_dir = tmp_path / "tmp"
        tmp_dir.mkdir(exist_ok=True)
        values = dict(
            storage=StorageConfig(type="s3", s3=S3Config(bucket="backups")),
            postgres=ServerConfig(
                kind=DatabaseKind.POSTGRES, host=pg_host, port=5432, username="postgres", password="pg-secret"
            ),
            mysql=ServerConfig(
                kind=DatabaseKind.MYSQL, host=mysql_host, port=3306, username="root", password="my-secret"
            ),
            tmp_dir=str(tmp_dir),
        )
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def pg_server() -> ServerConfig:
    return ServerConfig(kind=DatabaseKind.POSTGRES, host="pg.local", port=5433, username="admin", password="s3cret")


@pytest.fixture
def mysql_server() -> ServerConfig:
    return ServerConfig(kind=DatabaseKind.MYSQL, host="mysql.local", port=3307, username="backup", password="hunter2")
