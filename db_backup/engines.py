import abc
import os
from typing import Dict, List, Optional

from .errors import DumpError, EnumerationError
from .logger import get_logger
from .models import DatabaseKind, ServerConfig
from .runner import CommandRunner, SubprocessRunner

logger = get_logger(__name__)


class DatabaseEngine(abc.ABC):
    """Lists and dumps the databases of one server through its command-line clients."""

    kind: DatabaseKind
    system_databases: frozenset = frozenset()

    def __init__(self, server: ServerConfig, runner: Optional[CommandRunner] = None):
        self.server = server
        self.runner = runner or SubprocessRunner()

    @abc.abstractmethod
    def list_command(self) -> List[str]:
        pass

    @abc.abstractmethod
    def dump_command(self, database: str, dest_path: str) -> List[str]:
        pass

    @abc.abstractmethod
    def env(self) -> Dict[str, Optional[str]]:
        pass

    def list_databases(self) -> List[str]:
        cmd = self.list_command()
        result = self.runner.run(cmd, env=self.env())
        if result.returncode != 0:
            raise EnumerationError(self.kind.value, result.returncode, result.stderr, tool=cmd[0])

        return self.parse_database_list(result.stdout)

    def parse_database_list(self, output: str) -> List[str]:
        lines = output.split("\n")

        # Remove header and footer.
        lines = lines[1:len(lines) - 1]

        return [line for line in lines if line not in self.system_databases]

    def dump(self, database: str, dest_path: str) -> None:
        if os.path.exists(dest_path):
            logger.debug(f"Removing stale dump file: {dest_path}")
            os.remove(dest_path)

        cmd = self.dump_command(database, dest_path)
        result = self.runner.run(cmd, env=self.env())
        if result.returncode != 0:
            raise DumpError(database, result.returncode, result.stderr, tool=cmd[0])


class PostgresEngine(DatabaseEngine):
    kind = DatabaseKind.POSTGRES
    system_databases = frozenset({"postgres", "template0", "template1"})

    def list_command(self) -> List[str]:
        return [
            "psql",
            f"--host={self.server.host}",
            f"--port={self.server.port}",
            f"--username={self.server.username}",
            "--csv",
            "--command=SELECT datname FROM pg_database;",
        ]

    def dump_command(self, database: str, dest_path: str) -> List[str]:
        return [
            "pg_dump",
            "--no-owner",
            "--column-inserts",
            f"--host={self.server.host}",
            f"--port={self.server.port}",
            f"--file={dest_path}",
            f"--username={self.server.username}",
            database,
        ]

    def env(self) -> Dict[str, Optional[str]]:
        return {"PGPASSWORD": self.server.password}


class MySQLEngine(DatabaseEngine):
    kind = DatabaseKind.MYSQL
    system_databases = frozenset({"information_schema", "performance_schema", "mysql", "sys"})

    def list_command(self) -> List[str]:
        return [
            "mysql",
            f"--host={self.server.host}",
            f"--port={self.server.port}",
            f"--user={self.server.username}",
            "--execute=SHOW DATABASES",
        ]

    def dump_command(self, database: str, dest_path: str) -> List[str]:
        return [
            "mysqldump",
            f"--host={self.server.host}",
            f"--port={self.server.port}",
            f"--user={self.server.username}",
            f"--result-file={dest_path}",
            database,
        ]

    def env(self) -> Dict[str, Optional[str]]:
        return {"MYSQL_PWD": self.server.password}


ENGINES = {
    DatabaseKind.POSTGRES: PostgresEngine,
    DatabaseKind.MYSQL: MySQLEngine,
}


def get_engine(server: ServerConfig, runner: Optional[CommandRunner] = None) -> DatabaseEngine:
    try:
        engine_cls = ENGINES[server.kind]
    except KeyError:
        raise ValueError(f"Unsupported database kind: {server.kind}")
    return engine_cls(server, runner)
