import os
import shutil
import tempfile
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional

from .engines import DatabaseEngine, get_engine
from .error_parser import parse_backup_error
from .errors import EnumerationError, ToolError, UploadError
from .logger import get_logger
from .metrics import (
    BACKUPS_TOTAL, BACKUP_DURATION_SECONDS, BACKUP_SIZE_BYTES, BACKUP_LAST_STATUS,
    BACKUP_LAST_SUCCESS_TIMESTAMP_SECONDS, ENUMERATION_FAILURES_TOTAL, BACKUP_CYCLES_TOTAL
)
from .models import BackupResult, DatabaseKind, Settings
from .runner import CommandRunner, SubprocessRunner
from .storage import StorageProvider, get_storage_provider
from .utils import compress_file, format_bytes, remote_key

logger = get_logger(__name__)

KIND_NAMES = {
    DatabaseKind.MYSQL: "MySQL",
    DatabaseKind.POSTGRES: "PostgreSQL",
}

DUMP_FILENAME = "db-backup.sql"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def run_backup_cycle(
    settings: Settings,
    runner: Optional[CommandRunner] = None,
    storage: Optional[StorageProvider] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> List[BackupResult]:
    """
    Backs up every user database of every configured server, MySQL first, then PostgreSQL.

    A server whose host is empty is skipped. Failing to list a server's databases skips
    that server only. A failure while backing up one database is logged and the next
    database is processed. Returns one result per database attempted.
    """
    runner = runner or SubprocessRunner()
    if storage is None:
        storage = get_storage_provider(settings)

    BACKUP_CYCLES_TOTAL.inc()
    results = []

    for server in settings.servers():
        kind_name = KIND_NAMES[server.kind]
        if not server.active:
            logger.debug(f"No {kind_name} host configured, skipping.")
            continue

        logger.info(f"Backing up all {kind_name} databases...")
        engine = get_engine(server, runner)

        try:
            databases = engine.list_databases()
        except EnumerationError as e:
            logger.error(str(e))
            logger.error(f"Skipping {kind_name} backups for this cycle: {parse_backup_error(e.stderr, server.kind)}")
            ENUMERATION_FAILURES_TOTAL.labels(kind=server.kind.value).inc()
            continue

        logger.info(f"Found {len(databases)} {kind_name} databases: {databases}")

        for database in databases:
            results.append(backup_database(engine, database, storage, settings, clock=clock))

    return results


def backup_database(
    engine: DatabaseEngine,
    database: str,
    storage: StorageProvider,
    settings: Settings,
    clock: Optional[Callable[[], datetime]] = None,
) -> BackupResult:
    """Dumps, compresses and uploads one database. Never raises for a failed backup."""
    clock = clock or _utcnow
    kind = engine.kind
    result = BackupResult(database=database, kind=kind)
    start_time = time.time()

    logger.info(f"Backing up database: {database}")

    # One private directory per database, removed whatever the outcome
    with tempfile.TemporaryDirectory(prefix="db-backup-", dir=settings.tmp_dir) as tmp_dir:
        dump_path = os.path.join(tmp_dir, DUMP_FILENAME)
        compressed_path = None
        try:
            result.remote_key = remote_key(database, kind, clock())

            engine.dump(database, dump_path)
            compressed_path = compress_file(dump_path, engine.runner)

            result.size_bytes = os.path.getsize(compressed_path)
            logger.info(
                f"Uploading to S3: {result.remote_key} ({format_bytes(result.size_bytes)}) "
                f"-> {storage.describe(result.remote_key)}"
            )
            storage.save(compressed_path, result.remote_key)

            result.status = "completed"

        except Exception as e:
            result.status = "failed"
            result.error = str(e)
            result.error_summary = parse_backup_error(getattr(e, "stderr", None) or str(e), kind)
            # Tool failures already carry their stderr, only unexpected errors need a traceback
            logger.error(str(e), exc_info=not isinstance(e, ToolError))
            logger.error(f"Failed to backup database: {database} ({result.error_summary})")

            if isinstance(e, UploadError) and compressed_path and os.path.exists(compressed_path):
                _keep_failed_upload(compressed_path, result.remote_key, settings)

        finally:
            result.duration_seconds = time.time() - start_time
            _record_metrics(result)

    logger.info(
        f"Backup of {database} finished. Status: {result.status}. "
        f"Duration: {result.duration_seconds:.2f}s"
    )
    return result


def _keep_failed_upload(compressed_path: str, key: str, settings: Settings):
    if not settings.failed_upload_dir:
        logger.warning(
            f"Discarding local artifact for {key} after the failed upload; "
            f"set FAILED_UPLOAD_DIR to keep it for a manual retry."
        )
        return

    destination = os.path.join(settings.failed_upload_dir, key.replace("/", "_"))
    try:
        os.makedirs(settings.failed_upload_dir, exist_ok=True)
        shutil.move(compressed_path, destination)
        logger.warning(f"Kept artifact of failed upload at: {destination}")
    except OSError as e:
        logger.error(f"Could not keep artifact of failed upload at {destination}: {e}")


def _record_metrics(result: BackupResult):
    labels = {"database_name": result.database, "kind": result.kind.value}
    BACKUPS_TOTAL.labels(status=result.status, **labels).inc()
    BACKUP_DURATION_SECONDS.labels(**labels).observe(result.duration_seconds or 0)
    BACKUP_LAST_STATUS.labels(**labels).set(1 if result.status == "completed" else 0)

    if result.status == "completed":
        BACKUP_SIZE_BYTES.labels(**labels).set(result.size_bytes or 0)
        BACKUP_LAST_SUCCESS_TIMESTAMP_SECONDS.labels(**labels).set(time.time())
