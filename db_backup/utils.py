import os
from datetime import datetime, timezone
from typing import Optional

from .errors import CompressionError
from .models import DatabaseKind
from .runner import CommandRunner, SubprocessRunner


def iso_timestamp(now: datetime) -> str:
    """
    Formats a datetime as UTC ISO-8601 with millisecond precision, e.g. 2024-01-02T03:04:05.000Z.
    Naive datetimes are taken to be UTC already.
    """
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def remote_key(database: str, kind: DatabaseKind, now: Optional[datetime] = None) -> str:
    """Object key of a backup: <database>/<timestamp with dashes for colons>.<kind>.sql.gz"""
    if now is None:
        now = datetime.now(timezone.utc)
    timestamp = iso_timestamp(now).replace(":", "-")
    return f"{database}/{timestamp}.{DatabaseKind(kind).value}.sql.gz"


def compress_file(path: str, runner: Optional[CommandRunner] = None) -> str:
    """Gzips a file in place and returns the path of the compressed file."""
    runner = runner or SubprocessRunner()
    compressed_path = f"{path}.gz"
    if os.path.exists(compressed_path):
        os.remove(compressed_path)

    result = runner.run(["gzip", path])
    if result.returncode != 0:
        raise CompressionError(path, result.returncode, result.stderr, tool="gzip")

    return compressed_path


def format_bytes(size: int) -> str:
    """Human readable size, e.g. 1.5MB."""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if value < 1024 or unit == "TB":
            break
        value /= 1024
    if unit == "B":
        return f"{int(value)}B"
    return f"{value:.2f}".rstrip("0").rstrip(".") + unit
