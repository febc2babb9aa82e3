# db_backup/error_parser.py
from typing import Optional

from .models import DatabaseKind


def parse_backup_error(stderr: Optional[str], kind: Optional[DatabaseKind] = None) -> str:
    """
    Parses the stderr output from a backup command and returns a human-readable summary.
    """
    stderr = (stderr or "").lower()

    if "command not found" in stderr or ("errno 2" in stderr and "no such file or directory" in stderr):
        return "Missing Tool: A required command-line client is not installed or not on PATH."

    if kind == DatabaseKind.POSTGRES:
        if "password authentication failed" in stderr:
            return "Authentication Error: The provided password was rejected."
        if "authentication failed" in stderr:
            return "Authentication Error: The username or password is incorrect."
        if "does not exist" in stderr and "database" in stderr:
            return "Database Error: The specified database does not exist."
        if "connection refused" in stderr:
            return "Connection Error: Could not connect to the database server. Check the host and port."
        if "could not translate host name" in stderr:
            return "Connection Error: The host name could not be resolved. Check the server address."
        if "timeout expired" in stderr:
            return "Connection Error: Timed out while connecting to the server."
        if "permission denied" in stderr:
            return "Permission Error: The user lacks the privileges required to dump the database."

    elif kind == DatabaseKind.MYSQL:
        if "access denied" in stderr:
            return "Authentication Error: The username or password is incorrect."
        if "unknown database" in stderr:
            return "Database Error: The specified database does not exist."
        if "can't connect" in stderr or "connection refused" in stderr:
            return "Connection Error: Could not connect to the database server. Check the host and port."
        if "unknown mysql server host" in stderr:
            return "Connection Error: The host name could not be resolved. Check the server address."
        if "lock tables" in stderr or "privilege" in stderr:
            return "Permission Error: The user lacks the privileges required to dump the database."

    if "accessdenied" in stderr or "invalidaccesskeyid" in stderr or "signaturedoesnotmatch" in stderr:
        return "Storage Error: The S3 credentials were rejected."
    if "nosuchbucket" in stderr:
        return "Storage Error: The S3 bucket does not exist."
    if "s3_bucket is not configured" in stderr:
        return "Storage Error: No S3 bucket is configured."
    if "no space left on device" in stderr:
        return "Disk Error: No space left on device for the temporary dump."

    return "Unknown Error: The backup failed for an unidentified reason. Check the full log for details."
