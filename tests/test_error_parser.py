"""
Tests for db_backup/error_parser.py
"""

import pytest

from db_backup.error_parser import parse_backup_error
from db_backup.models import DatabaseKind


class TestParseBackupError:

    @pytest.mark.parametrize("stderr, expected", [
        ('pg_dump: error: FATAL:  password authentication failed for user "admin"', "Authentication Error"),
        ('pg_dump: error: FATAL:  database "ghost" does not exist', "Database Error"),
        ("psql: error: connection to server at \"db\" failed: Connection refused", "Connection Error"),
        ('could not translate host name "nowhere" to address', "Connection Error"),
        ("pg_dump: error: query failed: ERROR:  permission denied for table secrets", "Permission Error"),
    ])
    def test_postgres(self, stderr, expected):
        assert parse_backup_error(stderr, DatabaseKind.POSTGRES).startswith(expected)

    @pytest.mark.parametrize("stderr, expected", [
        ("mysqldump: Got error: 1045: Access denied for user 'root'@'10.0.0.1'", "Authentication Error"),
        ("mysqldump: Got error: 1049: Unknown database 'ghost'", "Database Error"),
        ("ERROR 2003 (HY000): Can't connect to MySQL server on 'db:3306' (111)", "Connection Error"),
        ("ERROR 2005 (HY000): Unknown MySQL server host 'nowhere' (-2)", "Connection Error"),
        ("mysqldump: Got error: 1044: when using LOCK TABLES", "Permission Error"),
    ])
    def test_mysql(self, stderr, expected):
        assert parse_backup_error(stderr, DatabaseKind.MYSQL).startswith(expected)

    def test_missing_tool(self):
        stderr = "[Errno 2] No such file or directory: 'pg_dump'"

        assert parse_backup_error(stderr, DatabaseKind.POSTGRES).startswith("Missing Tool")

    def test_storage_errors_apply_to_any_kind(self):
        stderr = "An error occurred (NoSuchBucket) when calling the PutObject operation"

        assert parse_backup_error(stderr, DatabaseKind.MYSQL) == "Storage Error: The S3 bucket does not exist."

    def test_disk_full(self):
        assert parse_backup_error("gzip: /tmp/x.gz: No space left on device").startswith("Disk Error")

    @pytest.mark.parametrize("stderr", [None, "", "something odd happened"])
    def test_unknown(self, stderr):
        assert parse_backup_error(stderr, DatabaseKind.POSTGRES).startswith("Unknown Error")
