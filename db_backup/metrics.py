from prometheus_client import Counter, Histogram, Gauge

BACKUPS_TOTAL = Counter(
    "backups_total",
    "Total number of database backups.",
    ["database_name", "kind", "status"]
)

BACKUP_DURATION_SECONDS = Histogram(
    "backup_duration_seconds",
    "Duration of a single database backup in seconds.",
    ["database_name", "kind"]
)

BACKUP_SIZE_BYTES = Gauge(
    "backup_size_bytes",
    "Compressed size of the last successful backup in bytes.",
    ["database_name", "kind"]
)

BACKUP_LAST_STATUS = Gauge(
    "backup_last_status",
    "Status of the last backup (1 for success, 0 for failure).",
    ["database_name", "kind"]
)

BACKUP_LAST_SUCCESS_TIMESTAMP_SECONDS = Gauge(
    "backup_last_success_timestamp_seconds",
    "Timestamp of the last successful backup.",
    ["database_name", "kind"]
)

ENUMERATION_FAILURES_TOTAL = Counter(
    "enumeration_failures_total",
    "Total number of failures listing the databases of a server.",
    ["kind"]
)

BACKUP_CYCLES_TOTAL = Counter(
    "backup_cycles_total",
    "Total number of backup cycles run."
)

BACKUP_CYCLES_SKIPPED_TOTAL = Counter(
    "backup_cycles_skipped_total",
    "Total number of scheduled cycles skipped because the previous one was still running."
)
