import signal
import threading
from typing import List, Optional

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from .backup_manager import run_backup_cycle
from .logger import get_logger
from .metrics import BACKUP_CYCLES_SKIPPED_TOTAL
from .models import BackupResult, Settings
from .runner import CommandRunner
from .storage import StorageProvider

logger = get_logger(__name__)

JOB_ID = "backup_cycle"

# Cron counts days of week from Sunday = 0 (7 is Sunday again), APScheduler from Monday = 0
CRON_DAY_NAMES = ["sun", "mon", "tue", "wed", "thu", "fri", "sat", "sun"]

# Held while a cycle runs so overlapping triggers are skipped
_cycle_lock = threading.Lock()


def _cron_day_number(token: str, part: str) -> int:
    if token.isdigit():
        return int(token)
    if token in CRON_DAY_NAMES:
        return CRON_DAY_NAMES.index(token)
    raise ValueError(f"Invalid day of week: '{part}'")


def _cron_days(part: str) -> List[int]:
    """Cron day numbers (0-7) selected by one comma-separated item; names count as their numbers."""
    base, _, step = part.partition("/")
    step = int(step) if step else 1
    if step < 1:
        raise ValueError(f"Invalid step in day of week: '{part}'")

    if base == "*":
        start, end = 0, 6
    elif "-" in base:
        first, last = base.split("-", 1)
        start, end = _cron_day_number(first, part), _cron_day_number(last, part)
    else:
        start = _cron_day_number(base, part)
        # "5/2" runs up to the cron maximum: fri,sun
        end = 7 if "/" in part else start

    if not (0 <= start <= 7 and 0 <= end <= 7) or start > end:
        raise ValueError(f"Invalid day of week: '{part}'")
    return list(range(start, end + 1, step))


def translate_day_of_week(field: str) -> str:
    """Rewrites cron weekdays as names so APScheduler reads numbers the cron way."""
    if field in ("*", "?"):
        return "*"

    items = []
    for part in field.split(","):
        items.extend(CRON_DAY_NAMES[day] for day in _cron_days(part.lower()))
    return ",".join(dict.fromkeys(items))


def build_trigger(expression: str, timezone: str = "UTC") -> CronTrigger:
    """
    Builds a cron trigger from a 5-field crontab expression or a 6-field one with leading seconds.
    Raises ValueError for malformed expressions or unknown timezones.
    """
    fields = expression.split()
    if len(fields) == 5:
        second = "0"
        minute, hour, day, month, day_of_week = fields
    elif len(fields) == 6:
        second, minute, hour, day, month, day_of_week = fields
    else:
        raise ValueError(
            f"Wrong number of fields in cron expression '{expression}': got {len(fields)}, expected 5 or 6"
        )

    try:
        return CronTrigger(
            second=second,
            minute=minute,
            hour=hour,
            day=day,
            month=month,
            day_of_week=translate_day_of_week(day_of_week),
            timezone=timezone,
        )
    except KeyError as e:
        # pytz and zoneinfo both report unknown zones as KeyError subclasses
        raise ValueError(f"Unknown timezone: '{timezone}'") from e


def trigger_backup_cycle(
    settings: Settings,
    runner: Optional[CommandRunner] = None,
    storage: Optional[StorageProvider] = None,
) -> Optional[List[BackupResult]]:
    """Runs one cycle unless another is still in progress, in which case the trigger is skipped."""
    if not _cycle_lock.acquire(blocking=False):
        logger.warning("Previous backup cycle is still running, skipping this trigger.")
        BACKUP_CYCLES_SKIPPED_TOTAL.inc()
        return None

    try:
        return run_backup_cycle(settings, runner=runner, storage=storage)
    finally:
        _cycle_lock.release()


def create_scheduler(
    settings: Settings,
    runner: Optional[CommandRunner] = None,
    storage: Optional[StorageProvider] = None,
) -> BlockingScheduler:
    trigger = build_trigger(settings.schedule, settings.timezone)

    scheduler = BlockingScheduler(timezone=trigger.timezone)
    scheduler.add_job(
        trigger_backup_cycle,
        trigger=trigger,
        args=[settings],
        kwargs={"runner": runner, "storage": storage},
        id=JOB_ID,
        name="Backup all databases",
        # A second instance may start so the cycle lock can skip and count it
        max_instances=2,
        coalesce=True,
        replace_existing=True,
    )
    return scheduler


def _raise_system_exit(signum, frame):
    raise SystemExit(0)


def start(
    settings: Settings,
    runner: Optional[CommandRunner] = None,
    storage: Optional[StorageProvider] = None,
):
    """Runs a backup cycle now, then keeps running cycles on the configured schedule."""
    # Build the schedule first so a bad expression fails before any backup work
    scheduler = create_scheduler(settings, runner=runner, storage=storage)

    try:
        trigger_backup_cycle(settings, runner=runner, storage=storage)
    except Exception as e:
        logger.error(f"Initial backup cycle failed: {e}", exc_info=True)

    logger.info(
        f"Finished the initial backup, starting the cron job to backup: "
        f"{settings.schedule} ({settings.timezone})"
    )

    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGTERM, _raise_system_exit)

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Stopping the backup scheduler.")
        if scheduler.running:
            scheduler.shutdown(wait=False)
