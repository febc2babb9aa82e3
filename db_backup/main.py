import argparse
import sys

from prometheus_client import start_http_server

from . import scheduler
from .backup_manager import run_backup_cycle
from .config import load_config
from .errors import ConfigError
from .logger import setup_logging, get_logger

logger = get_logger(__name__)


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(
        prog="db-backup",
        description="Dump every PostgreSQL and MySQL database to S3 on a cron schedule.",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single backup cycle and exit instead of staying resident.",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        help="YAML configuration file (default: $CONFIG_FILE or ./config.yaml).",
    )
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_arguments(argv)
    setup_logging()

    try:
        settings = load_config(config_path=args.config)
    except ConfigError as e:
        logger.error(f"Could not load configuration: {e}")
        return 1

    if not settings.mysql.active and not settings.postgres.active:
        logger.warning("Neither MYSQL_HOST nor PG_HOST is set, cycles will have nothing to back up.")

    if args.once:
        try:
            run_backup_cycle(settings)
        except ValueError as e:
            logger.error(f"Could not run backup cycle: {e}")
            return 1
        return 0

    if settings.metrics_port:
        start_http_server(settings.metrics_port)
        logger.info(f"Serving metrics on port {settings.metrics_port}")

    try:
        scheduler.start(settings)
    except ValueError as e:
        logger.error(f"Invalid schedule configuration: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
