import os
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml
from pydantic import ValidationError

from .errors import ConfigError
from .logger import get_logger
from .models import DatabaseKind, Settings

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"

# Environment variable -> location in the YAML document
ENV_OVERRIDES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("BACKUP_SCHEDULE", ("schedule",)),
    ("TIMEZONE", ("timezone",)),
    ("STORAGE_TYPE", ("storage", "type")),
    ("LOCAL_STORAGE_PATH", ("storage", "base_path")),
    ("S3_BUCKET", ("storage", "s3", "bucket")),
    ("S3_ACCESS_KEY", ("storage", "s3", "access_key")),
    ("S3_SECRET_KEY", ("storage", "s3", "secret_key")),
    ("S3_ENDPOINT_URL", ("storage", "s3", "endpoint_url")),
    ("S3_REGION", ("storage", "s3", "region")),
    ("PG_HOST", ("postgres", "host")),
    ("PG_PORT", ("postgres", "port")),
    ("PG_USER", ("postgres", "username")),
    ("PG_PASSWORD", ("postgres", "password")),
    ("MYSQL_HOST", ("mysql", "host")),
    ("MYSQL_PORT", ("mysql", "port")),
    ("MYSQL_USER", ("mysql", "username")),
    ("MYSQL_PASSWORD", ("mysql", "password")),
    ("BACKUP_TMP_DIR", ("tmp_dir",)),
    ("FAILED_UPLOAD_DIR", ("failed_upload_dir",)),
    ("METRICS_PORT", ("metrics_port",)),
)

SERVER_DEFAULTS = {
    "postgres": {"kind": DatabaseKind.POSTGRES, "port": 5432, "username": "postgres"},
    "mysql": {"kind": DatabaseKind.MYSQL, "port": 3306, "username": "root"},
}


def _read_yaml(config_path: str) -> Dict[str, Any]:
    with open(config_path, "r") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Error parsing {config_path}: {e}")
            raise ConfigError(f"Error parsing {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a mapping at the top level.")
    return data


def _set_path(data: Dict[str, Any], path: Tuple[str, ...], value: Any):
    node = data
    for key in path[:-1]:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child
    node[path[-1]] = value


def load_config(environ: Optional[Mapping[str, str]] = None, config_path: Optional[str] = None) -> Settings:
    """
    Builds the settings from an optional YAML file overlaid with environment variables.
    Environment variables always win; empty values count as unset.
    """
    if environ is None:
        environ = os.environ

    # 1. Load config from YAML file
    explicit_path = config_path or environ.get("CONFIG_FILE")
    config_path = explicit_path or DEFAULT_CONFIG_PATH
    config_data: Dict[str, Any] = {}
    if os.path.exists(config_path):
        logger.info(f"Loading configuration from {config_path}.")
        config_data = _read_yaml(config_path)
    elif explicit_path:
        logger.warning(f"Config file {config_path} not found, using environment only.")

    # 2. Apply server defaults below anything the file provides
    for section, defaults in SERVER_DEFAULTS.items():
        server_conf = config_data.get(section) or {}
        if not isinstance(server_conf, dict):
            raise ConfigError(f"Section '{section}' must be a mapping.")
        config_data[section] = {**defaults, **server_conf, "kind": defaults["kind"]}

    # 3. Environment overrides
    for env_key, path in ENV_OVERRIDES:
        value = environ.get(env_key)
        if value:
            _set_path(config_data, path, value)

    try:
        settings = Settings.model_validate(config_data)
    except ValidationError as e:
        logger.error(f"Configuration validation failed: {e}")
        raise ConfigError(f"Invalid configuration: {e}") from e

    logger.debug(
        f"Configuration loaded: schedule='{settings.schedule}', timezone='{settings.timezone}', "
        f"storage={settings.storage.type}, mysql_active={settings.mysql.active}, "
        f"postgres_active={settings.postgres.active}"
    )
    return settings
