"""Service configuration.

Settings come from an optional YAML file, then environment variables
override individual fields:

    definitions_dir  TILEHOST_DEFINITIONS_DIR
    database_path    TILEHOST_DATABASE_PATH
    host             TILEHOST_HOST
    port             TILEHOST_PORT
    log_level        TILEHOST_LOG_LEVEL
"""

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from tilehost.errors import ConfigurationError
from tilehost.events.registry import DEFAULT_GLOBAL_EVENTS

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "TILEHOST_CONFIG"

_ENV_OVERRIDES = {
    "definitions_dir": "TILEHOST_DEFINITIONS_DIR",
    "database_path": "TILEHOST_DATABASE_PATH",
    "host": "TILEHOST_HOST",
    "port": "TILEHOST_PORT",
    "log_level": "TILEHOST_LOG_LEVEL",
}


class ServiceConfig(BaseModel):
    """Configuration for the definition host service."""

    definitions_dir: Path = Field(
        default=Path("tiles"),
        description="Root directory scanned for definition directories",
    )
    database_path: Path = Field(
        default=Path("tilehost.db"),
        description="SQLite file backing the tile and activity-stream stores",
    )
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8090, description="Bind port")
    log_level: str = Field(default="INFO", description="Root logging level")
    global_events: list[str] = Field(
        default_factory=lambda: list(DEFAULT_GLOBAL_EVENTS),
        description="Event names registered against the system-wide listener table",
    )


def load_config(path: Optional[Path] = None) -> ServiceConfig:
    """Load configuration from YAML (if any) with environment overrides.

    When *path* is None, the TILEHOST_CONFIG environment variable is
    consulted. A missing file is not an error.

    Raises:
        ConfigurationError: If the file is not valid YAML, is not a mapping,
            or fails validation.
    """
    if path is None and os.environ.get(CONFIG_PATH_ENV):
        path = Path(os.environ[CONFIG_PATH_ENV])

    data: dict = {}
    if path is not None and path.exists():
        try:
            with open(path, "r") as f:
                loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file {path}: {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
        data.update(loaded)
        logger.debug(f"Loaded config file: {path}")

    for field_name, env_name in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            data[field_name] = value

    try:
        return ServiceConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid service configuration: {e}") from e
