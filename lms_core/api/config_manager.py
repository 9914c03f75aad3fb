"""
Client Configuration Manager
Loads the client settings from a TOML file and environment overrides
"""
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union
import logging
import os

import toml

from lms_core.errors import ConfigurationError
from .base_connector import APIConfig
from .lms_connector import ROLES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientConfig:
    """
    Settings for one client instance.

    Expected lms.toml format:
    [api]
    base_url = "http://localhost:5000"
    role = "student"
    timeout = 5

    [sync]
    poll_interval = 30
    token_watch_interval = 2
    store_path = "local_data/lms_cache.db"
    retry_queue_size = 100
    max_retry_attempts = 5

    [logging]
    level = "INFO"
    """
    base_url: str = "http://localhost:5000"
    role: str = "student"
    timeout: float = 5.0
    poll_interval: float = 30.0
    token_watch_interval: float = 2.0
    store_path: str = "local_data/lms_cache.db"
    retry_queue_size: int = 100
    max_retry_attempts: int = 5
    log_level: str = "INFO"

    def __post_init__(self):
        if self.role not in ROLES:
            raise ConfigurationError(
                f"Unknown role '{self.role}'", config_key="role", expected_type=" | ".join(ROLES)
            )
        for key in ("timeout", "poll_interval", "token_watch_interval"):
            if getattr(self, key) <= 0:
                raise ConfigurationError(
                    f"{key} must be positive", config_key=key, expected_type="positive number"
                )
        for key in ("retry_queue_size", "max_retry_attempts"):
            if getattr(self, key) < 1:
                raise ConfigurationError(
                    f"{key} must be at least 1", config_key=key, expected_type="positive integer"
                )

    def to_api_config(self) -> APIConfig:
        return APIConfig(api_name="lms", base_url=self.base_url, timeout=self.timeout)


# TOML table -> {file key: ClientConfig field}
_TOML_LAYOUT = {
    "api": {"base_url": "base_url", "role": "role", "timeout": "timeout"},
    "sync": {
        "poll_interval": "poll_interval",
        "token_watch_interval": "token_watch_interval",
        "store_path": "store_path",
        "retry_queue_size": "retry_queue_size",
        "max_retry_attempts": "max_retry_attempts",
    },
    "logging": {"level": "log_level"},
}

_ENV_OVERRIDES = {
    "LMS_API_URL": "base_url",
    "LMS_ROLE": "role",
    "LMS_STORE_PATH": "store_path",
    "LMS_POLL_INTERVAL": "poll_interval",
}

_FIELD_TYPES = {f.name: f.type for f in fields(ClientConfig)}


def _coerce(key: str, value: Any) -> Any:
    """Convert a raw setting to the ClientConfig field type"""
    expected = _FIELD_TYPES[key]
    try:
        if expected in (float, "float"):
            return float(value)
        if expected in (int, "int"):
            if isinstance(value, float) and not value.is_integer():
                raise ValueError(value)
            return int(value)
        return str(value)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"Invalid value for {key}: {value!r}", config_key=key, expected_type=str(expected)
        )


def load_config(
    path: Optional[Union[str, Path]] = None,
    env: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> ClientConfig:
    """
    Build a ClientConfig.

    Precedence (lowest to highest): defaults, TOML file, environment, keyword overrides.

    Args:
        path: TOML file; a missing file is ignored
        env: Environment mapping (defaults to os.environ)
        **overrides: Explicit field values

    Raises:
        ConfigurationError: unreadable file or invalid values
    """
    values: Dict[str, Any] = {}

    if path is not None and Path(path).exists():
        try:
            document = toml.load(str(path))
        except (toml.TomlDecodeError, OSError) as e:
            raise ConfigurationError(f"Cannot read config file {path}: {e}", config_key=str(path))

        for table, keys in _TOML_LAYOUT.items():
            section = document.get(table, {})
            if not isinstance(section, dict):
                raise ConfigurationError(
                    f"[{table}] must be a table", config_key=table, expected_type="table"
                )
            for file_key, field_name in keys.items():
                if file_key in section:
                    values[field_name] = _coerce(field_name, section[file_key])
        logger.debug(f"Loaded configuration from {path}")
    elif path is not None:
        logger.info(f"Config file {path} not found, using defaults")

    env = os.environ if env is None else env
    for variable, field_name in _ENV_OVERRIDES.items():
        if env.get(variable):
            values[field_name] = _coerce(field_name, env[variable])

    for field_name, value in overrides.items():
        if field_name not in _FIELD_TYPES:
            raise ConfigurationError(f"Unknown setting '{field_name}'", config_key=field_name)
        values[field_name] = _coerce(field_name, value)

    return replace(ClientConfig(), **values)
