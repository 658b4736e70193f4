"""
src/secure_storage/config.py - Service Configuration

Settings come from environment variables, optionally layered over a JSON
config file that uses the same names in lowercase. Environment variables
always win.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

from .crypto import derive_key
from .exceptions import ConfigurationError
from .rate_limiter import (
    DEFAULT_CAPACITY,
    DEFAULT_IDLE_TTL,
    DEFAULT_REFILL_RATE,
    DEFAULT_SWEEP_INTERVAL,
)


DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024  # 10MB


@dataclass
class Settings:
    """Runtime settings for the storage service."""
    storage_key: bytes = field(repr=False)
    data_dir: Path = Path("data")
    log_dir: Path = Path("logs")
    host: str = "0.0.0.0"
    port: int = 8080
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    rate_limit_capacity: int = DEFAULT_CAPACITY
    rate_limit_rate: float = DEFAULT_REFILL_RATE
    rate_limit_sweep_interval: float = DEFAULT_SWEEP_INTERVAL
    rate_limit_idle_ttl: float = DEFAULT_IDLE_TTL


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def _convert(name: str, value: Any, converter: Callable[[Any], Any]) -> Any:
    try:
        return converter(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"invalid value for {name}: {value!r}") from e


def _load_file(config_path: Path) -> Dict[str, Any]:
    try:
        with open(config_path, 'r') as f:
            config = json.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"config file not found: {config_path}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"config file {config_path} is not valid JSON: {e}") from e

    if not isinstance(config, dict):
        raise ConfigurationError(f"config file {config_path} must hold a JSON object")
    return {str(k).upper(): v for k, v in config.items()}


def load_settings(env: Optional[Mapping[str, str]] = None,
                  config_path: Optional[Path] = None) -> Settings:
    """
    Build settings from the environment and an optional JSON file.

    Args:
        env: Environment mapping (defaults to os.environ)
        config_path: JSON config file; falls back to $STORAGE_CONFIG

    Returns:
        Validated settings

    Raises:
        ConfigurationError: If the key is missing or a value is malformed
    """
    env = os.environ if env is None else env

    values: Dict[str, Any] = {}
    config_path = config_path or env.get('STORAGE_CONFIG')
    if config_path:
        values.update(_load_file(Path(config_path)))
    values.update({k: v for k, v in env.items() if v != ''})

    secret = values.get('STORAGE_KEY')
    if not secret:
        raise ConfigurationError("STORAGE_KEY environment variable is required")

    if _parse_bool(values.get('STORAGE_KEY_DERIVE', False)):
        storage_key = derive_key(str(secret))
    else:
        storage_key = str(secret).encode('utf-8')

    settings = Settings(
        storage_key=storage_key,
        data_dir=Path(values.get('STORAGE_DATA_DIR', 'data')),
        log_dir=Path(values.get('STORAGE_LOG_DIR', 'logs')),
        host=str(values.get('HOST', '0.0.0.0')),
        port=_convert('PORT', values.get('PORT', 8080), int),
        max_upload_bytes=_convert(
            'MAX_UPLOAD_BYTES', values.get('MAX_UPLOAD_BYTES', DEFAULT_MAX_UPLOAD_BYTES), int
        ),
        rate_limit_capacity=_convert(
            'RATE_LIMIT_CAPACITY', values.get('RATE_LIMIT_CAPACITY', DEFAULT_CAPACITY), int
        ),
        rate_limit_rate=_convert(
            'RATE_LIMIT_RATE', values.get('RATE_LIMIT_RATE', DEFAULT_REFILL_RATE), float
        ),
        rate_limit_sweep_interval=_convert(
            'RATE_LIMIT_SWEEP_INTERVAL',
            values.get('RATE_LIMIT_SWEEP_INTERVAL', DEFAULT_SWEEP_INTERVAL), float
        ),
        rate_limit_idle_ttl=_convert(
            'RATE_LIMIT_IDLE_TTL', values.get('RATE_LIMIT_IDLE_TTL', DEFAULT_IDLE_TTL), float
        ),
    )

    if not 0 < settings.port < 65536:
        raise ConfigurationError(f"PORT out of range: {settings.port}")
    if settings.max_upload_bytes <= 0:
        raise ConfigurationError("MAX_UPLOAD_BYTES must be positive")
    if settings.rate_limit_capacity < 1 or settings.rate_limit_rate <= 0:
        raise ConfigurationError("rate limit capacity and rate must be positive")
    if settings.rate_limit_sweep_interval <= 0 or settings.rate_limit_idle_ttl <= 0:
        raise ConfigurationError("rate limit sweep interval and idle TTL must be positive")

    return settings
