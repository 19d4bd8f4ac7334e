"""
Runtime Configuration

Settings are read from environment variables once, at import time.

Includes:
- Database location
- Log directory and level
- Worker pool sizing (core size, max size, queue capacity)
- Conflict retry budget for batch writes
- HTTP bind address
"""
import os
import logging
from dataclasses import dataclass
from pathlib import Path

from exceptions import ConfigurationError

logger = logging.getLogger(__name__)

APP_SUPPORT_DIR = Path.home() / ".profile-aggregates"


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    """
    Read an integer environment variable.

    Raises:
        ConfigurationError: If the value is not an integer or is below minimum
    """
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}", missing_keys=[name])
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}", missing_keys=[name])
    return value


@dataclass(frozen=True)
class Settings:
    database_url: str
    log_dir: Path
    log_level: str
    pool_core_size: int
    pool_max_size: int
    pool_queue_capacity: int
    conflict_retries: int
    host: str
    port: int


def load_settings() -> Settings:
    """Build Settings from the current environment."""
    default_db = APP_SUPPORT_DIR / "profiles.db"
    database_url = os.environ.get('PROFILE_DATABASE_URL') or f'sqlite:///{default_db}'

    core_size = _env_int('PROFILE_POOL_CORE_SIZE', 5, minimum=1)
    max_size = _env_int('PROFILE_POOL_MAX_SIZE', 10, minimum=1)
    if max_size < core_size:
        raise ConfigurationError(
            f"PROFILE_POOL_MAX_SIZE ({max_size}) must be >= PROFILE_POOL_CORE_SIZE ({core_size})"
        )

    return Settings(
        database_url=database_url,
        log_dir=Path(os.environ.get('PROFILE_LOG_DIR') or APP_SUPPORT_DIR / "logs").expanduser(),
        log_level=os.environ.get('PROFILE_LOG_LEVEL', 'INFO').upper(),
        pool_core_size=core_size,
        pool_max_size=max_size,
        pool_queue_capacity=_env_int('PROFILE_POOL_QUEUE_CAPACITY', 25),
        conflict_retries=_env_int('PROFILE_CONFLICT_RETRIES', 3),
        host=os.environ.get('PROFILE_HOST', '127.0.0.1'),
        port=_env_int('PROFILE_PORT', 8080, minimum=1),
    )


settings = load_settings()
