"""
Configuration Management for the Docker Hub README service
Centralizes all environment-based configuration and logging setup
"""

import os
import logging
from logging.handlers import RotatingFileHandler
from typing import Optional

from hub.types import RetryPolicy

VALID_LOG_LEVELS = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}


class HealthCheckFilter(logging.Filter):
    """Filter out successful health check requests to reduce log noise"""
    def filter(self, record: logging.LogRecord) -> bool:
        # uvicorn access log format: 'IP:PORT - "METHOD /path HTTP/1.1" STATUS'
        message = record.getMessage()
        if '/health' in message and ('200 OK' in message or '200' in str(getattr(record, 'args', ''))):
            return False
        return True


def install_health_check_filter() -> None:
    """Attach HealthCheckFilter to the uvicorn access logger once"""
    uvicorn_access = logging.getLogger("uvicorn.access")
    if not any(isinstance(f, HealthCheckFilter) for f in uvicorn_access.filters):
        uvicorn_access.addFilter(HealthCheckFilter())


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got: {value!r}")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got: {value!r}")


def _env_token(name: str) -> Optional[str]:
    """Read a secret; blank means unset."""
    value = os.getenv(name, '').strip()
    return value or None


def setup_logging(level: Optional[str] = None, log_dir: Optional[str] = None):
    """Configure application logging, with a rotating file when log_dir is set"""
    level_name = (level or AppConfig.LOG_LEVEL).upper()
    log_dir = log_dir if log_dir is not None else AppConfig.LOG_DIR

    root_logger = logging.getLogger()

    # Close and clear any existing handlers so repeated setup does not duplicate output
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    root_logger.setLevel(level_name)

    console_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level_name)
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    if log_dir:
        os.makedirs(log_dir, mode=0o700, exist_ok=True)
        # Max 10MB per file, keep 14 backups
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, 'docker-hub-readme.log'),
            maxBytes=10*1024*1024,
            backupCount=14,
            encoding='utf-8'
        )
        file_handler.setLevel(level_name)
        file_handler.setFormatter(console_formatter)
        root_logger.addHandler(file_handler)

    # aiohttp logs every connection at DEBUG; keep it quieter than ours
    logging.getLogger("aiohttp").setLevel(max(logging.getLevelName(level_name), logging.INFO))

    install_health_check_filter()


class AppConfig:
    """Main application configuration"""

    # Server settings
    HOST = os.getenv('HOST', '0.0.0.0')
    PORT = _env_int('PORT', 8080)

    # Upstream authentication (GitHub README fallback)
    GITHUB_TOKEN = _env_token('GITHUB_TOKEN')

    # Cache
    CACHE_TTL_MS = _env_int('CACHE_TTL', 3_600_000)  # 1 hour
    CACHE_MAX_SIZE_BYTES = _env_int('CACHE_MAX_SIZE', 104_857_600)  # 100MB
    CACHE_SWEEP_INTERVAL_MS = _env_int('CACHE_SWEEP_INTERVAL', 60_000)

    # Retry policy
    RETRY_MAX_ATTEMPTS = _env_int('RETRY_MAX_ATTEMPTS', 3)
    RETRY_BASE_DELAY_MS = _env_float('RETRY_BASE_DELAY', 1000)
    RETRY_BACKOFF_MULTIPLIER = _env_float('RETRY_BACKOFF_MULTIPLIER', 2.0)
    REQUEST_TIMEOUT_MS = _env_float('REQUEST_TIMEOUT', 10_000)

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
    LOG_DIR = os.getenv('LOG_DIR') or None

    @classmethod
    def retry_policy(cls) -> RetryPolicy:
        """Build the retry policy shared by all upstream requests"""
        return RetryPolicy(
            max_attempts=cls.RETRY_MAX_ATTEMPTS,
            base_delay_ms=cls.RETRY_BASE_DELAY_MS,
            backoff_multiplier=cls.RETRY_BACKOFF_MULTIPLIER,
            timeout_ms=cls.REQUEST_TIMEOUT_MS,
        )

    @classmethod
    def validate(cls):
        """Validate configuration"""
        if cls.PORT < 1 or cls.PORT > 65535:
            raise ValueError(f"Invalid port: {cls.PORT}")

        if cls.CACHE_TTL_MS <= 0:
            raise ValueError(f"CACHE_TTL must be positive: {cls.CACHE_TTL_MS}")

        if cls.CACHE_MAX_SIZE_BYTES <= 0:
            raise ValueError(f"CACHE_MAX_SIZE must be positive: {cls.CACHE_MAX_SIZE_BYTES}")

        if cls.CACHE_SWEEP_INTERVAL_MS <= 0:
            raise ValueError(f"CACHE_SWEEP_INTERVAL must be positive: {cls.CACHE_SWEEP_INTERVAL_MS}")

        if cls.LOG_LEVEL not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid LOG_LEVEL: {cls.LOG_LEVEL}. Must be one of: {sorted(VALID_LOG_LEVELS)}")

        # Raises ValueError on invalid retry settings
        cls.retry_policy()

        return True
