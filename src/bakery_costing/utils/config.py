"""
Configuration for the bakery costing engine.

Settings come from defaults in constants.py, overridable by environment
variables:

- BAKERY_COSTING_ENV: "production" (database under ~/.bakery_costing) or
  "development" (database under the project's data/ directory)
- BAKERY_COSTING_DATABASE_URL: any SQLAlchemy URL, replaces the SQLite file
- BAKERY_COSTING_BULK_WORKERS: thread pool size for bulk price updates
- BAKERY_COSTING_CACHE_TTL: default cache entry lifetime in seconds
"""

import logging
import os
from decimal import Decimal
from pathlib import Path
from typing import Optional

from .constants import (
    DATABASE_FILENAME,
    DEFAULT_BULK_UPDATE_WORKERS,
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_LOW_STOCK_THRESHOLD,
    DEFAULT_MARKUP_PERCENT,
    LIST_CACHE_TTL_SECONDS,
)

logger = logging.getLogger(__name__)

ENV_ENVIRONMENT = "BAKERY_COSTING_ENV"
ENV_DATABASE_URL = "BAKERY_COSTING_DATABASE_URL"
ENV_BULK_WORKERS = "BAKERY_COSTING_BULK_WORKERS"
ENV_CACHE_TTL = "BAKERY_COSTING_CACHE_TTL"


def _int_from_env(name: str, default: int) -> int:
    """Read a positive integer from the environment, falling back to default."""
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}; using {default}")
        return default
    if value < 1:
        logger.warning(f"Ignoring non-positive {name}={raw!r}; using {default}")
        return default
    return value


class Config:
    """
    Costing engine settings.

    Attributes:
        environment: "production" or "development"
        default_markup_percent: Markup for products created without one (60)
        cache_ttl_seconds: Default lifetime of cache entries
        list_cache_ttl_seconds: Lifetime of cached list views
        bulk_update_workers: Thread pool size for bulk price increases
        low_stock_threshold: Default threshold of the low stock report
    """

    def __init__(self, environment: str = "production"):
        self.environment = environment

        if environment == "development":
            # <project>/data, next to src/
            self._data_dir = Path(__file__).resolve().parents[3] / "data"
        else:
            self._data_dir = Path.home() / ".bakery_costing"
        self._database_path = self._data_dir / DATABASE_FILENAME
        self._database_url_override = os.environ.get(ENV_DATABASE_URL) or None

        self.default_markup_percent: Decimal = DEFAULT_MARKUP_PERCENT
        self.cache_ttl_seconds: int = _int_from_env(ENV_CACHE_TTL, DEFAULT_CACHE_TTL_SECONDS)
        self.list_cache_ttl_seconds: int = LIST_CACHE_TTL_SECONDS
        self.bulk_update_workers: int = _int_from_env(
            ENV_BULK_WORKERS, DEFAULT_BULK_UPDATE_WORKERS
        )
        self.low_stock_threshold: float = DEFAULT_LOW_STOCK_THRESHOLD

    @property
    def database_path(self) -> Path:
        """SQLite file used when no database URL override is set."""
        return self._database_path

    @property
    def database_url_overridden(self) -> bool:
        return self._database_url_override is not None

    @property
    def database_url(self) -> str:
        """BAKERY_COSTING_DATABASE_URL when set, else a SQLite URL for database_path."""
        if self._database_url_override:
            return self._database_url_override
        return f"sqlite:///{self._database_path.as_posix()}"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def ensure_directories(self) -> None:
        """Create the directory holding the SQLite file."""
        self._data_dir.mkdir(parents=True, exist_ok=True)

    def database_exists(self) -> bool:
        return self._database_path.exists()

    def __repr__(self) -> str:
        return f"Config(environment='{self.environment}', database_url='{self.database_url}')"


_config_instance: Optional[Config] = None


def get_config(environment: Optional[str] = None) -> Config:
    """
    Get the process-wide configuration.

    The first call fixes the environment (argument, else BAKERY_COSTING_ENV,
    else production). Later calls asking for another environment get the
    existing instance and a warning, so the database cannot switch mid-run.
    """
    global _config_instance

    if _config_instance is None:
        if environment is None:
            environment = os.environ.get(ENV_ENVIRONMENT, "production")
        _config_instance = Config(environment)
    elif environment is not None and environment != _config_instance.environment:
        logger.warning(
            f"get_config() called with environment='{environment}' but configuration "
            f"already uses '{_config_instance.environment}'; keeping it"
        )

    return _config_instance


def reset_config() -> None:
    """Drop the process-wide configuration; the next get_config() re-reads the environment."""
    global _config_instance
    _config_instance = None
