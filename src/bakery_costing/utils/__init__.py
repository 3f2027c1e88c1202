"""Utilities package for the bakery costing application."""

from .config import Config, get_config, reset_config
from .datetime_utils import as_utc, utc_now

__all__ = [
    "Config",
    "get_config",
    "reset_config",
    "as_utc",
    "utc_now",
]
