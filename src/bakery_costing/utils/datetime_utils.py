"""Datetime utilities for timezone-aware UTC timestamps.

Usage:
    from bakery_costing.utils.datetime_utils import utc_now, as_utc

    # For SQLAlchemy Column defaults
    changed_at = Column(DateTime, default=utc_now)

    # SQLite hands back naive datetimes; compare them safely
    as_utc(entry.changed_at) <= utc_now()
"""

from datetime import date, datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime read back from the database to aware UTC.

    SQLite stores DateTime columns without tzinfo, so values written as
    aware UTC come back naive. Naive values are assumed to be UTC.

    Args:
        value: Datetime (naive or aware) or None

    Returns:
        Timezone-aware UTC datetime, or None if value is None
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def today() -> date:
    """Return today's date in UTC (default purchase date)."""
    return utc_now().date()
