"""
Base model class for all database models.

Provides common functionality and fields for all models:
- Primary key and UUID identifier
- Timestamp fields (created_at, updated_at)
- Utility methods (to_dict, update_from_dict)
- Shared invariant checks used by @validates hooks
- SQLAlchemy declarative base
"""

import uuid as uuid_lib
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import declarative_base

from ..utils.datetime_utils import utc_now

# Create the declarative base for all models
Base = declarative_base()


def require_non_negative_decimal(field_name: str, value: Any) -> Decimal:
    """Coerce a monetary value to Decimal, rejecting negatives."""
    if value is None:
        raise ValueError(f"{field_name} is required")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(f"{field_name} must be a number, got {value!r}")
    if not result.is_finite() or result < 0:
        raise ValueError(f"{field_name} must be >= 0, got {value}")
    return result


def require_positive_number(field_name: str, value: Any) -> float:
    """Coerce a physical quantity to float, rejecting zero and negatives."""
    try:
        result = float(value)
    except (ValueError, TypeError):
        raise ValueError(f"{field_name} must be a number, got {value!r}")
    if result <= 0:
        raise ValueError(f"{field_name} must be > 0, got {value}")
    return result


class BaseModel(Base):
    """
    Abstract base for every table: integer id, uuid, audit timestamps.

    Subclasses add their own relationships to to_dict() when asked to.
    """

    __abstract__ = True

    # Columns update_from_dict never touches
    PROTECTED_COLUMNS = frozenset({"id", "uuid", "created_at", "updated_at"})

    # Failed follow-up steps of the service call that returned the instance; not persisted
    warnings = ()

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Stored as string for SQLite compatibility
    uuid = Column(
        String(36), unique=True, nullable=False, default=lambda: str(uuid_lib.uuid4()), index=True
    )

    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self, include_relationships: bool = False) -> Dict[str, Any]:
        """
        Column values as a JSON-safe dictionary.

        Datetimes and dates become ISO strings and Decimals become strings,
        so money keeps its exact scale.
        """
        result = {}
        for column in self.__table__.columns:
            value = getattr(self, column.name)
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            elif isinstance(value, Decimal):
                value = str(value)
            result[column.name] = value
        return result

    def update_from_dict(self, data: Dict[str, Any]) -> None:
        """
        Assign the columns present in data, skipping PROTECTED_COLUMNS.

        Assignments go through the model's @validates hooks.
        """
        for column in self.__table__.columns:
            if column.name in data and column.name not in self.PROTECTED_COLUMNS:
                setattr(self, column.name, data[column.name])

        if "updated_at" in self.__table__.columns:
            self.updated_at = utc_now()
