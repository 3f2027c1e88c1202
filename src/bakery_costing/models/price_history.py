"""
Price history model - append-only log of cost and price changes.

Entries are polymorphic over entity type ("ingredient" for
cost_per_base_unit, "product" for suggested_price_cache) and are never
edited or deleted.
"""

from sqlalchemy import Column, DateTime, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import validates

from .base import BaseModel
from ..utils.constants import PRICE_HISTORY_ENTITY_TYPES
from ..utils.datetime_utils import utc_now


class PriceHistoryEntry(BaseModel):
    """
    One recorded change of a tracked price.

    Attributes:
        entity_type: "ingredient" or "product"
        entity_id: Id of the ingredient or product (not a foreign key)
        old_price: Value before the change (None when unknown)
        new_price: Value after the change
        change_amount: new_price - old_price (new_price when old is unknown)
        change_percentage: Relative change in percent (None when old is 0 or unknown)
        changed_at: When the change happened
        change_reason: Optional free-text reason
    """

    __tablename__ = "price_history"

    updated_at = None

    entity_type = Column(String(20), nullable=False)
    entity_id = Column(Integer, nullable=False)
    old_price = Column(Numeric(18, 10), nullable=True)
    new_price = Column(Numeric(18, 10), nullable=False)
    change_amount = Column(Numeric(18, 10), nullable=False)
    change_percentage = Column(Numeric(10, 4), nullable=True)
    changed_at = Column(DateTime, nullable=False, default=utc_now)
    change_reason = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_price_history_entity", "entity_type", "entity_id", "changed_at"),
    )

    @validates("entity_type")
    def _validate_entity_type(self, key: str, value: str) -> str:
        if value not in PRICE_HISTORY_ENTITY_TYPES:
            raise ValueError(
                f"entity_type must be one of {PRICE_HISTORY_ENTITY_TYPES}, got {value!r}"
            )
        return value

    def __repr__(self) -> str:
        """String representation of history entry."""
        return (
            f"PriceHistoryEntry(id={self.id}, {self.entity_type}#{self.entity_id}, "
            f"{self.old_price} -> {self.new_price})"
        )
