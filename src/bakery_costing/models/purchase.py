"""
Purchase model for tracking ingredient buys.

Purchases are immutable once created. Each one records what was bought, in
which unit, for how much, and the unit cost derived from it (expressed in
the ingredient's base unit).
"""

from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship, validates

from .base import BaseModel, require_non_negative_decimal, require_positive_number
from ..utils.datetime_utils import utc_now


class Purchase(BaseModel):
    """
    Purchase transaction for an ingredient.

    Attributes:
        ingredient_id: Foreign key to Ingredient (CASCADE delete)
        purchase_date: Date of purchase
        quantity_purchased: Amount bought in unit_purchased (> 0)
        unit_purchased: Unit the purchase was expressed in
        total_price: Amount paid (>= 0)
        calculated_unit_cost: total_price / quantity converted to base unit
        affects_stock: Whether the purchase added stock
        supplier: Optional supplier name
        notes: Optional notes
    """

    __tablename__ = "purchases"

    # Purchases are immutable
    updated_at = None

    ingredient_id = Column(
        Integer, ForeignKey("ingredients.id", ondelete="CASCADE"), nullable=False
    )
    purchase_date = Column(Date, nullable=False)
    quantity_purchased = Column(Float, nullable=False)
    unit_purchased = Column(String(50), nullable=False)
    total_price = Column(Numeric(14, 4), nullable=False)
    calculated_unit_cost = Column(Numeric(18, 10), nullable=False)
    affects_stock = Column(Boolean, nullable=False, default=True)
    supplier = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utc_now)

    ingredient = relationship("Ingredient", back_populates="purchases")

    __table_args__ = (
        Index("idx_purchase_ingredient", "ingredient_id"),
        Index("idx_purchase_date", "purchase_date"),
        Index("idx_purchase_ingredient_date", "ingredient_id", "purchase_date"),
        CheckConstraint("quantity_purchased > 0", name="ck_purchase_quantity_positive"),
        CheckConstraint("total_price >= 0", name="ck_purchase_total_price_non_negative"),
    )

    @validates("quantity_purchased")
    def _validate_quantity(self, key: str, value) -> float:
        return require_positive_number("quantity_purchased", value)

    @validates("total_price", "calculated_unit_cost")
    def _validate_money(self, key: str, value) -> Decimal:
        return require_non_negative_decimal(key, value)

    def __repr__(self) -> str:
        """String representation of purchase."""
        return (
            f"Purchase(id={self.id}, ingredient_id={self.ingredient_id}, "
            f"date={self.purchase_date}, quantity={self.quantity_purchased} "
            f"{self.unit_purchased}, total={self.total_price})"
        )

    def to_dict(self, include_relationships: bool = False) -> dict:
        """
        Convert purchase to dictionary.

        Args:
            include_relationships: If True, include ingredient name

        Returns:
            Dictionary representation
        """
        result = super().to_dict(False)

        if include_relationships and self.ingredient:
            result["ingredient_name"] = self.ingredient.name

        return result
