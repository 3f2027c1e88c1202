"""
Inventory models: stock-on-hand per ingredient and the stock movement ledger.

- InventoryItem: current quantity of one ingredient, in its base unit
- InventoryMovement: append-only IN/OUT ledger (purchases, manual adjustments)
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from ..utils.datetime_utils import utc_now


class InventoryItem(BaseModel):
    """
    Stock-on-hand for a single ingredient.

    Attributes:
        ingredient_id: Foreign key to Ingredient (one row per ingredient)
        quantity: Quantity in stock, expressed in the ingredient's base unit
        unit: Copy of the ingredient's base unit at creation time
        location: Optional storage location
        last_updated: When the quantity last changed
    """

    __tablename__ = "inventory_items"

    ingredient_id = Column(
        Integer,
        ForeignKey("ingredients.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    quantity = Column(Float, nullable=False, default=0.0)
    unit = Column(String(50), nullable=False)
    location = Column(String(200), nullable=True)
    last_updated = Column(DateTime, nullable=False, default=utc_now)

    ingredient = relationship("Ingredient", back_populates="inventory")

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
    )

    def __repr__(self) -> str:
        """String representation of inventory item."""
        return (
            f"InventoryItem(ingredient_id={self.ingredient_id}, "
            f"quantity={self.quantity} {self.unit})"
        )


class InventoryMovement(BaseModel):
    """
    Stock movement ledger entry. Immutable after creation.

    Attributes:
        ingredient_id: Foreign key to Ingredient
        quantity: Signed quantity (positive for IN, negative for OUT), base unit
        movement_type: "IN" or "OUT"
        purchase_id: Purchase that produced this movement, if any
        notes: Optional notes
    """

    __tablename__ = "inventory_movements"

    updated_at = None

    ingredient_id = Column(
        Integer, ForeignKey("ingredients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    quantity = Column(Float, nullable=False)
    movement_type = Column(String(3), nullable=False)
    purchase_id = Column(
        Integer, ForeignKey("purchases.id", ondelete="SET NULL"), nullable=True, index=True
    )
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utc_now)

    ingredient = relationship("Ingredient")

    __table_args__ = (
        CheckConstraint("movement_type IN ('IN', 'OUT')", name="ck_movement_type"),
        Index("idx_movement_ingredient_created", "ingredient_id", "created_at"),
    )

    def __repr__(self) -> str:
        """String representation of movement."""
        return (
            f"InventoryMovement(id={self.id}, ingredient_id={self.ingredient_id}, "
            f"{self.movement_type} {self.quantity})"
        )
