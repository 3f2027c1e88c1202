"""
Ingredient model for raw bakery ingredients.

An ingredient's cost and stock are always expressed in its base unit
(e.g. flour costed per gram, eggs per unit). Recipe lines may use any unit;
the cost engine converts them into the base unit when the categories match.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, Column, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship, validates

from .base import BaseModel, require_non_negative_decimal


class Ingredient(BaseModel):
    """
    Ingredient model representing a purchasable raw material.

    Attributes:
        name: Ingredient name (e.g., "Harina 000", "Butter")
        base_unit: Unit in which cost and stock are expressed (e.g., "g", "ml", "unit")
        cost_per_base_unit: Cost of one base unit (>= 0, overwritten by purchases)
        supplier: Optional usual supplier
        lead_time_days: Optional days between order and delivery
        image_url: Optional picture
        notes: Additional notes

    Relationships:
        inventory: Stock-on-hand row (one per ingredient, may be missing)
        recipe_ingredients: Recipe lines referencing this ingredient
        purchases: Purchase records for this ingredient
    """

    __tablename__ = "ingredients"

    name = Column(String(200), nullable=False, unique=True, index=True)
    base_unit = Column(String(50), nullable=False)
    cost_per_base_unit = Column(Numeric(18, 10), nullable=False, default=Decimal("0"))

    supplier = Column(String(200), nullable=True)
    lead_time_days = Column(Integer, nullable=True)
    image_url = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)

    inventory = relationship(
        "InventoryItem",
        back_populates="ingredient",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="joined",
    )
    recipe_ingredients = relationship(
        "RecipeIngredient", back_populates="ingredient", lazy="select"
    )
    purchases = relationship(
        "Purchase", back_populates="ingredient", cascade="all, delete-orphan", lazy="select"
    )

    __table_args__ = (
        CheckConstraint("cost_per_base_unit >= 0", name="ck_ingredient_cost_non_negative"),
        CheckConstraint(
            "lead_time_days IS NULL OR lead_time_days >= 0",
            name="ck_ingredient_lead_time_non_negative",
        ),
        Index("idx_ingredient_name", "name"),
    )

    @validates("cost_per_base_unit")
    def _validate_cost(self, key: str, value) -> Decimal:
        return require_non_negative_decimal("cost_per_base_unit", value)

    @validates("base_unit")
    def _validate_base_unit(self, key: str, value: str) -> str:
        if value is None or not str(value).strip():
            raise ValueError("base_unit is required")
        return str(value).strip().lower()

    @property
    def stock_on_hand(self) -> float:
        """Quantity in stock (base unit), 0.0 when no inventory row exists."""
        if self.inventory is None:
            return 0.0
        return self.inventory.quantity

    @property
    def location(self) -> Optional[str]:
        """Storage location of the stock, if recorded."""
        return self.inventory.location if self.inventory is not None else None

    def __repr__(self) -> str:
        """String representation of ingredient."""
        return (
            f"Ingredient(id={self.id}, name='{self.name}', "
            f"cost={self.cost_per_base_unit}/{self.base_unit})"
        )

    def to_dict(self, include_relationships: bool = False) -> dict:
        """
        Convert ingredient to dictionary.

        Args:
            include_relationships: If True, include the inventory row

        Returns:
            Dictionary representation including stock_on_hand
        """
        result = super().to_dict(False)
        result["stock_on_hand"] = self.stock_on_hand

        if include_relationships:
            result["inventory"] = self.inventory.to_dict() if self.inventory else None

        return result
