"""
Product model for sellable items.

A product usually derives from a recipe. Its base cost and suggested price
are cached values: they are written when the product is created or
explicitly refreshed, and never recomputed automatically when ingredient
costs change.
"""

from decimal import Decimal

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship, validates

from .base import BaseModel, require_non_negative_decimal


class Product(BaseModel):
    """
    Product model.

    Attributes:
        name: Product name
        recipe_id: Optional recipe the product is made from (SET NULL on delete)
        sku: Optional stock keeping unit
        base_cost_cache: Cached recipe cost per serving (>= 0)
        suggested_price_cache: Cached suggested selling price (>= 0)
        image_url: Optional picture
        notes: Optional notes
    """

    __tablename__ = "products"

    name = Column(String(200), nullable=False, index=True)
    recipe_id = Column(
        Integer, ForeignKey("recipes.id", ondelete="SET NULL"), nullable=True, index=True
    )
    sku = Column(String(100), nullable=True, unique=True)

    base_cost_cache = Column(Numeric(14, 4), nullable=False, default=Decimal("0"))
    suggested_price_cache = Column(Numeric(14, 4), nullable=False, default=Decimal("0"))

    image_url = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)

    recipe = relationship("Recipe", back_populates="products", lazy="joined")

    __table_args__ = (
        CheckConstraint("base_cost_cache >= 0", name="ck_product_base_cost_non_negative"),
        CheckConstraint(
            "suggested_price_cache >= 0", name="ck_product_suggested_price_non_negative"
        ),
        Index("idx_product_name", "name"),
    )

    @validates("base_cost_cache", "suggested_price_cache")
    def _validate_caches(self, key: str, value) -> Decimal:
        return require_non_negative_decimal(key, value)

    @property
    def has_recipe(self) -> bool:
        """True when the product can be refreshed from a recipe."""
        return self.recipe_id is not None

    @property
    def markup_percent(self):
        """
        Current markup over the cached base cost.

        Returns:
            Decimal percentage, or None when base cost is zero
        """
        base_cost = Decimal(str(self.base_cost_cache or 0))
        if base_cost == 0:
            return None
        price = Decimal(str(self.suggested_price_cache or 0))
        return (price / base_cost - 1) * 100

    def __repr__(self) -> str:
        """String representation of product."""
        return (
            f"Product(id={self.id}, name='{self.name}', "
            f"cost={self.base_cost_cache}, price={self.suggested_price_cache})"
        )

    def to_dict(self, include_relationships: bool = False) -> dict:
        """
        Convert product to dictionary.

        Args:
            include_relationships: If True, include the recipe name

        Returns:
            Dictionary representation
        """
        result = super().to_dict(False)

        if include_relationships:
            result["recipe_name"] = self.recipe.name if self.recipe else None

        return result
