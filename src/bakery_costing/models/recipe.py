"""
Recipe models.

This module contains:
- Recipe: recipe metadata (servings, active flag)
- RecipeIngredient: line linking a recipe to an ingredient with its own unit

A recipe's cost is never stored; see services.cost_service.compute_recipe_cost.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship, validates

from .base import BaseModel, require_positive_number
from ..utils.constants import MIN_SERVINGS


class Recipe(BaseModel):
    """
    Recipe model.

    Attributes:
        name: Recipe name (required)
        description: Optional description
        servings: Number of servings produced (>= 1)
        image_url: Optional picture, copied to products created from the recipe
        is_active: False once the recipe is soft-deleted
    """

    __tablename__ = "recipes"

    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)
    servings = Column(Integer, nullable=False, default=1)
    image_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    recipe_ingredients = relationship(
        "RecipeIngredient",
        back_populates="recipe",
        cascade="all, delete-orphan",
        lazy="joined",
        order_by="RecipeIngredient.id",
    )
    products = relationship("Product", back_populates="recipe", lazy="select")

    __table_args__ = (
        CheckConstraint(f"servings >= {MIN_SERVINGS}", name="ck_recipe_servings_positive"),
    )

    @validates("servings")
    def _validate_servings(self, key: str, value) -> int:
        if value is None or isinstance(value, bool) or int(value) != value:
            raise ValueError(f"servings must be a whole number, got {value!r}")
        if value < MIN_SERVINGS:
            raise ValueError(f"servings must be >= {MIN_SERVINGS}, got {value}")
        return int(value)

    def __repr__(self) -> str:
        """String representation of recipe."""
        return f"Recipe(id={self.id}, name='{self.name}', servings={self.servings})"

    def to_dict(self, include_relationships: bool = False) -> dict:
        """
        Convert recipe to dictionary.

        Args:
            include_relationships: If True, include ingredient lines

        Returns:
            Dictionary representation
        """
        result = super().to_dict(False)

        if include_relationships:
            result["ingredients"] = [line.to_dict() for line in self.recipe_ingredients]

        return result


class RecipeIngredient(BaseModel):
    """
    Recipe line: an ingredient quantity in the line's own unit.

    Attributes:
        recipe_id: Foreign key to Recipe
        ingredient_id: Foreign key to Ingredient (RESTRICT delete)
        quantity: Amount needed (> 0), expressed in unit
        unit: Line unit; may differ from the ingredient's base unit
    """

    __tablename__ = "recipe_ingredients"

    recipe_id = Column(Integer, ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False)
    ingredient_id = Column(
        Integer, ForeignKey("ingredients.id", ondelete="RESTRICT"), nullable=False
    )

    quantity = Column(Float, nullable=False)
    unit = Column(String(50), nullable=False)

    recipe = relationship("Recipe", back_populates="recipe_ingredients")
    ingredient = relationship("Ingredient", back_populates="recipe_ingredients", lazy="joined")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_recipe_ingredient_quantity_positive"),
        Index("idx_recipe_ingredient_recipe", "recipe_id"),
        Index("idx_recipe_ingredient_ingredient", "ingredient_id"),
    )

    @validates("quantity")
    def _validate_quantity(self, key: str, value) -> float:
        return require_positive_number("quantity", value)

    @validates("unit")
    def _validate_unit(self, key: str, value: str) -> str:
        if value is None or not str(value).strip():
            raise ValueError("unit is required")
        return str(value).strip().lower()

    def __repr__(self) -> str:
        """String representation of recipe ingredient."""
        return (
            f"RecipeIngredient(recipe_id={self.recipe_id}, "
            f"ingredient_id={self.ingredient_id}, "
            f"quantity={self.quantity}, unit='{self.unit}')"
        )

    def to_dict(self, include_relationships: bool = False) -> dict:
        """Convert line to dictionary, with the ingredient name when loaded."""
        result = super().to_dict(False)
        if self.ingredient is not None:
            result["ingredient_name"] = self.ingredient.name
        return result
