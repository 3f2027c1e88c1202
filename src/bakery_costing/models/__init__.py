"""
Database models package.

This package contains all SQLAlchemy ORM models for the application.
"""

from .base import Base, BaseModel
from .ingredient import Ingredient
from .inventory import InventoryItem, InventoryMovement
from .recipe import Recipe, RecipeIngredient
from .product import Product
from .purchase import Purchase
from .price_history import PriceHistoryEntry

__all__ = [
    "Base",
    "BaseModel",
    # Catalog
    "Ingredient",
    "Recipe",
    "RecipeIngredient",
    "Product",
    # Transactions
    "Purchase",
    "InventoryItem",
    "InventoryMovement",
    # Audit
    "PriceHistoryEntry",
]
