"""
Constants and enumerations for the Bakery Costing application.

This module defines all system-wide constants including:
- Application metadata
- Unit categories
- Pricing defaults and bounds
- Cache keys and time-to-live defaults
- Validation limits and error messages
"""

from decimal import Decimal
from typing import List

# ============================================================================
# Application Metadata
# ============================================================================

APP_VERSION = "0.1.0"
DATABASE_FILENAME = "bakery_costing.db"

# ============================================================================
# Unit Types
# ============================================================================

UNIT_CATEGORY_WEIGHT = "weight"
UNIT_CATEGORY_VOLUME = "volume"
UNIT_CATEGORY_COUNT = "count"

# ============================================================================
# Pricing
# ============================================================================

# Markup applied when a product is created from a recipe without an explicit one
DEFAULT_MARKUP_PERCENT = Decimal("60")

# Bulk ingredient price increase bounds: percentage must be in (MIN, MAX]
BULK_INCREASE_MIN_PERCENT = Decimal("0")
BULK_INCREASE_MAX_PERCENT = Decimal("100")

# Product costs and prices keep 4 decimals; statistics are reported in cents
COST_QUANTUM = Decimal("0.0001")
CENT_QUANTUM = Decimal("0.01")

# Ingredient unit costs are per g / ml / unit (often around 1e-4), so they keep 10 decimals
UNIT_COST_QUANTUM = Decimal("0.0000000001")

# ============================================================================
# Price History
# ============================================================================

ENTITY_TYPE_INGREDIENT = "ingredient"
ENTITY_TYPE_PRODUCT = "product"

PRICE_HISTORY_ENTITY_TYPES: List[str] = [
    ENTITY_TYPE_INGREDIENT,
    ENTITY_TYPE_PRODUCT,
]

REASON_PURCHASE = "Purchase registered"
REASON_MANUAL_COST_UPDATE = "Manual cost update"
REASON_BULK_INCREASE = "Bulk price increase"
REASON_PRODUCT_REFRESH = "Recalculated from recipe cost"
REASON_MARKUP_UPDATE = "Markup updated"
REASON_MANUAL_PRICE_CHANGE = "Manual price change"

# ============================================================================
# Inventory
# ============================================================================

MOVEMENT_IN = "IN"
MOVEMENT_OUT = "OUT"

MOVEMENT_TYPES: List[str] = [MOVEMENT_IN, MOVEMENT_OUT]

DEFAULT_LOW_STOCK_THRESHOLD = 10.0
DEFAULT_MOVEMENT_LIMIT = 50

# ============================================================================
# Cache
# ============================================================================

CACHE_KEY_INGREDIENTS = "ingredients"
CACHE_KEY_RECIPES = "recipes"
CACHE_KEY_PRODUCTS = "products"
CACHE_KEY_INVENTORY = "inventory"
CACHE_KEY_LOW_STOCK = "low_stock"
CACHE_KEY_MONTHLY_STATS = "monthly_stats"

DEFAULT_CACHE_TTL_SECONDS = 300  # 5 minutes
LIST_CACHE_TTL_SECONDS = 120  # 2 minutes for entity list queries

DEFAULT_BULK_UPDATE_WORKERS = 4

# ============================================================================
# Validation Limits
# ============================================================================

MAX_NAME_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 500
MAX_NOTES_LENGTH = 2000
MAX_SKU_LENGTH = 100

MIN_SERVINGS = 1

# ============================================================================
# Error Messages
# ============================================================================

ERROR_REQUIRED_FIELD = "This field is required"
ERROR_INVALID_NUMBER = "Please enter a valid number"
ERROR_INVALID_POSITIVE = "Value must be greater than zero"
ERROR_INVALID_NON_NEGATIVE = "Value must be zero or greater"
ERROR_INVALID_INTEGER = "Please enter a whole number"
ERROR_INVALID_UNIT = "Invalid unit type"
ERROR_NO_INGREDIENTS = "Recipe must have at least one ingredient"
ERROR_BULK_PERCENTAGE = (
    f"Percentage must be greater than {BULK_INCREASE_MIN_PERCENT} "
    f"and at most {BULK_INCREASE_MAX_PERCENT}"
)
