"""Services package - Business logic layer for Bakery Costing.

Architecture:
- Services: Stateless functions organized by domain (ingredient, recipe,
  product, purchase, inventory, price history)
- Transactions: Managed via session_scope() context manager
- Exceptions: Consistent error handling via ServiceError hierarchy
- Cache: Derived list views kept in a CacheCoordinator and invalidated by
  event (see cache.INVALIDATION_RULES)
- Operations: CostingOperations wraps every public operation into an
  OperationResult so no exception crosses the boundary

Service Modules:
- cost_service: Recipe costing, product price derivation and refresh
- purchase_service: Purchase registration, ingredient unit cost
- ingredient_service: Ingredient CRUD, manual and bulk cost updates
- recipe_service: Recipe management
- product_service: Product management and pricing
- inventory_service: Stock on hand and movements
- price_history_service: Price change log and statistics

Infrastructure:
- exceptions: Custom exception classes for service layer errors
- database: Session management and database utilities
- unit_converter: Unit conversion utilities
- logging_utils: Structured operation logging
"""

from . import (
    cost_service,
    database,
    ingredient_service,
    inventory_service,
    price_history_service,
    product_service,
    purchase_service,
    recipe_service,
    unit_converter,
)
from .cache import CacheCoordinator, get_cache_coordinator, reset_cache_coordinator
from .database import close_connections, initialize_app_database, session_scope
from .dto import (
    BatchResult,
    ItemResult,
    OperationResult,
    PriceStats,
    ProductCostRefresh,
    PurchaseResult,
    RecipeCost,
)
from .exceptions import (
    DatabaseError,
    DivisionByZeroError,
    DuplicateNameError,
    IncompatibleUnitsError,
    IngredientInUse,
    IngredientNotFoundError,
    InsufficientStock,
    ProductHasNoRecipeError,
    ProductNotFoundError,
    PurchaseNotFoundError,
    RecipeHasNoIngredientsError,
    RecipeNotFoundError,
    ServiceError,
    UnitConversionError,
    UnknownUnitError,
    ValidationError,
)
from .operations import CostingOperations

__all__ = [
    # Modules
    "cost_service",
    "database",
    "ingredient_service",
    "inventory_service",
    "price_history_service",
    "product_service",
    "purchase_service",
    "recipe_service",
    "unit_converter",
    # Cache
    "CacheCoordinator",
    "get_cache_coordinator",
    "reset_cache_coordinator",
    # Database
    "close_connections",
    "initialize_app_database",
    "session_scope",
    # Results
    "BatchResult",
    "ItemResult",
    "OperationResult",
    "PriceStats",
    "ProductCostRefresh",
    "PurchaseResult",
    "RecipeCost",
    # Exceptions
    "DatabaseError",
    "DivisionByZeroError",
    "DuplicateNameError",
    "IncompatibleUnitsError",
    "IngredientInUse",
    "IngredientNotFoundError",
    "InsufficientStock",
    "ProductHasNoRecipeError",
    "ProductNotFoundError",
    "PurchaseNotFoundError",
    "RecipeHasNoIngredientsError",
    "RecipeNotFoundError",
    "ServiceError",
    "UnitConversionError",
    "UnknownUnitError",
    "ValidationError",
    # Operations
    "CostingOperations",
]
