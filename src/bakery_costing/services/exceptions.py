"""Service layer exception classes for Bakery Costing.

This module defines all custom exceptions used by the service layer to provide
consistent error handling across the application.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    ├── UnitConversionError
    │   ├── UnknownUnitError
    │   └── IncompatibleUnitsError
    ├── IngredientNotFoundError
    ├── RecipeNotFoundError
    ├── ProductNotFoundError
    ├── PurchaseNotFoundError
    ├── DivisionByZeroError
    ├── RecipeHasNoIngredientsError
    ├── ProductHasNoRecipeError
    ├── IngredientInUse
    ├── DuplicateNameError
    ├── InsufficientStock
    └── DatabaseError
"""

from typing import List, Optional


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions should inherit from this class.
    """

    pass


class ValidationError(ServiceError):
    """Raised when data validation fails.

    Args:
        errors: List of human-readable validation messages
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        error_msg = "; ".join(self.errors)
        super().__init__(f"Validation failed: {error_msg}")


class UnitConversionError(ServiceError):
    """Base class for unit conversion failures."""

    pass


class UnknownUnitError(UnitConversionError):
    """Raised when a unit is not present in the conversion tables.

    Example:
        >>> raise UnknownUnitError("bushel")
        UnknownUnitError: Unknown unit: 'bushel'
    """

    def __init__(self, unit: Optional[str]):
        self.unit = unit
        super().__init__(f"Unknown unit: '{unit}'")


class IncompatibleUnitsError(UnitConversionError):
    """Raised when two units belong to different categories (e.g. g and ml).

    Example:
        >>> raise IncompatibleUnitsError("g", "ml")
        IncompatibleUnitsError: Cannot convert between 'g' and 'ml'
    """

    def __init__(self, from_unit: str, to_unit: str):
        self.from_unit = from_unit
        self.to_unit = to_unit
        super().__init__(f"Cannot convert between '{from_unit}' and '{to_unit}'")


class IngredientNotFoundError(ServiceError):
    """Raised when an ingredient cannot be found by ID."""

    def __init__(self, ingredient_id: int):
        self.ingredient_id = ingredient_id
        super().__init__(f"Ingredient with ID {ingredient_id} not found")


class RecipeNotFoundError(ServiceError):
    """Raised when a recipe cannot be found by ID."""

    def __init__(self, recipe_id: int):
        self.recipe_id = recipe_id
        super().__init__(f"Recipe with ID {recipe_id} not found")


class ProductNotFoundError(ServiceError):
    """Raised when a product cannot be found by ID."""

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product with ID {product_id} not found")


class PurchaseNotFoundError(ServiceError):
    """Raised when a purchase cannot be found by ID."""

    def __init__(self, purchase_id: int):
        self.purchase_id = purchase_id
        super().__init__(f"Purchase with ID {purchase_id} not found")


class DivisionByZeroError(ServiceError):
    """Raised when a purchase quantity converts to zero base units."""

    def __init__(self, quantity: float, unit: str, base_unit: str):
        self.quantity = quantity
        self.unit = unit
        self.base_unit = base_unit
        super().__init__(
            f"Purchase quantity {quantity} {unit} converts to 0 {base_unit}; "
            f"cannot compute unit cost"
        )


class RecipeHasNoIngredientsError(ServiceError):
    """Raised when costing a recipe that has no ingredient lines."""

    def __init__(self, recipe_id: Optional[int], recipe_name: Optional[str] = None):
        self.recipe_id = recipe_id
        self.recipe_name = recipe_name
        label = f"'{recipe_name}'" if recipe_name else f"with ID {recipe_id}"
        super().__init__(f"Recipe {label} has no ingredients")


class ProductHasNoRecipeError(ServiceError):
    """Raised when refreshing the cost of a product that has no recipe."""

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product with ID {product_id} has no recipe to cost from")


class IngredientInUse(ServiceError):
    """Raised when attempting to delete an ingredient referenced by recipes.

    Args:
        ingredient_id: Ingredient being deleted
        recipe_count: Number of recipes whose lines reference it
    """

    def __init__(self, ingredient_id: int, recipe_count: int):
        self.ingredient_id = ingredient_id
        self.recipe_count = recipe_count
        super().__init__(
            f"Cannot delete ingredient {ingredient_id}: used in {recipe_count} recipe(s)"
        )


class DuplicateNameError(ServiceError):
    """Raised when creating an entity whose unique name already exists."""

    def __init__(self, entity: str, name: str):
        self.entity = entity
        self.name = name
        super().__init__(f"{entity} '{name}' already exists")


class InsufficientStock(ServiceError):
    """Raised when a stock decrement would take an ingredient below zero."""

    def __init__(self, ingredient_name: str, required: float, available: float):
        self.ingredient_name = ingredient_name
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient stock for {ingredient_name}: "
            f"required {required}, available {available}"
        )


class DatabaseError(ServiceError):
    """Raised when a database operation fails."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")
