"""
Public operation surface of the costing engine.

CostingOperations is what a presentation layer (or the CLI) calls. Every
method returns an OperationResult; no exception crosses this boundary.

- ServiceError subclasses become success=False with the error message
  (ValidationError contributes its individual errors)
- Any other exception is logged with traceback and reported with a generic
  message
- Warnings produced by partially failed secondary steps are copied onto the
  result
"""

import functools
import logging
from typing import Any, Callable, Dict, List, Optional

from ..utils.constants import ENTITY_TYPE_INGREDIENT
from . import (
    cost_service,
    ingredient_service,
    inventory_service,
    price_history_service,
    product_service,
    purchase_service,
    recipe_service,
    unit_converter,
)
from .cache import CacheCoordinator, get_cache_coordinator
from .dto import BatchResult, OperationResult
from .exceptions import ServiceError, ValidationError

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred; see the log for details"


def _serialize(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, list):
        return [_serialize(item) for item in value]
    return value


def _warnings_of(data: Any) -> List[str]:
    if isinstance(data, dict):
        return list(data.get("warnings") or [])
    return list(getattr(data, "warnings", None) or [])


def safe_operation(operation_name: str, success_message: str = ""):
    """
    Decorator turning a service call into an OperationResult.

    The wrapped method may return plain data (wrapped as a success) or an
    OperationResult (passed through).

    Args:
        operation_name: Name used in log records
        success_message: Message attached to successful results
    """

    def decorator(func: Callable[..., Any]):
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> OperationResult:
            try:
                outcome = func(*args, **kwargs)
            except ValidationError as e:
                logger.info(f"{operation_name} rejected: {e}")
                return OperationResult.fail(str(e), e.errors)
            except ServiceError as e:
                logger.info(f"{operation_name} failed: {e}")
                return OperationResult.fail(str(e))
            except Exception:
                logger.exception(f"Unexpected error in {operation_name}")
                return OperationResult.fail(UNEXPECTED_ERROR_MESSAGE)

            if isinstance(outcome, OperationResult):
                return outcome
            return OperationResult.ok(
                data=_serialize(outcome),
                message=success_message,
                warnings=_warnings_of(outcome),
            )

        return wrapper

    return decorator


def _batch_result(batch: BatchResult, verb: str) -> OperationResult:
    message = f"{verb} {batch.success_count} of {batch.total}"
    if batch.failure_count:
        message += f" ({batch.failure_count} failed)"
    warnings = [f"#{item.id}: {item.error}" for item in batch.failures]
    return OperationResult.ok(data=batch.to_dict(), message=message, warnings=warnings)


class CostingOperations:
    """
    Facade over the costing services.

    Args:
        cache: Cache coordinator passed to every service call (process-wide
            coordinator when None)
    """

    def __init__(self, cache: Optional[CacheCoordinator] = None):
        self.cache = cache or get_cache_coordinator()

    # ------------------------------------------------------------------
    # Units
    # ------------------------------------------------------------------

    @safe_operation("convert_units")
    def convert_units(self, quantity: float, from_unit: str, to_unit: str) -> Dict[str, Any]:
        converted = unit_converter.convert_units(quantity, from_unit, to_unit)
        return {
            "quantity": quantity,
            "from_unit": from_unit,
            "to_unit": to_unit,
            "converted_quantity": converted,
        }

    def are_units_compatible(self, unit_a: str, unit_b: str) -> OperationResult:
        """Never fails: unknown or empty units are reported as incompatible."""
        return OperationResult.ok(data=unit_converter.units_compatible(unit_a, unit_b))

    # ------------------------------------------------------------------
    # Costing
    # ------------------------------------------------------------------

    @safe_operation("compute_recipe_cost")
    def compute_recipe_cost(self, recipe_id: int):
        return cost_service.calculate_recipe_cost(recipe_id)

    @safe_operation("create_product_from_recipe", "Product created")
    def create_product_from_recipe(
        self, recipe_id: int, markup_percent=None, image_url: Optional[str] = None
    ):
        product = product_service.create_product_from_recipe(
            recipe_id, markup_percent=markup_percent, image_url=image_url, cache=self.cache
        )
        return OperationResult.ok(
            data=product.to_dict(include_relationships=True),
            message="Product created",
            warnings=list(product.warnings),
        )

    @safe_operation("refresh_product_cost", "Product cost refreshed")
    def refresh_product_cost(self, product_id: int):
        return cost_service.refresh_product_cost(product_id, cache=self.cache)

    @safe_operation("refresh_all_product_costs")
    def refresh_all_product_costs(self):
        return _batch_result(cost_service.refresh_all_product_costs(cache=self.cache), "Refreshed")

    # ------------------------------------------------------------------
    # Purchases and ingredient costs
    # ------------------------------------------------------------------

    @safe_operation("register_purchase", "Purchase registered")
    def register_purchase(
        self,
        ingredient_id: int,
        quantity: float,
        unit: str,
        total_price,
        affects_stock: bool = True,
        purchase_date=None,
        supplier: Optional[str] = None,
        notes: Optional[str] = None,
    ):
        return purchase_service.register_purchase(
            ingredient_id,
            quantity,
            unit,
            total_price,
            affects_stock=affects_stock,
            purchase_date=purchase_date,
            supplier=supplier,
            notes=notes,
            cache=self.cache,
        )

    @safe_operation("update_ingredient_cost", "Ingredient cost updated")
    def update_ingredient_cost(self, ingredient_id: int, new_cost):
        return ingredient_service.update_ingredient_cost(ingredient_id, new_cost, cache=self.cache)

    @safe_operation("bulk_update_ingredient_prices")
    def bulk_update_ingredient_prices(self, percentage, max_workers: Optional[int] = None):
        batch = ingredient_service.bulk_update_ingredient_prices(
            percentage, max_workers=max_workers, cache=self.cache
        )
        return _batch_result(batch, "Updated")

    # ------------------------------------------------------------------
    # Price history
    # ------------------------------------------------------------------

    @safe_operation("get_price_history")
    def get_price_history(self, entity_type: str, entity_id: int):
        return price_history_service.get_price_history(entity_type, entity_id)

    @safe_operation("get_price_stats")
    def get_price_stats(self, entity_type: str, entity_id: int):
        return price_history_service.get_price_stats(entity_type, entity_id)

    # ------------------------------------------------------------------
    # Catalog and stock
    # ------------------------------------------------------------------

    @safe_operation("create_ingredient", "Ingredient created")
    def create_ingredient(self, data: Dict[str, Any], initial_purchase=None):
        return ingredient_service.create_ingredient(
            data, initial_purchase=initial_purchase, cache=self.cache
        )

    @safe_operation("list_ingredients")
    def list_ingredients(self, search: Optional[str] = None):
        return ingredient_service.get_all_ingredients(search=search, cache=self.cache)

    @safe_operation("create_recipe", "Recipe created")
    def create_recipe(self, data: Dict[str, Any], ingredients_data: List[Dict[str, Any]]):
        recipe = recipe_service.create_recipe(data, ingredients_data, cache=self.cache)
        return OperationResult.ok(
            data=recipe.to_dict(include_relationships=True),
            message="Recipe created",
            warnings=list(recipe.warnings),
        )

    @safe_operation("list_recipes")
    def list_recipes(self):
        return recipe_service.get_all_recipes(cache=self.cache)

    @safe_operation("list_products")
    def list_products(self):
        return product_service.get_all_products(cache=self.cache)

    @safe_operation("update_stock", "Stock updated")
    def update_stock(self, ingredient_id: int, quantity: float, movement_type: str, notes=None):
        return inventory_service.update_stock(
            ingredient_id, quantity, movement_type, notes=notes, cache=self.cache
        )

    @safe_operation("get_low_stock_ingredients")
    def get_low_stock_ingredients(self, threshold: Optional[float] = None):
        return inventory_service.get_low_stock_ingredients(threshold, cache=self.cache)

    @safe_operation("get_ingredient_purchases")
    def get_ingredient_purchases(self, ingredient_id: int, limit: Optional[int] = None):
        purchases = purchase_service.get_purchase_history(ingredient_id, limit=limit)
        return [purchase.to_dict() for purchase in purchases]

    @safe_operation("get_ingredient_price_stats")
    def get_ingredient_price_stats(self, ingredient_id: int):
        return price_history_service.get_price_stats(ENTITY_TYPE_INGREDIENT, ingredient_id)
