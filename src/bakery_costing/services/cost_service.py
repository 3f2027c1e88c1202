"""Cost Service - recipe costing and product price derivation.

This module is the cost cascade:

- compute_line_cost / compute_recipe_cost: pure functions turning recipe
  lines into money, converting each line into its ingredient's base unit
  (or using the quantity as-is when the units are not compatible)
- compute_suggested_price / preserved_markup_percent: markup arithmetic
- calculate_recipe_cost: load a recipe and cost it
- refresh_product_cost: recompute a product's cached cost and price from its
  recipe, keeping the product's current margin
- refresh_all_product_costs: best-effort refresh of every recipe-backed product

Product caches are only written by the refresh functions and by product
creation. Ingredient cost changes invalidate cache keys but never trigger a
refresh on their own.
"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Product, Recipe
from ..utils.config import get_config
from ..utils.constants import ENTITY_TYPE_PRODUCT, REASON_PRODUCT_REFRESH
from .cache import (
    EVENT_PRODUCT,
    CacheCoordinator,
    get_cache_coordinator,
    invalidate_after_write,
)
from .database import session_scope
from .dto import BatchResult, ItemResult, LineCost, ProductCostRefresh, RecipeCost
from .dto_utils import quantize_cost, to_decimal
from .exceptions import (
    DatabaseError,
    ProductHasNoRecipeError,
    ProductNotFoundError,
    RecipeHasNoIngredientsError,
    RecipeNotFoundError,
    ServiceError,
    ValidationError,
)
from .logging_utils import get_service_logger, log_operation
from .price_history_service import record_price_change
from .unit_converter import (
    UnitMismatchPolicy,
    normalize_unit,
    quantity_in_base_unit,
    units_compatible,
)

logger = get_service_logger(__name__)

HUNDRED = Decimal("100")


# ============================================================================
# Pure computations
# ============================================================================


def compute_line_cost(
    quantity: float,
    unit: str,
    base_unit: str,
    cost_per_base_unit,
    on_unit_mismatch: UnitMismatchPolicy = UnitMismatchPolicy.FALLBACK,
    ingredient_id: Optional[int] = None,
    ingredient_name: str = "",
) -> LineCost:
    """
    Cost one recipe line.

    Args:
        quantity: Line quantity (> 0) in unit
        unit: Line unit
        base_unit: Ingredient base unit
        cost_per_base_unit: Ingredient cost per base unit (>= 0)
        on_unit_mismatch: FALLBACK uses the quantity as-is when the units
            cannot be converted; REJECT raises
        ingredient_id: Optional id, carried into the result
        ingredient_name: Optional name, carried into the result

    Returns:
        LineCost with line_cost = quantity_in_base_unit * cost_per_base_unit

    Example:
        >>> compute_line_cost(0.5, "kg", "g", Decimal("0.002")).line_cost
        Decimal('1.0000')
    """
    base_quantity = quantity_in_base_unit(quantity, unit, base_unit, on_unit_mismatch)
    converted = normalize_unit(unit) == normalize_unit(base_unit) or units_compatible(
        unit, base_unit
    )
    unit_cost = to_decimal(cost_per_base_unit)
    line_cost = to_decimal(base_quantity) * unit_cost

    return LineCost(
        ingredient_id=ingredient_id,
        ingredient_name=ingredient_name,
        quantity=quantity,
        unit=unit,
        base_unit=base_unit,
        quantity_in_base_unit=base_quantity,
        converted=converted,
        cost_per_base_unit=unit_cost,
        line_cost=line_cost,
    )


def compute_recipe_cost(recipe: Recipe) -> RecipeCost:
    """
    Compute a recipe's total cost and cost per serving.

    Side-effect free: reads the recipe's lines and their ingredients' current
    costs, writes nothing.

    Args:
        recipe: Recipe with recipe_ingredients (and their ingredients) loaded

    Returns:
        RecipeCost; total_cost is the exact sum of the line costs

    Raises:
        RecipeHasNoIngredientsError: If the recipe has no lines
        ValidationError: If servings < 1
    """
    lines = list(recipe.recipe_ingredients or [])
    if not lines:
        raise RecipeHasNoIngredientsError(recipe.id, recipe.name)

    servings = recipe.servings
    if servings is None or servings < 1:
        raise ValidationError([f"Servings must be at least 1, got {servings}"])

    line_costs = []
    for line in lines:
        ingredient = line.ingredient
        line_cost = compute_line_cost(
            line.quantity,
            line.unit,
            ingredient.base_unit,
            ingredient.cost_per_base_unit,
            on_unit_mismatch=UnitMismatchPolicy.FALLBACK,
            ingredient_id=ingredient.id,
            ingredient_name=ingredient.name,
        )
        if not line_cost.converted:
            logger.debug(
                f"Recipe '{recipe.name}': '{line.unit}' not convertible to "
                f"'{ingredient.base_unit}' for {ingredient.name}; using quantity as-is"
            )
        line_costs.append(line_cost)

    total_cost = sum((line.line_cost for line in line_costs), Decimal("0"))
    cost_per_serving = total_cost / Decimal(servings)

    return RecipeCost(
        recipe_id=recipe.id,
        recipe_name=recipe.name,
        servings=servings,
        total_cost=total_cost,
        cost_per_serving=cost_per_serving,
        line_costs=line_costs,
    )


def compute_suggested_price(base_cost, markup_percent) -> Decimal:
    """
    Apply a markup to a base cost.

    Args:
        base_cost: Cost per serving (>= 0)
        markup_percent: Markup in percent (>= 0, no upper bound)

    Returns:
        base_cost * (1 + markup_percent / 100), rounded to 4 places

    Raises:
        ValidationError: If either value is negative

    Example:
        >>> compute_suggested_price(Decimal("100"), Decimal("60"))
        Decimal('160.0000')
    """
    cost = to_decimal(base_cost)
    markup = to_decimal(markup_percent)
    errors = []
    if cost < 0:
        errors.append("Base cost cannot be negative")
    if markup < 0:
        errors.append("Markup cannot be negative")
    if errors:
        raise ValidationError(errors)
    return _apply_markup(cost, markup)


def _apply_markup(base_cost: Decimal, markup_percent: Decimal) -> Decimal:
    return quantize_cost(base_cost * (1 + markup_percent / HUNDRED))


def preserved_markup_percent(base_cost, suggested_price) -> Optional[Decimal]:
    """
    The markup currently embedded in a product's cached cost and price.

    Returns:
        ((suggested_price / base_cost) - 1) * 100, or None when base_cost is 0

    Example:
        >>> preserved_markup_percent(Decimal("100"), Decimal("160"))
        Decimal('60.0')
    """
    cost = to_decimal(base_cost)
    if cost == 0:
        return None
    return (to_decimal(suggested_price) / cost - 1) * HUNDRED


# ============================================================================
# Persistence-backed operations
# ============================================================================


def calculate_recipe_cost(recipe_id: int, session: Optional[Session] = None) -> RecipeCost:
    """
    Load a recipe and compute its cost.

    Args:
        recipe_id: Recipe id
        session: Optional database session

    Returns:
        RecipeCost

    Raises:
        RecipeNotFoundError: If the recipe does not exist
        RecipeHasNoIngredientsError: If the recipe has no lines
        DatabaseError: If database operation fails
    """
    if session is not None:
        return _calculate_recipe_cost_impl(recipe_id, session)
    try:
        with session_scope() as session:
            return _calculate_recipe_cost_impl(recipe_id, session)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to cost recipe {recipe_id}", original_error=e)


def _calculate_recipe_cost_impl(recipe_id: int, session: Session) -> RecipeCost:
    recipe = session.get(Recipe, recipe_id)
    if recipe is None:
        raise RecipeNotFoundError(recipe_id)
    result = compute_recipe_cost(recipe)
    log_operation(
        logger,
        operation="calculate_recipe_cost",
        outcome="success",
        level=logging.DEBUG,
        recipe_id=recipe_id,
        total_cost=str(result.total_cost),
    )
    return result


def refresh_product_cost(
    product_id: int, cache: Optional[CacheCoordinator] = None
) -> ProductCostRefresh:
    """
    Recompute a product's cached base cost and suggested price.

    The new base cost is the recipe's current cost per serving. The current
    margin (old_price / old_cost - 1) is preserved; when the old base cost
    is zero the margin is undefined and the configured default markup is
    used. The product update is one transaction; the history entry and the
    cache invalidation that follow are reported as warnings if they fail.

    Args:
        product_id: Product id
        cache: Optional cache coordinator (process-wide one when None)

    Returns:
        ProductCostRefresh

    Raises:
        ProductNotFoundError: If the product does not exist
        ProductHasNoRecipeError: If the product has no recipe
        RecipeHasNoIngredientsError: If the recipe has no lines
        DatabaseError: If database operation fails
    """
    cache = cache or get_cache_coordinator()

    try:
        with session_scope() as session:
            product = session.get(Product, product_id)
            if product is None:
                raise ProductNotFoundError(product_id)
            if product.recipe is None:
                raise ProductHasNoRecipeError(product_id)

            recipe_cost = compute_recipe_cost(product.recipe)

            old_cost = to_decimal(product.base_cost_cache)
            old_price = to_decimal(product.suggested_price_cache)
            markup = preserved_markup_percent(old_cost, old_price)
            if markup is None:
                markup = to_decimal(get_config().default_markup_percent)

            new_cost = quantize_cost(recipe_cost.cost_per_serving)
            new_price = _apply_markup(new_cost, markup)

            product.base_cost_cache = new_cost
            product.suggested_price_cache = new_price
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to refresh product {product_id}", original_error=e)

    result = ProductCostRefresh(
        product_id=product_id,
        old_base_cost=old_cost,
        new_base_cost=new_cost,
        old_suggested_price=old_price,
        new_suggested_price=new_price,
        markup_percent=markup,
        price_changed=new_price != old_price,
    )

    if result.price_changed:
        try:
            record_price_change(
                ENTITY_TYPE_PRODUCT,
                product_id,
                old_price,
                new_price,
                reason=REASON_PRODUCT_REFRESH,
            )
        except ServiceError as e:
            result.warnings.append(f"Price history not recorded: {e}")
            log_operation(
                logger,
                operation="refresh_product_cost",
                outcome="history_failed",
                level=logging.WARNING,
                product_id=product_id,
                error=str(e),
            )

    invalidate_after_write(cache, EVENT_PRODUCT, result.warnings)

    log_operation(
        logger,
        operation="refresh_product_cost",
        outcome="success",
        product_id=product_id,
        old_price=str(old_price),
        new_price=str(new_price),
    )
    return result


def refresh_all_product_costs(cache: Optional[CacheCoordinator] = None) -> BatchResult:
    """
    Refresh every product that has a recipe, one at a time.

    Individual failures are recorded and the loop continues; successful
    refreshes are never rolled back because a later one failed.

    Returns:
        BatchResult with one ItemResult per product
    """
    cache = cache or get_cache_coordinator()

    try:
        with session_scope() as session:
            product_ids = [
                row.id
                for row in session.query(Product.id)
                .filter(Product.recipe_id.isnot(None))
                .order_by(Product.id)
                .all()
            ]
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to list products for refresh", original_error=e)

    batch = BatchResult()
    for product_id in product_ids:
        try:
            refresh = refresh_product_cost(product_id, cache=cache)
            batch.items.append(ItemResult(id=product_id, success=True, data=refresh.to_dict()))
        except (ServiceError, ValueError) as e:
            batch.items.append(ItemResult(id=product_id, success=False, error=str(e)))
            log_operation(
                logger,
                operation="refresh_all_product_costs",
                outcome="item_failed",
                level=logging.WARNING,
                product_id=product_id,
                error=str(e),
            )

    log_operation(
        logger,
        operation="refresh_all_product_costs",
        outcome="completed",
        total=batch.total,
        succeeded=batch.success_count,
        failed=batch.failure_count,
    )
    return batch
