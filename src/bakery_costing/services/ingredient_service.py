"""Ingredient Service - ingredient catalog and cost maintenance.

This module provides:
- Ingredient CRUD (hard delete, refused while recipes use the ingredient)
- Manual cost updates with price history and cache invalidation
- Bulk percentage price increases, fanned out over a thread pool

Creating an ingredient is atomic on the ingredient row only. The empty
inventory row and the optional first purchase are follow-up steps whose
failures come back as warnings.

Cost changes never recompute recipes or products. They invalidate the
"ingredients" cache key, plus "recipes" and "products" when the value
actually changed; product caches need an explicit refresh.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import distinct, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Ingredient, RecipeIngredient
from ..utils.config import get_config
from ..utils.constants import (
    CACHE_KEY_INGREDIENTS,
    ENTITY_TYPE_INGREDIENT,
    REASON_BULK_INCREASE,
    REASON_MANUAL_COST_UPDATE,
)
from ..utils.validators import (
    validate_bulk_percentage,
    validate_ingredient_data,
    validate_non_negative_number,
)
from . import inventory_service, purchase_service
from .cache import (
    EVENT_INGREDIENT,
    EVENT_INGREDIENT_COST,
    CacheCoordinator,
    get_cache_coordinator,
    invalidate_after_write,
)
from .database import session_scope
from .dto import BatchResult, IngredientCreateResult, ItemResult
from .dto_utils import quantize_unit_cost, to_decimal
from .exceptions import (
    DatabaseError,
    DuplicateNameError,
    IngredientInUse,
    IngredientNotFoundError,
    ServiceError,
    ValidationError,
)
from .logging_utils import get_service_logger, log_operation
from .price_history_service import record_price_change
from .unit_converter import normalize_unit

logger = get_service_logger(__name__)

# Fields callers may set on create/update
INGREDIENT_FIELDS = (
    "name",
    "base_unit",
    "cost_per_base_unit",
    "supplier",
    "lead_time_days",
    "image_url",
    "notes",
)


def _clean_ingredient_data(data: Dict[str, Any]) -> Dict[str, Any]:
    cleaned = {key: data[key] for key in INGREDIENT_FIELDS if key in data}
    if "name" in cleaned and cleaned["name"] is not None:
        cleaned["name"] = cleaned["name"].strip()
    if "base_unit" in cleaned:
        cleaned["base_unit"] = normalize_unit(cleaned["base_unit"])
    if cleaned.get("cost_per_base_unit") is not None:
        cleaned["cost_per_base_unit"] = quantize_unit_cost(cleaned["cost_per_base_unit"])
    return cleaned


def _name_taken(session: Session, name: str, exclude_id: Optional[int] = None) -> bool:
    query = session.query(Ingredient.id).filter(func.lower(Ingredient.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Ingredient.id != exclude_id)
    return query.first() is not None


# ============================================================================
# CRUD
# ============================================================================


def create_ingredient(
    data: Dict[str, Any],
    initial_purchase: Optional[Dict[str, Any]] = None,
    cache: Optional[CacheCoordinator] = None,
) -> IngredientCreateResult:
    """
    Create a new ingredient.

    Args:
        data: Dictionary with ingredient fields:
            - name (required): unique ingredient name
            - base_unit (required): unit cost and stock are expressed in
            - cost_per_base_unit: starting cost (default 0)
            - supplier, lead_time_days, image_url, notes: optional
        initial_purchase: Optional first purchase, with quantity, unit,
            total_price and optional purchase_date, supplier, notes,
            affects_stock. Registered after the ingredient is created.
        cache: Optional cache coordinator

    Returns:
        IngredientCreateResult; warnings list failed follow-up steps

    Raises:
        ValidationError: If data is invalid
        DuplicateNameError: If an ingredient with the same name exists
        DatabaseError: If the ingredient cannot be saved

    Note:
        Setting the initial cost does not create a price history entry.
    """
    is_valid, errors = validate_ingredient_data(data)
    if not is_valid:
        raise ValidationError(errors)

    cache = cache or get_cache_coordinator()
    cleaned = _clean_ingredient_data(data)
    cleaned.setdefault("cost_per_base_unit", Decimal("0"))

    try:
        with session_scope() as session:
            if _name_taken(session, cleaned["name"]):
                raise DuplicateNameError("Ingredient", cleaned["name"])
            ingredient = Ingredient(**cleaned)
            session.add(ingredient)
            session.flush()
            ingredient_id = ingredient.id
    except ServiceError:
        raise
    except IntegrityError as e:
        raise DuplicateNameError("Ingredient", cleaned["name"]) from e
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to create ingredient", original_error=e)

    result = IngredientCreateResult(ingredient_id=ingredient_id, ingredient={})

    try:
        with session_scope() as session:
            inventory_service.ensure_inventory_item(session.get(Ingredient, ingredient_id), session)
    except SQLAlchemyError as e:
        result.warnings.append(f"Inventory record not created: {e}")
        log_operation(
            logger,
            operation="create_ingredient",
            outcome="inventory_create_failed",
            level=logging.WARNING,
            ingredient_id=ingredient_id,
            error=str(e),
        )

    if initial_purchase:
        try:
            result.purchase = purchase_service.register_purchase(
                ingredient_id,
                initial_purchase.get("quantity"),
                initial_purchase.get("unit") or cleaned["base_unit"],
                initial_purchase.get("total_price"),
                affects_stock=initial_purchase.get("affects_stock", True),
                purchase_date=initial_purchase.get("purchase_date"),
                supplier=initial_purchase.get("supplier"),
                notes=initial_purchase.get("notes"),
                cache=cache,
            )
            result.warnings.extend(result.purchase.warnings)
        except ServiceError as e:
            result.warnings.append(f"Initial purchase not registered: {e}")
            log_operation(
                logger,
                operation="create_ingredient",
                outcome="initial_purchase_failed",
                level=logging.WARNING,
                ingredient_id=ingredient_id,
                error=str(e),
            )

    invalidate_after_write(cache, EVENT_INGREDIENT, result.warnings, value_changed=False)
    result.ingredient = get_ingredient(ingredient_id).to_dict()

    log_operation(
        logger,
        operation="create_ingredient",
        outcome="success",
        ingredient_id=ingredient_id,
        warning_count=len(result.warnings),
    )
    return result


def get_ingredient(ingredient_id: int, session: Optional[Session] = None) -> Ingredient:
    """
    Retrieve an ingredient by ID.

    Raises:
        IngredientNotFoundError: If the ingredient doesn't exist
    """
    if session is not None:
        return _get_ingredient_impl(ingredient_id, session)
    try:
        with session_scope() as session:
            return _get_ingredient_impl(ingredient_id, session)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to load ingredient {ingredient_id}", original_error=e)


def _get_ingredient_impl(ingredient_id: int, session: Session) -> Ingredient:
    ingredient = session.get(Ingredient, ingredient_id)
    if ingredient is None:
        raise IngredientNotFoundError(ingredient_id)
    return ingredient


def get_all_ingredients(
    search: Optional[str] = None, cache: Optional[CacheCoordinator] = None
) -> List[Dict[str, Any]]:
    """
    List ingredients ordered by name.

    The unfiltered list is cached under "ingredients"; searches always hit
    the database.

    Args:
        search: Optional case-insensitive substring of the name
        cache: Optional cache coordinator

    Returns:
        List of ingredient dictionaries (with stock_on_hand)
    """
    if search:
        return _load_ingredients(search)
    cache = cache or get_cache_coordinator()
    return cache.get_or_compute(
        CACHE_KEY_INGREDIENTS, get_config().list_cache_ttl_seconds, _load_ingredients
    )


def _load_ingredients(search: Optional[str] = None) -> List[Dict[str, Any]]:
    try:
        with session_scope() as session:
            query = session.query(Ingredient)
            if search:
                query = query.filter(Ingredient.name.ilike(f"%{search.strip()}%"))
            return [ingredient.to_dict() for ingredient in query.order_by(Ingredient.name).all()]
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to list ingredients", original_error=e)


def update_ingredient(
    ingredient_id: int, data: Dict[str, Any], cache: Optional[CacheCoordinator] = None
) -> Dict[str, Any]:
    """
    Update ingredient fields.

    A cost_per_base_unit in data goes through update_ingredient_cost, so it
    gets the same history and invalidation as any other cost change.

    Args:
        ingredient_id: Ingredient to update
        data: Dictionary with fields to update (partial)
        cache: Optional cache coordinator

    Returns:
        Updated ingredient dictionary with a warnings list (history or
        cache steps that failed after the update committed)

    Raises:
        IngredientNotFoundError: If the ingredient doesn't exist
        ValidationError: If data is invalid
        DuplicateNameError: If the new name is taken
    """
    is_valid, errors = validate_ingredient_data(data, partial=True)
    if not is_valid:
        raise ValidationError(errors)

    cache = cache or get_cache_coordinator()
    cleaned = _clean_ingredient_data(data)
    new_cost = cleaned.pop("cost_per_base_unit", None)

    try:
        with session_scope() as session:
            ingredient = _get_ingredient_impl(ingredient_id, session)
            if "name" in cleaned and _name_taken(session, cleaned["name"], ingredient_id):
                raise DuplicateNameError("Ingredient", cleaned["name"])
            ingredient.update_from_dict(cleaned)
            if "base_unit" in cleaned and ingredient.inventory is not None:
                ingredient.inventory.unit = cleaned["base_unit"]
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to update ingredient {ingredient_id}", original_error=e)

    warnings: List[str] = []
    if cleaned:
        invalidate_after_write(cache, EVENT_INGREDIENT, warnings)

    if new_cost is not None:
        cost_outcome = update_ingredient_cost(ingredient_id, new_cost, cache=cache)
        warnings.extend(cost_outcome["warnings"])

    log_operation(
        logger,
        operation="update_ingredient",
        outcome="success",
        ingredient_id=ingredient_id,
        fields=sorted(cleaned) + (["cost_per_base_unit"] if new_cost is not None else []),
        warning_count=len(warnings),
    )
    updated = get_ingredient(ingredient_id).to_dict()
    updated["warnings"] = warnings
    return updated


def delete_ingredient(ingredient_id: int, cache: Optional[CacheCoordinator] = None) -> bool:
    """
    Delete an ingredient with its inventory row and purchases.

    Raises:
        IngredientNotFoundError: If the ingredient doesn't exist
        IngredientInUse: If any recipe line references the ingredient
    """
    cache = cache or get_cache_coordinator()

    try:
        with session_scope() as session:
            ingredient = _get_ingredient_impl(ingredient_id, session)
            recipe_count = (
                session.query(func.count(distinct(RecipeIngredient.recipe_id)))
                .filter(RecipeIngredient.ingredient_id == ingredient_id)
                .scalar()
            )
            if recipe_count:
                raise IngredientInUse(ingredient_id, recipe_count)
            session.delete(ingredient)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to delete ingredient {ingredient_id}", original_error=e)

    invalidate_after_write(cache, EVENT_INGREDIENT, [], value_changed=False)
    log_operation(
        logger, operation="delete_ingredient", outcome="success", ingredient_id=ingredient_id
    )
    return True


# ============================================================================
# Cost maintenance
# ============================================================================


def update_ingredient_cost(
    ingredient_id: int,
    new_cost,
    reason: str = REASON_MANUAL_COST_UPDATE,
    cache: Optional[CacheCoordinator] = None,
) -> Dict[str, Any]:
    """
    Set an ingredient's cost per base unit by hand.

    Args:
        ingredient_id: Ingredient to update
        new_cost: New cost per base unit (>= 0)
        reason: Price history reason
        cache: Optional cache coordinator

    Returns:
        Dictionary with ingredient_id, old_cost, new_cost, cost_changed,
        invalidated_keys and warnings

    Raises:
        ValidationError: If new_cost is negative or not a number
        IngredientNotFoundError: If the ingredient doesn't exist
    """
    is_valid, error = validate_non_negative_number(new_cost, "Cost per base unit")
    if not is_valid:
        raise ValidationError([error])

    target = quantize_unit_cost(new_cost)
    return _set_ingredient_cost(ingredient_id, lambda _old: target, reason, cache)


def _set_ingredient_cost(
    ingredient_id: int,
    compute_new_cost: Callable[[Decimal], Decimal],
    reason: str,
    cache: Optional[CacheCoordinator],
) -> Dict[str, Any]:
    cache = cache or get_cache_coordinator()

    try:
        with session_scope() as session:
            ingredient = _get_ingredient_impl(ingredient_id, session)
            old_cost = to_decimal(ingredient.cost_per_base_unit)
            new_cost = compute_new_cost(old_cost)
            ingredient.cost_per_base_unit = new_cost
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(
            f"Failed to update cost of ingredient {ingredient_id}", original_error=e
        )

    changed = new_cost != old_cost
    outcome = {
        "ingredient_id": ingredient_id,
        "old_cost": str(old_cost),
        "new_cost": str(new_cost),
        "cost_changed": changed,
        "invalidated_keys": [],
        "warnings": [],
    }

    if changed:
        try:
            record_price_change(ENTITY_TYPE_INGREDIENT, ingredient_id, old_cost, new_cost, reason)
        except ServiceError as e:
            outcome["warnings"].append(f"Price history not recorded: {e}")
            log_operation(
                logger,
                operation="update_ingredient_cost",
                outcome="history_failed",
                level=logging.WARNING,
                ingredient_id=ingredient_id,
                error=str(e),
            )

    outcome["invalidated_keys"] = sorted(
        invalidate_after_write(
            cache, EVENT_INGREDIENT_COST, outcome["warnings"], value_changed=changed
        )
    )

    log_operation(
        logger,
        operation="update_ingredient_cost",
        outcome="success" if changed else "unchanged",
        ingredient_id=ingredient_id,
        old_cost=str(old_cost),
        new_cost=str(new_cost),
    )
    return outcome


def bulk_update_ingredient_prices(
    percentage,
    ingredient_ids: Optional[List[int]] = None,
    max_workers: Optional[int] = None,
    cache: Optional[CacheCoordinator] = None,
) -> BatchResult:
    """
    Raise ingredient costs by a percentage.

    Each ingredient is updated in its own transaction on a worker thread.
    There is no batch atomicity: items that succeed stay updated when others
    fail, nothing is retried, and the result is returned once every item
    has settled.

    Args:
        percentage: Increase in percent, in (0, 100]
        ingredient_ids: Ingredients to update (all when None)
        max_workers: Thread pool size (configured bulk_update_workers when None)
        cache: Optional cache coordinator

    Returns:
        BatchResult with one ItemResult per ingredient, in input order

    Raises:
        ValidationError: If percentage is outside (0, 100]
    """
    is_valid, error = validate_bulk_percentage(percentage)
    if not is_valid:
        raise ValidationError([error])

    factor = 1 + to_decimal(percentage) / Decimal("100")
    cache = cache or get_cache_coordinator()

    if ingredient_ids is None:
        try:
            with session_scope() as session:
                ingredient_ids = [
                    row.id for row in session.query(Ingredient.id).order_by(Ingredient.id).all()
                ]
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to list ingredients", original_error=e)

    def increase(ingredient_id: int) -> Dict[str, Any]:
        return _set_ingredient_cost(
            ingredient_id,
            lambda old: quantize_unit_cost(old * factor),
            REASON_BULK_INCREASE,
            cache,
        )

    workers = max_workers or get_config().bulk_update_workers
    batch = BatchResult()

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [
            (ingredient_id, executor.submit(increase, ingredient_id))
            for ingredient_id in ingredient_ids
        ]
        for ingredient_id, future in futures:
            try:
                batch.items.append(ItemResult(id=ingredient_id, success=True, data=future.result()))
            except (ServiceError, ValueError) as e:
                batch.items.append(ItemResult(id=ingredient_id, success=False, error=str(e)))
                log_operation(
                    logger,
                    operation="bulk_update_ingredient_prices",
                    outcome="item_failed",
                    level=logging.WARNING,
                    ingredient_id=ingredient_id,
                    error=str(e),
                )

    log_operation(
        logger,
        operation="bulk_update_ingredient_prices",
        outcome="completed",
        percentage=str(percentage),
        total=batch.total,
        succeeded=batch.success_count,
        failed=batch.failure_count,
    )
    return batch
