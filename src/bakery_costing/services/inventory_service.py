"""Inventory Service - stock on hand and the stock movement ledger.

Stock is tracked per ingredient in the ingredient's base unit. Every change
goes through update_stock, which adjusts the InventoryItem row and appends
an InventoryMovement in the same transaction. Stock can never go negative.

All functions are stateless and use session_scope() for transaction
management unless a session is passed in.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Ingredient, InventoryItem, InventoryMovement
from ..utils.config import get_config
from ..utils.constants import (
    CACHE_KEY_INVENTORY,
    CACHE_KEY_LOW_STOCK,
    DEFAULT_MOVEMENT_LIMIT,
    MOVEMENT_OUT,
    MOVEMENT_TYPES,
)
from ..utils.datetime_utils import utc_now
from .cache import (
    EVENT_STOCK,
    CacheCoordinator,
    get_cache_coordinator,
    invalidate_after_write,
)
from .database import session_scope
from .exceptions import (
    DatabaseError,
    IngredientNotFoundError,
    InsufficientStock,
    ServiceError,
    ValidationError,
)
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)


def _stock_to_dict(ingredient: Ingredient) -> Dict[str, Any]:
    item = ingredient.inventory
    return {
        "ingredient_id": ingredient.id,
        "ingredient_name": ingredient.name,
        "quantity": item.quantity if item else 0.0,
        "unit": item.unit if item else ingredient.base_unit,
        "location": item.location if item else None,
        "last_updated": item.last_updated.isoformat() if item and item.last_updated else None,
    }


def ensure_inventory_item(ingredient: Ingredient, session: Session) -> InventoryItem:
    """
    Return the ingredient's inventory row, creating an empty one if missing.

    Args:
        ingredient: Persistent ingredient
        session: Session the ingredient belongs to

    Returns:
        InventoryItem (flushed)
    """
    if ingredient.inventory is None:
        ingredient.inventory = InventoryItem(
            quantity=0.0,
            unit=ingredient.base_unit,
            last_updated=utc_now(),
        )
        session.flush()
    return ingredient.inventory


def get_stock(ingredient_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
    """
    Get the stock on hand of one ingredient.

    Returns:
        Dictionary with ingredient_id, ingredient_name, quantity, unit,
        location, last_updated (quantity 0.0 when no row exists yet)

    Raises:
        IngredientNotFoundError: If the ingredient does not exist
    """
    if session is not None:
        return _get_stock_impl(ingredient_id, session)
    try:
        with session_scope() as session:
            return _get_stock_impl(ingredient_id, session)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to load stock for ingredient {ingredient_id}", e)


def _get_stock_impl(ingredient_id: int, session: Session) -> Dict[str, Any]:
    ingredient = session.get(Ingredient, ingredient_id)
    if ingredient is None:
        raise IngredientNotFoundError(ingredient_id)
    return _stock_to_dict(ingredient)


def update_stock(
    ingredient_id: int,
    quantity: float,
    movement_type: str,
    notes: Optional[str] = None,
    purchase_id: Optional[int] = None,
    cache: Optional[CacheCoordinator] = None,
) -> Dict[str, Any]:
    """
    Add (IN) or remove (OUT) stock and record the movement.

    Args:
        ingredient_id: Ingredient whose stock changes
        quantity: Amount in the ingredient's base unit (> 0)
        movement_type: "IN" or "OUT"
        notes: Optional movement notes
        purchase_id: Purchase that produced the movement, if any
        cache: Optional cache coordinator

    Returns:
        Stock dictionary after the change (see get_stock) with a warnings list

    Raises:
        ValidationError: If quantity <= 0 or movement_type is unknown
        IngredientNotFoundError: If the ingredient does not exist
        InsufficientStock: If an OUT movement exceeds the stock on hand
        DatabaseError: If database operation fails
    """
    errors = []
    if movement_type not in MOVEMENT_TYPES:
        errors.append(f"Movement type must be one of {MOVEMENT_TYPES}")
    try:
        quantity = float(quantity)
        if quantity <= 0:
            errors.append("Quantity must be greater than zero")
    except (TypeError, ValueError):
        errors.append("Quantity must be a number")
    if errors:
        raise ValidationError(errors)

    cache = cache or get_cache_coordinator()

    try:
        with session_scope() as session:
            ingredient = session.get(Ingredient, ingredient_id)
            if ingredient is None:
                raise IngredientNotFoundError(ingredient_id)

            item = ensure_inventory_item(ingredient, session)
            current = item.quantity or 0.0

            if movement_type == MOVEMENT_OUT:
                if quantity > current:
                    raise InsufficientStock(ingredient.name, quantity, current)
                item.quantity = current - quantity
                signed_quantity = -quantity
            else:
                item.quantity = current + quantity
                signed_quantity = quantity
            item.last_updated = utc_now()

            session.add(
                InventoryMovement(
                    ingredient_id=ingredient_id,
                    quantity=signed_quantity,
                    movement_type=movement_type,
                    purchase_id=purchase_id,
                    notes=notes,
                )
            )
            session.flush()
            stock = _stock_to_dict(ingredient)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to update stock for ingredient {ingredient_id}", e)

    stock["warnings"] = []
    invalidate_after_write(cache, EVENT_STOCK, stock["warnings"])

    log_operation(
        logger,
        operation="update_stock",
        outcome="success",
        ingredient_id=ingredient_id,
        movement_type=movement_type,
        quantity=quantity,
        stock_on_hand=stock["quantity"],
    )
    return stock


def set_stock_location(ingredient_id: int, location: Optional[str]) -> Dict[str, Any]:
    """Record where an ingredient is stored."""
    try:
        with session_scope() as session:
            ingredient = session.get(Ingredient, ingredient_id)
            if ingredient is None:
                raise IngredientNotFoundError(ingredient_id)
            item = ensure_inventory_item(ingredient, session)
            item.location = location.strip() if location else None
            return _stock_to_dict(ingredient)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to set location for ingredient {ingredient_id}", e)


def get_stock_movements(
    ingredient_id: Optional[int] = None, limit: Optional[int] = DEFAULT_MOVEMENT_LIMIT
) -> List[Dict[str, Any]]:
    """
    Get stock movements, newest first.

    Args:
        ingredient_id: Optional filter by ingredient
        limit: Maximum number of movements (None for all)

    Returns:
        List of movement dictionaries with ingredient_name added
    """
    try:
        with session_scope() as session:
            query = session.query(InventoryMovement, Ingredient.name).join(
                Ingredient, InventoryMovement.ingredient_id == Ingredient.id
            )
            if ingredient_id is not None:
                query = query.filter(InventoryMovement.ingredient_id == ingredient_id)
            query = query.order_by(InventoryMovement.created_at.desc(), InventoryMovement.id.desc())
            if limit is not None:
                query = query.limit(limit)

            movements = []
            for movement, ingredient_name in query.all():
                data = movement.to_dict()
                data["ingredient_name"] = ingredient_name
                movements.append(data)
            return movements
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to load stock movements", e)


def get_inventory(cache: Optional[CacheCoordinator] = None) -> List[Dict[str, Any]]:
    """
    Stock of every ingredient, ordered by name. Cached under "inventory".
    """
    cache = cache or get_cache_coordinator()
    return cache.get_or_compute(
        CACHE_KEY_INVENTORY, get_config().list_cache_ttl_seconds, _load_inventory
    )


def _load_inventory() -> List[Dict[str, Any]]:
    try:
        with session_scope() as session:
            ingredients = session.query(Ingredient).order_by(Ingredient.name).all()
            return [_stock_to_dict(ingredient) for ingredient in ingredients]
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to load inventory", e)


def get_low_stock_ingredients(
    threshold: Optional[float] = None, cache: Optional[CacheCoordinator] = None
) -> List[Dict[str, Any]]:
    """
    Ingredients whose stock on hand is at or below a threshold.

    Args:
        threshold: Quantity threshold in each ingredient's base unit
            (configured low_stock_threshold when None)
        cache: Optional cache coordinator; only the default-threshold report
            is cached, under "low_stock"

    Returns:
        Stock dictionaries, lowest quantity first
    """
    if threshold is None:
        cache = cache or get_cache_coordinator()
        default_threshold = get_config().low_stock_threshold
        return cache.get_or_compute(
            CACHE_KEY_LOW_STOCK,
            get_config().list_cache_ttl_seconds,
            lambda: _load_low_stock(default_threshold),
        )
    return _load_low_stock(threshold)


def _load_low_stock(threshold: float) -> List[Dict[str, Any]]:
    stock = [row for row in _load_inventory() if row["quantity"] <= threshold]
    stock.sort(key=lambda row: (row["quantity"], row["ingredient_name"]))
    log_operation(
        logger,
        operation="get_low_stock_ingredients",
        outcome="success",
        level=logging.DEBUG,
        threshold=threshold,
        count=len(stock),
    )
    return stock

