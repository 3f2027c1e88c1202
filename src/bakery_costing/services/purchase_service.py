"""Purchase Service - purchase registration and ingredient unit cost.

Registering a purchase recomputes the ingredient's cost per base unit from
what was paid: the purchased quantity is converted into the ingredient's
base unit (incompatible units are rejected) and the latest purchase always
wins; there is no weighted average.

Steps of register_purchase, in order:

1. Validate input and load the ingredient
2. Convert the quantity into the base unit and compute the unit cost
3. Persist the purchase and the new ingredient cost in ONE transaction
4. Add stock and record an IN movement (separate step)
5. Record price history when the cost changed
6. Invalidate dependent cache keys

Steps 4-6 never undo step 3. Their failures are logged and returned as
warnings on the PurchaseResult.

Example Usage:
    >>> from decimal import Decimal
    >>> result = register_purchase(
    ...     ingredient_id=1, quantity=1, unit="kg", total_price=Decimal("2000")
    ... )
    >>> result.calculated_unit_cost   # ingredient base unit is "g"
    Decimal('2.000000')
"""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Ingredient, Purchase
from ..utils.constants import ENTITY_TYPE_INGREDIENT, MOVEMENT_IN, REASON_PURCHASE
from ..utils.datetime_utils import today
from ..utils.validators import validate_purchase_data
from . import inventory_service
from .cache import (
    EVENT_INGREDIENT_COST,
    EVENT_PURCHASE,
    CacheCoordinator,
    get_cache_coordinator,
)
from .database import session_scope
from .dto import PurchaseResult
from .dto_utils import quantize_unit_cost, to_decimal
from .exceptions import (
    DatabaseError,
    DivisionByZeroError,
    IngredientNotFoundError,
    PurchaseNotFoundError,
    ServiceError,
    ValidationError,
)
from .logging_utils import get_service_logger, log_operation
from .price_history_service import record_price_change
from .unit_converter import UnitMismatchPolicy, quantity_in_base_unit

logger = get_service_logger(__name__)


def calculate_unit_cost(total_price, converted_quantity: float) -> Decimal:
    """
    Cost of one base unit given the amount paid and the base-unit quantity.

    Raises:
        ValueError: If converted_quantity is zero (callers raise
            DivisionByZeroError with context first)

    Example:
        >>> calculate_unit_cost(Decimal("2000"), 1000.0)
        Decimal('2.000000')
    """
    if converted_quantity == 0:
        raise ValueError("converted_quantity must not be zero")
    return quantize_unit_cost(to_decimal(total_price) / to_decimal(converted_quantity))


def register_purchase(
    ingredient_id: int,
    quantity: float,
    unit: str,
    total_price,
    affects_stock: bool = True,
    purchase_date: Optional[date] = None,
    supplier: Optional[str] = None,
    notes: Optional[str] = None,
    cache: Optional[CacheCoordinator] = None,
) -> PurchaseResult:
    """Register a purchase and overwrite the ingredient's unit cost.

    Args:
        ingredient_id: Ingredient purchased
        quantity: Quantity purchased (> 0) in unit
        unit: Purchase unit; must be convertible to the ingredient base unit
        total_price: Amount paid (>= 0)
        affects_stock: Add the converted quantity to stock (default True)
        purchase_date: Date of purchase (defaults to today)
        supplier: Optional supplier name (defaults to the ingredient's)
        notes: Optional notes
        cache: Optional cache coordinator

    Returns:
        PurchaseResult

    Raises:
        ValidationError: If quantity, unit or total_price is invalid
        IngredientNotFoundError: If the ingredient does not exist
        UnknownUnitError: If unit is not a known unit
        IncompatibleUnitsError: If unit cannot convert to the base unit
        DivisionByZeroError: If quantity converts to zero base units
        DatabaseError: If the purchase transaction fails
    """
    is_valid, errors = validate_purchase_data(quantity, unit, total_price)
    if not is_valid:
        raise ValidationError(errors)

    cache = cache or get_cache_coordinator()
    quantity = float(quantity)
    price = to_decimal(total_price)

    try:
        with session_scope() as session:
            ingredient = session.get(Ingredient, ingredient_id)
            if ingredient is None:
                raise IngredientNotFoundError(ingredient_id)

            converted_quantity = quantity_in_base_unit(
                quantity, unit, ingredient.base_unit, UnitMismatchPolicy.REJECT
            )
            if converted_quantity == 0:
                raise DivisionByZeroError(quantity, unit, ingredient.base_unit)

            unit_cost = calculate_unit_cost(price, converted_quantity)
            previous_cost = to_decimal(ingredient.cost_per_base_unit)

            purchase = Purchase(
                ingredient_id=ingredient_id,
                purchase_date=purchase_date or today(),
                quantity_purchased=quantity,
                unit_purchased=unit.strip(),
                total_price=price,
                calculated_unit_cost=unit_cost,
                affects_stock=affects_stock,
                supplier=supplier or ingredient.supplier,
                notes=notes,
            )
            session.add(purchase)
            ingredient.cost_per_base_unit = unit_cost
            session.flush()
            purchase_id = purchase.id
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to record purchase", original_error=e)

    result = PurchaseResult(
        purchase_id=purchase_id,
        ingredient_id=ingredient_id,
        calculated_unit_cost=unit_cost,
        converted_quantity=converted_quantity,
        previous_unit_cost=previous_cost,
        cost_changed=unit_cost != previous_cost,
    )

    if affects_stock:
        _add_purchased_stock(result, cache)

    if result.cost_changed:
        try:
            record_price_change(
                ENTITY_TYPE_INGREDIENT,
                ingredient_id,
                previous_cost,
                unit_cost,
                reason=REASON_PURCHASE,
            )
        except ServiceError as e:
            _warn(result, "history_failed", f"Price history not recorded: {e}")

    try:
        cache.invalidate_for(EVENT_INGREDIENT_COST, value_changed=result.cost_changed)
        cache.invalidate_for(EVENT_PURCHASE)
    except Exception as e:
        _warn(result, "cache_invalidation_failed", f"Cache not invalidated: {e}")

    log_operation(
        logger,
        operation="register_purchase",
        outcome="success",
        purchase_id=purchase_id,
        ingredient_id=ingredient_id,
        unit_cost=str(unit_cost),
        previous_cost=str(previous_cost),
        inventory_delta=result.inventory_delta,
        warning_count=len(result.warnings),
    )
    return result


def _add_purchased_stock(result: PurchaseResult, cache: CacheCoordinator) -> None:
    try:
        stock = inventory_service.update_stock(
            result.ingredient_id,
            result.converted_quantity,
            MOVEMENT_IN,
            notes=f"Purchase #{result.purchase_id}",
            purchase_id=result.purchase_id,
            cache=cache,
        )
    except ServiceError as e:
        _warn(result, "stock_update_failed", f"Stock not updated: {e}")
        return
    result.inventory_delta = result.converted_quantity
    result.stock_on_hand = stock["quantity"]
    for message in stock["warnings"]:
        _warn(result, "stock_cache_invalidation_failed", message)


def _warn(result: PurchaseResult, outcome: str, message: str) -> None:
    result.warnings.append(message)
    log_operation(
        logger,
        operation="register_purchase",
        outcome=outcome,
        level=logging.WARNING,
        purchase_id=result.purchase_id,
        ingredient_id=result.ingredient_id,
        error=message,
    )


def get_purchase(purchase_id: int, session: Optional[Session] = None) -> Purchase:
    """Retrieve purchase record by ID.

    Raises:
        PurchaseNotFoundError: If purchase_id doesn't exist
    """
    if session is not None:
        return _get_purchase_impl(purchase_id, session)
    try:
        with session_scope() as session:
            return _get_purchase_impl(purchase_id, session)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to load purchase {purchase_id}", original_error=e)


def _get_purchase_impl(purchase_id: int, session: Session) -> Purchase:
    purchase = session.get(Purchase, purchase_id)
    if purchase is None:
        raise PurchaseNotFoundError(purchase_id)
    return purchase


def get_purchase_history(
    ingredient_id: int, limit: Optional[int] = None, session: Optional[Session] = None
) -> List[Purchase]:
    """Get purchases of an ingredient, newest first.

    Args:
        ingredient_id: Ingredient id
        limit: Optional maximum number of purchases
        session: Optional database session

    Raises:
        IngredientNotFoundError: If the ingredient does not exist
    """
    if session is not None:
        return _get_purchase_history_impl(ingredient_id, limit, session)
    try:
        with session_scope() as session:
            return _get_purchase_history_impl(ingredient_id, limit, session)
    except SQLAlchemyError as e:
        raise DatabaseError(
            f"Failed to load purchases for ingredient {ingredient_id}", original_error=e
        )


def _get_purchase_history_impl(
    ingredient_id: int, limit: Optional[int], session: Session
) -> List[Purchase]:
    if session.get(Ingredient, ingredient_id) is None:
        raise IngredientNotFoundError(ingredient_id)

    query = (
        session.query(Purchase)
        .filter(Purchase.ingredient_id == ingredient_id)
        .order_by(Purchase.purchase_date.desc(), Purchase.id.desc())
    )
    if limit is not None:
        query = query.limit(limit)
    return query.all()
