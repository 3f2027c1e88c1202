"""Price History Service - append-only log of cost and price changes.

This module records every change to an ingredient's cost_per_base_unit or a
product's suggested_price_cache, and derives statistics from the log on read.

All functions are stateless. Each accepts an optional session so callers
that already hold a transaction can record history inside it; otherwise a
new session_scope() is opened.

Example Usage:
    >>> from decimal import Decimal
    >>> from bakery_costing.services.price_history_service import (
    ...     record_price_change, get_price_stats
    ... )
    >>> record_price_change("ingredient", 1, Decimal("1.50"), Decimal("2.00"))
    >>> stats = get_price_stats("ingredient", 1)
    >>> stats.last
    Decimal('2.000000')
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import PriceHistoryEntry
from ..utils.constants import (
    PRICE_HISTORY_ENTITY_TYPES,
    REASON_MANUAL_PRICE_CHANGE,
)
from ..utils.datetime_utils import utc_now
from .database import session_scope
from .dto import PriceStats
from .dto_utils import quantize_cents, to_decimal
from .exceptions import DatabaseError, ValidationError
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)

PERCENT_QUANTUM = Decimal("0.0001")


def _validate_entity_type(entity_type: str) -> None:
    if entity_type not in PRICE_HISTORY_ENTITY_TYPES:
        raise ValidationError(
            [f"Entity type must be one of {PRICE_HISTORY_ENTITY_TYPES}, got '{entity_type}'"]
        )


def compute_change(old_value: Optional[Decimal], new_value: Decimal):
    """
    Compute (change_amount, change_percentage) between two prices.

    The percentage is None when the old value is missing or zero.

    Examples:
        >>> compute_change(Decimal("100"), Decimal("115"))
        (Decimal('15'), Decimal('15.0000'))
        >>> compute_change(None, Decimal("5"))
        (Decimal('5'), None)
    """
    if old_value is None:
        return new_value, None
    change_amount = new_value - old_value
    if old_value == 0:
        return change_amount, None
    percentage = (change_amount / old_value * 100).quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP)
    return change_amount, percentage


def record_price_change(
    entity_type: str,
    entity_id: int,
    old_value,
    new_value,
    reason: Optional[str] = None,
    changed_at: Optional[datetime] = None,
    session: Optional[Session] = None,
) -> PriceHistoryEntry:
    """Append one entry to the price history.

    Callers decide whether a change happened; this function always writes.

    Args:
        entity_type: "ingredient" or "product"
        entity_id: Id of the ingredient or product
        old_value: Value before the change (None when unknown)
        new_value: Value after the change (>= 0)
        reason: Optional free-text reason
        changed_at: Optional timestamp (defaults to now, UTC)
        session: Optional database session

    Returns:
        PriceHistoryEntry: The persisted entry

    Raises:
        ValidationError: If entity_type is unknown or new_value is negative
        DatabaseError: If database operation fails
    """
    _validate_entity_type(entity_type)
    old_decimal = None if old_value is None else to_decimal(old_value)
    new_decimal = to_decimal(new_value)
    if new_decimal < 0:
        raise ValidationError(["New price cannot be negative"])

    if session is not None:
        return _record_price_change_impl(
            entity_type, entity_id, old_decimal, new_decimal, reason, changed_at, session
        )
    try:
        with session_scope() as session:
            return _record_price_change_impl(
                entity_type, entity_id, old_decimal, new_decimal, reason, changed_at, session
            )
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to record price change", original_error=e)


def _record_price_change_impl(
    entity_type: str,
    entity_id: int,
    old_value: Optional[Decimal],
    new_value: Decimal,
    reason: Optional[str],
    changed_at: Optional[datetime],
    session: Session,
) -> PriceHistoryEntry:
    change_amount, change_percentage = compute_change(old_value, new_value)

    entry = PriceHistoryEntry(
        entity_type=entity_type,
        entity_id=entity_id,
        old_price=old_value,
        new_price=new_value,
        change_amount=change_amount,
        change_percentage=change_percentage,
        changed_at=changed_at or utc_now(),
        change_reason=reason,
    )
    session.add(entry)
    session.flush()

    log_operation(
        logger,
        operation="record_price_change",
        outcome="success",
        entity_type=entity_type,
        entity_id=entity_id,
        old_price=str(old_value) if old_value is not None else None,
        new_price=str(new_value),
    )
    return entry


def log_manual_price_change(
    entity_type: str,
    entity_id: int,
    old_value,
    new_value,
    reason: str = REASON_MANUAL_PRICE_CHANGE,
    session: Optional[Session] = None,
) -> PriceHistoryEntry:
    """Record a price change made by hand outside the costing flows."""
    return record_price_change(
        entity_type, entity_id, old_value, new_value, reason=reason, session=session
    )


def get_price_history(
    entity_type: str,
    entity_id: int,
    newest_first: bool = True,
    limit: Optional[int] = None,
    session: Optional[Session] = None,
) -> List[PriceHistoryEntry]:
    """Get the price history of an ingredient or product.

    Entries are ordered by changed_at, ties broken by insertion order.

    Args:
        entity_type: "ingredient" or "product"
        entity_id: Id of the entity
        newest_first: Order newest to oldest (default) or oldest to newest
        limit: Optional maximum number of entries
        session: Optional database session

    Returns:
        List of PriceHistoryEntry
    """
    _validate_entity_type(entity_type)
    if session is not None:
        return _get_price_history_impl(entity_type, entity_id, newest_first, limit, session)
    try:
        with session_scope() as session:
            return _get_price_history_impl(entity_type, entity_id, newest_first, limit, session)
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to load price history", original_error=e)


def _get_price_history_impl(
    entity_type: str,
    entity_id: int,
    newest_first: bool,
    limit: Optional[int],
    session: Session,
) -> List[PriceHistoryEntry]:
    query = session.query(PriceHistoryEntry).filter(
        PriceHistoryEntry.entity_type == entity_type,
        PriceHistoryEntry.entity_id == entity_id,
    )
    if newest_first:
        query = query.order_by(PriceHistoryEntry.changed_at.desc(), PriceHistoryEntry.id.desc())
    else:
        query = query.order_by(PriceHistoryEntry.changed_at.asc(), PriceHistoryEntry.id.asc())
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def get_price_stats(
    entity_type: str, entity_id: int, session: Optional[Session] = None
) -> PriceStats:
    """Compute statistics over an entity's price history.

    - count: number of entries
    - first / last: new price of the chronologically first and last entries
    - min / max: extremes of the recorded new prices
    - average: mean of the recorded new prices, rounded to cents
    - total_increase / total_decrease: sums of positive and (absolute)
      negative change amounts, rounded to cents

    Returns:
        PriceStats; value fields are None when there is no history
    """
    entries = get_price_history(entity_type, entity_id, newest_first=False, session=session)
    stats = PriceStats(entity_type=entity_type, entity_id=entity_id)
    if not entries:
        return stats

    prices = [to_decimal(entry.new_price) for entry in entries]
    increase = Decimal("0")
    decrease = Decimal("0")
    for entry in entries:
        amount = to_decimal(entry.change_amount)
        if amount > 0:
            increase += amount
        elif amount < 0:
            decrease += -amount

    stats.count = len(entries)
    stats.first = prices[0]
    stats.last = prices[-1]
    stats.min = min(prices)
    stats.max = max(prices)
    stats.average = quantize_cents(sum(prices) / len(prices))
    stats.total_increase = quantize_cents(increase)
    stats.total_decrease = quantize_cents(decrease)
    return stats
