"""Tests for price history recording and statistics."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from bakery_costing.services.exceptions import ValidationError
from bakery_costing.services.price_history_service import (
    compute_change,
    get_price_history,
    get_price_stats,
    log_manual_price_change,
    record_price_change,
)
from bakery_costing.utils.constants import (
    ENTITY_TYPE_INGREDIENT,
    ENTITY_TYPE_PRODUCT,
    REASON_MANUAL_PRICE_CHANGE,
)

START = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def three_changes(test_db):
    """Product 7: 100 -> 110 -> 99, one day apart."""
    record_price_change(ENTITY_TYPE_PRODUCT, 7, Decimal("90"), Decimal("100"), changed_at=START)
    record_price_change(
        ENTITY_TYPE_PRODUCT, 7, Decimal("100"), Decimal("110"), changed_at=START + timedelta(days=1)
    )
    record_price_change(
        ENTITY_TYPE_PRODUCT, 7, Decimal("110"), Decimal("99"), changed_at=START + timedelta(days=2)
    )


class TestComputeChange:
    def test_increase(self):
        assert compute_change(Decimal("100"), Decimal("115")) == (Decimal("15"), Decimal("15"))

    def test_decrease(self):
        amount, pct = compute_change(Decimal("110"), Decimal("99"))
        assert amount == Decimal("-11")
        assert pct == Decimal("-10")

    def test_no_percentage_from_zero(self):
        assert compute_change(Decimal("0"), Decimal("5")) == (Decimal("5"), None)

    def test_no_old_value(self):
        assert compute_change(None, Decimal("5")) == (Decimal("5"), None)


class TestRecordPriceChange:
    def test_persists_entry(self, test_db):
        entry = record_price_change(
            ENTITY_TYPE_INGREDIENT, 3, Decimal("2"), Decimal("2.5"), reason="Supplier raise"
        )

        assert entry.id is not None
        assert entry.change_amount == Decimal("0.5")
        assert entry.change_percentage == Decimal("25")
        assert entry.change_reason == "Supplier raise"
        assert entry.changed_at is not None

    def test_unknown_entity_type(self, test_db):
        with pytest.raises(ValidationError):
            record_price_change("recipe", 1, Decimal("1"), Decimal("2"))

    def test_negative_new_price(self, test_db):
        with pytest.raises(ValidationError):
            record_price_change(ENTITY_TYPE_PRODUCT, 1, Decimal("1"), Decimal("-2"))

    def test_manual_change_reason(self, test_db):
        entry = log_manual_price_change(ENTITY_TYPE_PRODUCT, 2, Decimal("10"), Decimal("12"))
        assert entry.change_reason == REASON_MANUAL_PRICE_CHANGE


class TestGetPriceHistory:
    def test_newest_first_by_default(self, three_changes):
        prices = [entry.new_price for entry in get_price_history(ENTITY_TYPE_PRODUCT, 7)]
        assert prices == [Decimal("99"), Decimal("110"), Decimal("100")]

    def test_oldest_first(self, three_changes):
        history = get_price_history(ENTITY_TYPE_PRODUCT, 7, newest_first=False)
        assert [entry.new_price for entry in history][0] == Decimal("100")

    def test_limit(self, three_changes):
        assert len(get_price_history(ENTITY_TYPE_PRODUCT, 7, limit=2)) == 2

    def test_scoped_to_entity(self, three_changes):
        assert get_price_history(ENTITY_TYPE_PRODUCT, 8) == []
        assert get_price_history(ENTITY_TYPE_INGREDIENT, 7) == []

    def test_same_timestamp_keeps_insertion_order(self, test_db):
        for price in ("1", "2", "3"):
            record_price_change(ENTITY_TYPE_INGREDIENT, 1, None, Decimal(price), changed_at=START)

        history = get_price_history(ENTITY_TYPE_INGREDIENT, 1, newest_first=False)
        assert [entry.new_price for entry in history] == [Decimal("1"), Decimal("2"), Decimal("3")]


class TestGetPriceStats:
    def test_stats(self, three_changes):
        stats = get_price_stats(ENTITY_TYPE_PRODUCT, 7)

        assert stats.count == 3
        assert stats.first == Decimal("100")
        assert stats.last == Decimal("99")
        assert stats.min == Decimal("99")
        assert stats.max == Decimal("110")
        assert stats.average == Decimal("103.00")
        assert stats.total_increase == Decimal("20.00")
        assert stats.total_decrease == Decimal("11.00")

    def test_empty_history(self, test_db):
        stats = get_price_stats(ENTITY_TYPE_INGREDIENT, 1)

        assert stats.count == 0
        assert stats.first is None
        assert stats.average is None
        assert stats.total_increase == Decimal("0")
        assert stats.to_dict()["last"] is None
