"""Tests for purchase registration and ingredient unit cost."""

from datetime import date
from decimal import Decimal

import pytest

from bakery_costing.services import (
    ingredient_service,
    inventory_service,
    price_history_service,
)
from bakery_costing.services.exceptions import (
    DatabaseError,
    IncompatibleUnitsError,
    IngredientNotFoundError,
    PurchaseNotFoundError,
    UnknownUnitError,
    ValidationError,
)
from bakery_costing.services.purchase_service import (
    calculate_unit_cost,
    get_purchase,
    get_purchase_history,
    register_purchase,
)
from bakery_costing.utils.constants import ENTITY_TYPE_INGREDIENT, REASON_PURCHASE


@pytest.fixture
def sugar(test_db):
    """Sugar costed per gram, no cost yet."""
    return ingredient_service.create_ingredient({"name": "Sugar", "base_unit": "g"}).ingredient_id


class TestCalculateUnitCost:
    def test_divides_and_rounds(self):
        assert calculate_unit_cost(Decimal("2000"), 1000.0) == Decimal("2.0000000000")
        assert calculate_unit_cost(Decimal("10"), 3.0) == Decimal("3.3333333333")

    def test_zero_quantity(self):
        with pytest.raises(ValueError):
            calculate_unit_cost(Decimal("10"), 0)


class TestRegisterPurchase:
    def test_sets_unit_cost_and_adds_stock(self, sugar, cache):
        result = register_purchase(sugar, 1000, "g", Decimal("2000"), cache=cache)

        assert result.calculated_unit_cost == Decimal("2")
        assert result.converted_quantity == 1000.0
        assert result.previous_unit_cost == Decimal("0")
        assert result.cost_changed is True
        assert result.inventory_delta == 1000.0
        assert result.stock_on_hand == 1000.0
        assert result.warnings == []

        ingredient = ingredient_service.get_ingredient(sugar)
        assert ingredient.cost_per_base_unit == Decimal("2")
        assert ingredient.stock_on_hand == 1000.0

    def test_converts_purchase_unit(self, sugar, cache):
        result = register_purchase(sugar, 1, "kg", Decimal("2000"), cache=cache)
        assert result.converted_quantity == 1000.0
        assert result.calculated_unit_cost == Decimal("2")

    def test_per_gram_cost_keeps_precision(self, sugar, cache):
        result = register_purchase(sugar, 25, "kg", Decimal("12.99"), cache=cache)

        assert result.calculated_unit_cost == Decimal("0.0005196")
        total = result.calculated_unit_cost * Decimal(str(result.converted_quantity))
        assert total.quantize(Decimal("0.01")) == Decimal("12.99")
        stored = ingredient_service.get_ingredient(sugar).cost_per_base_unit
        assert stored == Decimal("0.0005196")

    def test_latest_purchase_wins(self, sugar, cache):
        register_purchase(sugar, 1, "kg", Decimal("2000"), cache=cache)
        register_purchase(sugar, 500, "g", Decimal("1500"), cache=cache)

        assert ingredient_service.get_ingredient(sugar).cost_per_base_unit == Decimal("3")
        assert ingredient_service.get_ingredient(sugar).stock_on_hand == 1500.0

    def test_records_history_only_on_change(self, sugar, cache):
        register_purchase(sugar, 1, "kg", Decimal("2000"), cache=cache)
        second = register_purchase(sugar, 2, "kg", Decimal("4000"), cache=cache)

        assert second.cost_changed is False
        history = price_history_service.get_price_history(ENTITY_TYPE_INGREDIENT, sugar)
        assert len(history) == 1
        assert history[0].change_reason == REASON_PURCHASE
        assert history[0].new_price == Decimal("2")

    def test_without_stock(self, sugar, cache):
        result = register_purchase(sugar, 1, "kg", Decimal("2000"), affects_stock=False, cache=cache)

        assert result.inventory_delta == 0.0
        assert result.stock_on_hand is None
        assert ingredient_service.get_ingredient(sugar).stock_on_hand == 0.0

    def test_stock_movement_links_purchase(self, sugar, cache):
        result = register_purchase(sugar, 250, "g", Decimal("100"), cache=cache)

        movements = inventory_service.get_stock_movements(sugar)
        assert len(movements) == 1
        assert movements[0]["purchase_id"] == result.purchase_id
        assert movements[0]["quantity"] == 250.0

    def test_purchase_fields_persisted(self, sugar, cache):
        result = register_purchase(
            sugar,
            2,
            "lb",
            Decimal("9.07"),
            purchase_date=date(2024, 3, 1),
            supplier="Mill & Co",
            notes="Promo",
            cache=cache,
        )

        purchase = get_purchase(result.purchase_id)
        assert purchase.purchase_date == date(2024, 3, 1)
        assert purchase.unit_purchased == "lb"
        assert purchase.supplier == "Mill & Co"
        assert purchase.total_price == Decimal("9.07")
        assert purchase.calculated_unit_cost == result.calculated_unit_cost
        assert purchase.calculated_unit_cost == Decimal("0.0099979717")

    def test_incompatible_unit_rejected_and_nothing_written(self, sugar, cache):
        with pytest.raises(IncompatibleUnitsError):
            register_purchase(sugar, 1, "l", Decimal("100"), cache=cache)

        assert get_purchase_history(sugar) == []
        assert ingredient_service.get_ingredient(sugar).cost_per_base_unit == Decimal("0")

    def test_unknown_unit_rejected(self, sugar, cache):
        with pytest.raises(UnknownUnitError):
            register_purchase(sugar, 1, "sack", Decimal("100"), cache=cache)

    @pytest.mark.parametrize(
        "quantity,unit,price",
        [(0, "g", "10"), (-1, "g", "10"), (1, "", "10"), (1, "g", "-0.01"), ("lots", "g", "1")],
    )
    def test_invalid_input(self, sugar, cache, quantity, unit, price):
        with pytest.raises(ValidationError):
            register_purchase(sugar, quantity, unit, price, cache=cache)

    def test_free_purchase_sets_zero_cost(self, flour, cache):
        result = register_purchase(flour, 1, "kg", Decimal("0"), cache=cache)
        assert result.calculated_unit_cost == Decimal("0")
        assert result.cost_changed is True

    def test_missing_ingredient(self, test_db, cache):
        with pytest.raises(IngredientNotFoundError):
            register_purchase(999, 1, "kg", Decimal("1"), cache=cache)

    def test_invalidates_dependent_keys(self, sugar, cache):
        for key in ("ingredients", "products", "recipes", "monthly_stats", "inventory"):
            cache.set(key, "stale")

        register_purchase(sugar, 1, "kg", Decimal("2000"), cache=cache)

        assert cache.keys() == []

    def test_same_cost_keeps_product_and_recipe_views(self, sugar, cache):
        register_purchase(sugar, 1, "kg", Decimal("2000"), affects_stock=False, cache=cache)
        cache.set("products", "fresh")
        cache.set("recipes", "fresh")

        register_purchase(sugar, 1, "kg", Decimal("2000"), affects_stock=False, cache=cache)

        assert cache.keys() == ["products", "recipes"]

    def test_stock_failure_is_a_warning(self, sugar, cache, monkeypatch):
        def broken(*args, **kwargs):
            raise DatabaseError("inventory locked")

        monkeypatch.setattr(inventory_service, "update_stock", broken)

        result = register_purchase(sugar, 1, "kg", Decimal("2000"), cache=cache)

        assert result.inventory_delta == 0.0
        assert any("inventory locked" in warning for warning in result.warnings)
        assert ingredient_service.get_ingredient(sugar).cost_per_base_unit == Decimal("2")
        assert len(get_purchase_history(sugar)) == 1

    def test_invalidation_failure_is_a_warning(self, sugar, failing_cache):
        result = register_purchase(sugar, 1, "kg", Decimal("2000"), cache=failing_cache)

        # once from the stock movement, once from the purchase itself
        assert result.warnings == ["Cache not invalidated: cache backend down"] * 2
        assert result.stock_on_hand == 1000.0
        assert ingredient_service.get_ingredient(sugar).cost_per_base_unit == Decimal("2")


class TestPurchaseQueries:
    def test_history_newest_first(self, sugar, cache):
        older = register_purchase(
            sugar, 1, "kg", Decimal("1000"), purchase_date=date(2024, 1, 1), cache=cache
        )
        newer = register_purchase(
            sugar, 1, "kg", Decimal("1200"), purchase_date=date(2024, 2, 1), cache=cache
        )

        history = get_purchase_history(sugar)
        assert [p.id for p in history] == [newer.purchase_id, older.purchase_id]
        assert len(get_purchase_history(sugar, limit=1)) == 1

    def test_history_for_missing_ingredient(self, test_db):
        with pytest.raises(IngredientNotFoundError):
            get_purchase_history(42)

    def test_missing_purchase(self, test_db):
        with pytest.raises(PurchaseNotFoundError):
            get_purchase(42)
