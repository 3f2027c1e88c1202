"""Tests for the OperationResult boundary."""

from decimal import Decimal

import pytest

from bakery_costing.services import cost_service, ingredient_service, inventory_service
from bakery_costing.services.dto import BatchResult, ItemResult, OperationResult
from bakery_costing.services.exceptions import DatabaseError
from bakery_costing.services.operations import (
    UNEXPECTED_ERROR_MESSAGE,
    CostingOperations,
    safe_operation,
)


@pytest.fixture
def ops(cache):
    return CostingOperations(cache=cache)


class TestSafeOperation:
    def test_wraps_plain_data(self):
        @safe_operation("answer", "Done")
        def answer():
            return {"value": 42, "warnings": ["minor"]}

        result = answer()

        assert result.success is True
        assert result.data["value"] == 42
        assert result.message == "Done"
        assert result.warnings == ["minor"]

    def test_passes_results_through(self):
        expected = OperationResult.fail("nope")

        @safe_operation("passthrough")
        def passthrough():
            return expected

        assert passthrough() is expected

    def test_unexpected_exception_is_hidden(self, caplog):
        @safe_operation("explode")
        def explode():
            raise KeyError("internal detail")

        result = explode()

        assert result.success is False
        assert result.message == UNEXPECTED_ERROR_MESSAGE
        assert "internal detail" not in result.message
        assert any(record.exc_info for record in caplog.records)

    def test_keeps_function_name(self):
        assert CostingOperations.convert_units.__name__ == "convert_units"


class TestUnits:
    def test_convert(self, ops):
        result = ops.convert_units(1.5, "kg", "g")

        assert result.success
        assert result.data["converted_quantity"] == pytest.approx(1500.0)

    def test_incompatible_units(self, ops):
        result = ops.convert_units(1, "g", "ml")

        assert result.success is False
        assert "g" in result.message and "ml" in result.message

    @pytest.mark.parametrize(
        "unit_a,unit_b,expected",
        [("kg", "lb", True), ("g", "ml", False), ("g", "sack", False), ("", "g", False)],
    )
    def test_compatibility_never_fails(self, ops, unit_a, unit_b, expected):
        result = ops.are_units_compatible(unit_a, unit_b)
        assert result.success is True
        assert result.data is expected


class TestCostingOperations:
    def test_recipe_cost(self, ops, bread_recipe):
        result = ops.compute_recipe_cost(bread_recipe)

        assert result.success
        assert Decimal(result.data["total_cost"]) == Decimal("2")
        assert Decimal(result.data["cost_per_serving"]) == Decimal("0.5")

    def test_missing_recipe(self, ops, test_db):
        result = ops.compute_recipe_cost(404)
        assert result.success is False
        assert "404" in result.message

    def test_unexpected_service_failure(self, ops, bread_recipe, monkeypatch):
        def broken(recipe_id):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(cost_service, "calculate_recipe_cost", broken)

        result = ops.compute_recipe_cost(bread_recipe)

        assert result.success is False
        assert result.message == UNEXPECTED_ERROR_MESSAGE

    def test_create_product(self, ops, bread_recipe):
        result = ops.create_product_from_recipe(bread_recipe, markup_percent=100)

        assert result.success
        assert result.message == "Product created"
        assert Decimal(result.data["suggested_price_cache"]) == Decimal("1")

    def test_create_product_with_failing_cache(self, bread_recipe, failing_cache):
        result = CostingOperations(cache=failing_cache).create_product_from_recipe(bread_recipe)

        assert result.success
        assert result.data["id"] is not None
        assert result.warnings == ["Cache not invalidated: cache backend down"]

    def test_validation_errors_are_listed(self, ops, test_db):
        result = ops.create_ingredient({"name": "", "base_unit": "bushel"})

        assert result.success is False
        assert len(result.errors) == 2
        assert result.message.startswith("Validation failed")

    def test_refresh_all(self, ops, priced_product):
        result = ops.refresh_all_product_costs()

        assert result.success
        assert result.message == "Refreshed 1 of 1"
        assert result.warnings == []


class TestPurchasesAndPrices:
    def test_purchase_warnings_are_surfaced(self, ops, flour, monkeypatch):
        def broken(*args, **kwargs):
            raise DatabaseError("inventory locked")

        monkeypatch.setattr(inventory_service, "update_stock", broken)

        result = ops.register_purchase(flour, 1, "kg", Decimal("3"))

        assert result.success is True
        assert result.message == "Purchase registered"
        assert len(result.warnings) == 1
        assert Decimal(result.data["calculated_unit_cost"]) == Decimal("0.003")

    def test_purchase_rejected(self, ops, flour):
        result = ops.register_purchase(flour, 1, "l", Decimal("3"))
        assert result.success is False

    def test_bulk_summary(self, ops, monkeypatch):
        batch = BatchResult(
            [ItemResult(1, True), ItemResult(2, False, "Ingredient not found"), ItemResult(3, True)]
        )
        monkeypatch.setattr(
            ingredient_service, "bulk_update_ingredient_prices", lambda *a, **kw: batch
        )

        result = ops.bulk_update_ingredient_prices(10)

        assert result.success is True
        assert result.message == "Updated 2 of 3 (1 failed)"
        assert result.warnings == ["#2: Ingredient not found"]
        assert result.data["failure_count"] == 1

    def test_bulk_invalid_percentage(self, ops, test_db):
        result = ops.bulk_update_ingredient_prices(0)
        assert result.success is False

    def test_ingredient_price_stats(self, ops, flour):
        ops.update_ingredient_cost(flour, Decimal("0.004"))

        result = ops.get_ingredient_price_stats(flour)

        assert result.success
        assert result.data["count"] == 1
        assert Decimal(result.data["last"]) == Decimal("0.004")

    def test_price_history_is_serialized(self, ops, flour):
        ops.update_ingredient_cost(flour, Decimal("0.004"))

        result = ops.get_price_history("ingredient", flour)

        assert isinstance(result.data, list)
        assert result.data[0]["entity_id"] == flour

    def test_stock_and_low_stock(self, ops, flour, eggs):
        assert ops.update_stock(flour, 500, "IN").data["quantity"] == 500.0
        assert ops.update_stock(eggs, 1, "OUT").success is False

        low = ops.get_low_stock_ingredients()
        assert [row["ingredient_name"] for row in low.data] == ["Eggs"]

    def test_ingredient_purchases(self, ops, flour):
        ops.register_purchase(flour, 1, "kg", Decimal("2"))

        result = ops.get_ingredient_purchases(flour)

        assert len(result.data) == 1
        assert result.data[0]["unit_purchased"] == "kg"
