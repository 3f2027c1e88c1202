"""
Tests for input validation functions.
"""

from decimal import Decimal

import pytest

from bakery_costing.utils.validators import (
    validate_bulk_percentage,
    validate_ingredient_data,
    validate_integer_at_least,
    validate_markup_percent,
    validate_non_negative_number,
    validate_positive_number,
    validate_product_data,
    validate_purchase_data,
    validate_recipe_data,
    validate_required_string,
    validate_string_length,
    validate_unit,
)


class TestFieldValidators:
    def test_required_string(self):
        assert validate_required_string("Flour")[0] is True
        assert validate_required_string("   ", "Name") == (False, "Name: This field is required")
        assert validate_required_string(None)[0] is False

    def test_string_length(self):
        assert validate_string_length("abc", 3)[0] is True
        assert validate_string_length("abcd", 3)[0] is False
        assert validate_string_length(None, 3)[0] is True

    @pytest.mark.parametrize("value", [1, "2.5", Decimal("0.01")])
    def test_positive_accepts(self, value):
        assert validate_positive_number(value)[0] is True

    @pytest.mark.parametrize("value", [0, -1, "abc", None, True, float("nan"), float("inf")])
    def test_positive_rejects(self, value):
        assert validate_positive_number(value)[0] is False

    def test_non_negative(self):
        assert validate_non_negative_number(0)[0] is True
        assert validate_non_negative_number("-0.01")[0] is False

    def test_integer_at_least(self):
        assert validate_integer_at_least(4, 1)[0] is True
        assert validate_integer_at_least("4.0", 1)[0] is True
        assert validate_integer_at_least(2.5, 1)[0] is False
        assert validate_integer_at_least(0, 1)[0] is False

    def test_unit(self):
        assert validate_unit("KG")[0] is True
        assert validate_unit("pcs")[0] is True
        is_valid, error = validate_unit("bushel")
        assert is_valid is False
        assert "bushel" in error

    def test_markup_has_no_upper_bound(self):
        assert validate_markup_percent(0)[0] is True
        assert validate_markup_percent(500)[0] is True
        assert validate_markup_percent(-1)[0] is False

    @pytest.mark.parametrize("value,expected", [(0.01, True), (100, True), (0, False), (101, False)])
    def test_bulk_percentage(self, value, expected):
        assert validate_bulk_percentage(value)[0] is expected


class TestPayloadValidators:
    def test_ingredient_collects_every_error(self):
        is_valid, errors = validate_ingredient_data(
            {"name": "", "base_unit": "bushel", "cost_per_base_unit": -1, "lead_time_days": 1.5}
        )
        assert is_valid is False
        assert len(errors) == 4

    def test_partial_ingredient_only_checks_given_keys(self):
        assert validate_ingredient_data({"supplier": "Mill"}, partial=True) == (True, [])

    def test_recipe_lines_are_numbered(self):
        is_valid, errors = validate_recipe_data(
            {"name": "Cake", "servings": 1},
            [{"ingredient_id": 1, "quantity": 1, "unit": "g"}, {"quantity": -1, "unit": ""}],
        )
        assert is_valid is False
        assert all(error.startswith("Ingredient line 2") for error in errors)
        assert len(errors) == 3

    def test_recipe_lines_optional_for_updates(self):
        assert validate_recipe_data({"name": "Cake", "servings": 2}, [], False)[0] is True

    def test_product(self):
        assert validate_product_data({"name": "Bun"})[0] is True
        assert validate_product_data({"name": "Bun", "suggested_price_cache": -2})[0] is False

    def test_purchase(self):
        assert validate_purchase_data(1, "kg", "0") == (True, [])
        is_valid, errors = validate_purchase_data(0, None, "-1")
        assert is_valid is False
        assert len(errors) == 3
