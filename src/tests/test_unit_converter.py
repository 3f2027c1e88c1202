"""Tests for the unit conversion module."""

import pytest

from bakery_costing.services.exceptions import (
    IncompatibleUnitsError,
    UnknownUnitError,
    ValidationError,
)
from bakery_costing.services.unit_converter import (
    UnitMismatchPolicy,
    convert_units,
    format_conversion,
    get_canonical_unit,
    get_unit_category,
    list_units,
    normalize_unit,
    quantity_in_base_unit,
    units_compatible,
)


class TestNormalizeUnit:
    def test_trims_and_lowercases(self):
        assert normalize_unit("  KG ") == "kg"

    def test_resolves_aliases(self):
        assert normalize_unit("pcs") == "unit"
        assert normalize_unit("Each") == "unit"
        assert normalize_unit("fl_oz") == "fl oz"

    def test_empty_is_none(self):
        assert normalize_unit("") is None
        assert normalize_unit("   ") is None
        assert normalize_unit(None) is None

    def test_unknown_unit_passes_through(self):
        assert normalize_unit("Bushel") == "bushel"


class TestUnitCategory:
    @pytest.mark.parametrize(
        "unit,category",
        [("g", "weight"), ("lb", "weight"), ("cup", "volume"), ("fl oz", "volume"),
         ("dozen", "count"), ("piece", "count")],
    )
    def test_known_units(self, unit, category):
        assert get_unit_category(unit) == category

    def test_unknown_unit(self):
        assert get_unit_category("bushel") is None

    def test_list_units_by_category(self):
        assert list_units("count") == ["unit", "piece", "dozen"]
        assert "ml" in list_units()
        assert list_units("nonsense") == []

    def test_canonical_units(self):
        assert get_canonical_unit("weight") == "g"
        assert get_canonical_unit("volume") == "ml"
        assert get_canonical_unit("count") == "unit"


class TestUnitsCompatible:
    def test_same_category(self):
        assert units_compatible("kg", "oz")
        assert units_compatible("cup", "ml")

    def test_weight_and_volume_are_not_compatible(self):
        assert not units_compatible("g", "ml")

    def test_unknown_or_empty_units_never_raise(self):
        assert units_compatible("bushel", "g") is False
        assert units_compatible("", "g") is False
        assert units_compatible(None, None) is False


class TestConvertUnits:
    def test_kg_to_g(self):
        assert convert_units(1.5, "kg", "g") == 1500.0

    def test_cup_to_ml(self):
        assert convert_units(1, "cup", "ml") == pytest.approx(236.588)

    def test_dozen_to_units(self):
        assert convert_units(2, "dozen", "unit") == 24.0

    def test_same_unit_is_identity(self):
        assert convert_units(3.25, "tbsp", "TBSP") == 3.25

    def test_zero_quantity(self):
        assert convert_units(0, "kg", "g") == 0.0

    @pytest.mark.parametrize(
        "quantity,from_unit,to_unit",
        [(1.0, "lb", "g"), (2.5, "cup", "tsp"), (7, "dozen", "piece"), (0.3, "l", "fl oz")],
    )
    def test_round_trip(self, quantity, from_unit, to_unit):
        there = convert_units(quantity, from_unit, to_unit)
        assert convert_units(there, to_unit, from_unit) == pytest.approx(quantity)

    def test_incompatible_units_raise(self):
        with pytest.raises(IncompatibleUnitsError) as exc_info:
            convert_units(1, "g", "ml")
        assert exc_info.value.from_unit == "g"
        assert exc_info.value.to_unit == "ml"

    def test_unknown_unit_raises(self):
        with pytest.raises(UnknownUnitError, match="bushel"):
            convert_units(1, "bushel", "g")

    def test_negative_quantity_raises(self):
        with pytest.raises(ValidationError):
            convert_units(-1, "kg", "g")


class TestQuantityInBaseUnit:
    def test_converts_compatible_units(self):
        assert quantity_in_base_unit(0.5, "kg", "g") == 500.0

    def test_same_unit_even_if_unknown(self):
        assert quantity_in_base_unit(4, "bag", "bag") == 4.0

    def test_fallback_uses_quantity_as_is(self):
        assert quantity_in_base_unit(3, "unit", "g") == 3.0

    def test_reject_incompatible(self):
        with pytest.raises(IncompatibleUnitsError):
            quantity_in_base_unit(1, "ml", "g", UnitMismatchPolicy.REJECT)

    def test_reject_unknown_reports_the_unknown_unit(self):
        with pytest.raises(UnknownUnitError) as exc_info:
            quantity_in_base_unit(1, "sack", "g", UnitMismatchPolicy.REJECT)
        assert exc_info.value.unit == "sack"


class TestFormatConversion:
    def test_formats_result(self):
        assert format_conversion(1, "kg", "g") == "1 kg = 1000.00 g"

    def test_reports_errors_instead_of_raising(self):
        assert format_conversion(1, "g", "ml").startswith("Error:")
