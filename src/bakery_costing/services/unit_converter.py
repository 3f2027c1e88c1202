"""
Unit conversion system for Bakery Costing.

This module provides:
- Standard unit conversions (weight, volume, count)
- Unit category detection and alias normalization
- The unit mismatch policy shared by recipe costing and purchases
- Conversion display helpers

Conversion Strategy:
- Weight units convert through grams (canonical unit)
- Volume units convert through milliliters (canonical unit)
- Count units convert through single units (canonical unit)
- Units of different categories never convert into each other
"""

from enum import Enum
from typing import Dict, List, Optional

from .exceptions import IncompatibleUnitsError, UnknownUnitError, ValidationError
from ..utils.constants import (
    UNIT_CATEGORY_COUNT,
    UNIT_CATEGORY_VOLUME,
    UNIT_CATEGORY_WEIGHT,
)


# ============================================================================
# Standard Conversion Tables
# ============================================================================

# Weight conversions to grams (canonical unit)
WEIGHT_TO_GRAMS = {
    "g": 1.0,
    "kg": 1000.0,
    "oz": 28.3495,
    "lb": 453.592,
}

# Volume conversions to milliliters (canonical unit)
VOLUME_TO_ML = {
    "ml": 1.0,
    "l": 1000.0,
    "tsp": 4.92892,
    "tbsp": 14.7868,
    "fl oz": 29.5735,
    "cup": 236.588,
}

# Count conversions to individual items (canonical unit)
COUNT_TO_UNITS = {
    "unit": 1.0,
    "piece": 1.0,
    "dozen": 12.0,
}

CONVERSION_TABLES: Dict[str, Dict[str, float]] = {
    UNIT_CATEGORY_WEIGHT: WEIGHT_TO_GRAMS,
    UNIT_CATEGORY_VOLUME: VOLUME_TO_ML,
    UNIT_CATEGORY_COUNT: COUNT_TO_UNITS,
}

CANONICAL_UNITS: Dict[str, str] = {
    UNIT_CATEGORY_WEIGHT: "g",
    UNIT_CATEGORY_VOLUME: "ml",
    UNIT_CATEGORY_COUNT: "unit",
}

UNIT_ALIASES: Dict[str, str] = {
    "units": "unit",
    "pcs": "unit",
    "each": "unit",
    "pieces": "piece",
    "fl_oz": "fl oz",
}


class UnitMismatchPolicy(Enum):
    """
    What to do when a quantity's unit cannot be converted to a base unit.

    FALLBACK: use the quantity as if it were already in the base unit
              (recipe costing, so a stray unit never blocks a cost estimate)
    REJECT: raise IncompatibleUnitsError (purchases, where a wrong unit would
            corrupt the ingredient's unit cost)
    """

    FALLBACK = "fallback"
    REJECT = "reject"


# ============================================================================
# Unit Type Detection
# ============================================================================


def normalize_unit(unit: Optional[str]) -> Optional[str]:
    """
    Normalize a unit string: trim, lowercase, resolve aliases.

    Args:
        unit: Unit string (e.g., " KG", "pcs", "fl_oz")

    Returns:
        Normalized unit, or None for empty input. Unknown units are returned
        normalized but unchanged otherwise.
    """
    if unit is None:
        return None
    unit_lower = str(unit).strip().lower()
    if not unit_lower:
        return None
    return UNIT_ALIASES.get(unit_lower, unit_lower)


def get_unit_category(unit: Optional[str]) -> Optional[str]:
    """
    Determine the category of a unit.

    Args:
        unit: Unit string

    Returns:
        "weight", "volume", "count", or None if the unit is unknown
    """
    normalized = normalize_unit(unit)
    if normalized is None:
        return None

    for category, table in CONVERSION_TABLES.items():
        if normalized in table:
            return category

    return None


def units_compatible(unit_a: Optional[str], unit_b: Optional[str]) -> bool:
    """
    Check if two units are of the same category and can be converted.

    Never raises: unknown or empty units are simply not compatible.

    Args:
        unit_a: First unit
        unit_b: Second unit

    Returns:
        True if units are compatible for conversion
    """
    category_a = get_unit_category(unit_a)
    category_b = get_unit_category(unit_b)

    if category_a is None or category_b is None:
        return False

    return category_a == category_b


def list_units(category: Optional[str] = None) -> List[str]:
    """
    List known units, optionally restricted to one category.

    Args:
        category: "weight", "volume" or "count"; None for all

    Returns:
        Unit names in table order
    """
    if category is None:
        return [unit for table in CONVERSION_TABLES.values() for unit in table]
    return list(CONVERSION_TABLES.get(category, {}))


def get_canonical_unit(category: str) -> str:
    """Return the unit a category converts through (g, ml or unit)."""
    return CANONICAL_UNITS[category]


# ============================================================================
# Standard Unit Conversions
# ============================================================================


def convert_units(quantity: float, from_unit: str, to_unit: str) -> float:
    """
    Convert a quantity between units of the same category.

    Args:
        quantity: Quantity to convert (>= 0)
        from_unit: Source unit (e.g., "kg")
        to_unit: Target unit (e.g., "g")

    Returns:
        quantity * factor(from_unit) / factor(to_unit)

    Raises:
        ValidationError: If quantity is negative
        UnknownUnitError: If either unit is not in the tables
        IncompatibleUnitsError: If the units belong to different categories
    """
    if quantity < 0:
        raise ValidationError(["Quantity cannot be negative"])

    from_category = get_unit_category(from_unit)
    if from_category is None:
        raise UnknownUnitError(from_unit)
    to_category = get_unit_category(to_unit)
    if to_category is None:
        raise UnknownUnitError(to_unit)

    if from_category != to_category:
        raise IncompatibleUnitsError(from_unit, to_unit)

    from_normalized = normalize_unit(from_unit)
    to_normalized = normalize_unit(to_unit)
    if from_normalized == to_normalized:
        return float(quantity)

    table = CONVERSION_TABLES[from_category]

    # Convert: value -> canonical unit -> target unit
    canonical_value = quantity * table[from_normalized]
    return canonical_value / table[to_normalized]


def quantity_in_base_unit(
    quantity: float,
    unit: str,
    base_unit: str,
    on_unit_mismatch: UnitMismatchPolicy = UnitMismatchPolicy.FALLBACK,
) -> float:
    """
    Express a quantity in an ingredient's base unit.

    Args:
        quantity: Quantity in unit
        unit: Unit of the quantity (recipe line unit or purchase unit)
        base_unit: Ingredient base unit
        on_unit_mismatch: Policy applied when the units are not compatible

    Returns:
        Converted quantity, or the unchanged quantity under FALLBACK when
        the units cannot be converted

    Raises:
        UnknownUnitError: Under REJECT, when either unit is unknown
        IncompatibleUnitsError: Under REJECT, when categories differ
    """
    if normalize_unit(unit) == normalize_unit(base_unit):
        return float(quantity)

    if units_compatible(unit, base_unit):
        return convert_units(quantity, unit, base_unit)

    if on_unit_mismatch is UnitMismatchPolicy.REJECT:
        # Surface the most specific reason
        for candidate in (unit, base_unit):
            if get_unit_category(candidate) is None:
                raise UnknownUnitError(candidate)
        raise IncompatibleUnitsError(unit, base_unit)

    return float(quantity)


def format_conversion(quantity: float, from_unit: str, to_unit: str, precision: int = 2) -> str:
    """
    Format a unit conversion for display.

    Args:
        quantity: Source quantity
        from_unit: Source unit
        to_unit: Target unit
        precision: Decimal places for result

    Returns:
        Formatted string (e.g., "1 lb = 16.00 oz")
        Returns error message if conversion fails
    """
    try:
        converted = convert_units(quantity, from_unit, to_unit)
    except (UnknownUnitError, IncompatibleUnitsError, ValidationError) as e:
        return f"Error: {e}"

    return f"{quantity:g} {from_unit} = {converted:.{precision}f} {to_unit}"
