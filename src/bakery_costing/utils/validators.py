"""
Input validation functions for the Bakery Costing application.

This module provides validation functions for all user inputs including:
- Numeric validation (positive, non-negative, integer)
- String validation (length, required fields)
- Unit validation
- Entity payload validation (ingredient, recipe, product, purchase)

Field validators return (is_valid, error_message); payload validators return
(is_valid, errors) so the service layer can raise a single ValidationError
listing every problem.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from .constants import (
    BULK_INCREASE_MAX_PERCENT,
    BULK_INCREASE_MIN_PERCENT,
    ERROR_BULK_PERCENTAGE,
    ERROR_INVALID_INTEGER,
    ERROR_INVALID_NON_NEGATIVE,
    ERROR_INVALID_NUMBER,
    ERROR_INVALID_POSITIVE,
    ERROR_INVALID_UNIT,
    ERROR_NO_INGREDIENTS,
    ERROR_REQUIRED_FIELD,
    MAX_DESCRIPTION_LENGTH,
    MAX_NAME_LENGTH,
    MAX_NOTES_LENGTH,
    MAX_SKU_LENGTH,
    MIN_SERVINGS,
)


def _as_decimal(value: Any) -> Optional[Decimal]:
    """Parse a numeric input into Decimal, returning None when it isn't a number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not result.is_finite():
        return None
    return result


def validate_required_string(value: Optional[str], field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a string field is not empty.

    Args:
        value: The string value to validate
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return False, f"{field_name}: {ERROR_REQUIRED_FIELD}"
    return True, ""


def validate_string_length(
    value: Optional[str], max_length: int, field_name: str = "Field"
) -> Tuple[bool, str]:
    """
    Validate that a string doesn't exceed maximum length.

    Args:
        value: The string value to validate
        max_length: Maximum allowed length
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    if value and len(value) > max_length:
        return False, f"{field_name}: Must be {max_length} characters or less"
    return True, ""


def validate_positive_number(value: Any, field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a value is a positive number (> 0).

    Args:
        value: The value to validate
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    num_value = _as_decimal(value)
    if num_value is None:
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"
    if num_value <= 0:
        return False, f"{field_name}: {ERROR_INVALID_POSITIVE}"
    return True, ""


def validate_non_negative_number(value: Any, field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a value is a non-negative number (>= 0).

    Args:
        value: The value to validate
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    num_value = _as_decimal(value)
    if num_value is None:
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"
    if num_value < 0:
        return False, f"{field_name}: {ERROR_INVALID_NON_NEGATIVE}"
    return True, ""


def validate_integer_at_least(
    value: Any, minimum: int, field_name: str = "Field"
) -> Tuple[bool, str]:
    """
    Validate that a value is a whole number no smaller than minimum.

    Args:
        value: The value to validate
        minimum: Smallest allowed value
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    num_value = _as_decimal(value)
    if num_value is None:
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"
    if num_value != num_value.to_integral_value():
        return False, f"{field_name}: {ERROR_INVALID_INTEGER}"
    if num_value < minimum:
        return False, f"{field_name}: Must be at least {minimum}"
    return True, ""


def validate_unit(unit: Optional[str], field_name: str = "Unit") -> Tuple[bool, str]:
    """
    Validate that a unit is one of the known measurement units.

    Args:
        unit: The unit string to validate (aliases such as "pcs" are accepted)
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    from ..services.unit_converter import get_unit_category

    is_valid, error = validate_required_string(unit, field_name)
    if not is_valid:
        return is_valid, error

    if get_unit_category(unit) is None:
        return False, f"{field_name}: {ERROR_INVALID_UNIT} '{unit}'"
    return True, ""


def _collect(errors: List[str], result: Tuple[bool, str]) -> None:
    is_valid, error = result
    if not is_valid:
        errors.append(error)


def validate_ingredient_data(data: Dict[str, Any], partial: bool = False) -> Tuple[bool, List[str]]:
    """
    Validate ingredient create/update payload.

    Args:
        data: Dictionary with name, base_unit, cost_per_base_unit, supplier,
              lead_time_days, notes
        partial: If True (updates), only validate the keys that are present

    Returns:
        Tuple of (is_valid, list of error messages)
    """
    errors: List[str] = []

    if not partial or "name" in data:
        _collect(errors, validate_required_string(data.get("name"), "Name"))
        _collect(errors, validate_string_length(data.get("name"), MAX_NAME_LENGTH, "Name"))

    if not partial or "base_unit" in data:
        _collect(errors, validate_unit(data.get("base_unit"), "Base unit"))

    if "cost_per_base_unit" in data or not partial:
        _collect(
            errors,
            validate_non_negative_number(data.get("cost_per_base_unit", 0), "Cost per base unit"),
        )

    if data.get("lead_time_days") is not None:
        _collect(errors, validate_integer_at_least(data["lead_time_days"], 0, "Lead time (days)"))

    _collect(errors, validate_string_length(data.get("supplier"), MAX_NAME_LENGTH, "Supplier"))
    _collect(errors, validate_string_length(data.get("notes"), MAX_NOTES_LENGTH, "Notes"))

    return len(errors) == 0, errors


def validate_recipe_line(line: Dict[str, Any], index: int) -> List[str]:
    """
    Validate one recipe ingredient line.

    Args:
        line: Dictionary with ingredient_id, quantity, unit
        index: Position of the line (1-based) for error messages

    Returns:
        List of error messages (empty when valid)
    """
    errors: List[str] = []
    label = f"Ingredient line {index}"

    if line.get("ingredient_id") is None:
        errors.append(f"{label} ingredient: {ERROR_REQUIRED_FIELD}")
    _collect(errors, validate_positive_number(line.get("quantity"), f"{label} quantity"))
    _collect(errors, validate_required_string(line.get("unit"), f"{label} unit"))
    return errors


def validate_recipe_data(
    data: Dict[str, Any],
    ingredients_data: Optional[List[Dict[str, Any]]] = None,
    require_ingredients: bool = True,
) -> Tuple[bool, List[str]]:
    """
    Validate recipe payload and its ingredient lines.

    Args:
        data: Dictionary with name, description, servings
        ingredients_data: List of line dictionaries
        require_ingredients: If True, at least one line is required

    Returns:
        Tuple of (is_valid, list of error messages)
    """
    errors: List[str] = []

    _collect(errors, validate_required_string(data.get("name"), "Name"))
    _collect(errors, validate_string_length(data.get("name"), MAX_NAME_LENGTH, "Name"))
    _collect(
        errors,
        validate_string_length(data.get("description"), MAX_DESCRIPTION_LENGTH, "Description"),
    )
    _collect(errors, validate_integer_at_least(data.get("servings"), MIN_SERVINGS, "Servings"))

    lines = ingredients_data or []
    if require_ingredients and not lines:
        errors.append(ERROR_NO_INGREDIENTS)
    for index, line in enumerate(lines, start=1):
        errors.extend(validate_recipe_line(line, index))

    return len(errors) == 0, errors


def validate_product_data(data: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """
    Validate manual product payload.

    Args:
        data: Dictionary with name, sku, base_cost_cache, suggested_price_cache

    Returns:
        Tuple of (is_valid, list of error messages)
    """
    errors: List[str] = []

    _collect(errors, validate_required_string(data.get("name"), "Name"))
    _collect(errors, validate_string_length(data.get("name"), MAX_NAME_LENGTH, "Name"))
    _collect(errors, validate_string_length(data.get("sku"), MAX_SKU_LENGTH, "SKU"))
    _collect(
        errors, validate_non_negative_number(data.get("base_cost_cache", 0), "Base cost")
    )
    _collect(
        errors,
        validate_non_negative_number(data.get("suggested_price_cache", 0), "Suggested price"),
    )

    return len(errors) == 0, errors


def validate_purchase_data(
    quantity: Any, unit: Optional[str], total_price: Any
) -> Tuple[bool, List[str]]:
    """
    Validate the shape of a purchase before any computation.

    Unit compatibility with the ingredient is checked by the purchase
    service, not here.

    Returns:
        Tuple of (is_valid, list of error messages)
    """
    errors: List[str] = []
    _collect(errors, validate_positive_number(quantity, "Quantity purchased"))
    _collect(errors, validate_required_string(unit, "Unit purchased"))
    _collect(errors, validate_non_negative_number(total_price, "Total price"))
    return len(errors) == 0, errors


def validate_markup_percent(value: Any, field_name: str = "Markup") -> Tuple[bool, str]:
    """Markup must be a non-negative percentage; no upper bound."""
    return validate_non_negative_number(value, field_name)


def validate_bulk_percentage(value: Any) -> Tuple[bool, str]:
    """
    Validate a bulk price increase percentage.

    The percentage must lie in (0, 100]. The upper bound is business
    policy for bulk updates only.

    Returns:
        Tuple of (is_valid, error_message)
    """
    num_value = _as_decimal(value)
    if num_value is None:
        return False, f"Percentage: {ERROR_INVALID_NUMBER}"
    if num_value <= BULK_INCREASE_MIN_PERCENT or num_value > BULK_INCREASE_MAX_PERCENT:
        return False, f"Percentage: {ERROR_BULK_PERCENTAGE}"
    return True, ""
