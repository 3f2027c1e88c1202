"""DTO utilities for service layer.

Provides standardized conversion and formatting functions for monetary
values, ensuring consistent rounding and JSON serialization.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

from ..utils.constants import CENT_QUANTUM, COST_QUANTUM, UNIT_COST_QUANTUM

Number = Union[Decimal, float, int, str]


def to_decimal(value: Union[Number, None]) -> Decimal:
    """
    Convert a numeric value to Decimal without float artifacts.

    Floats go through str() so 0.1 becomes Decimal("0.1"), not its binary
    expansion. None becomes Decimal("0").

    Raises:
        ValueError: If value is not numeric

    Examples:
        >>> to_decimal(0.1)
        Decimal('0.1')
        >>> to_decimal(None)
        Decimal('0')
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Not a number: {value!r}") from e


def quantize_cost(value: Union[Number, None]) -> Decimal:
    """
    Round a cost to storage precision (4 decimal places, half up).

    Examples:
        >>> quantize_cost(Decimal("115.000049"))
        Decimal('115.0000')
    """
    return to_decimal(value).quantize(COST_QUANTUM, rounding=ROUND_HALF_UP)


def quantize_unit_cost(value: Union[Number, None]) -> Decimal:
    """
    Round an ingredient cost per base unit to 10 decimal places (half up).

    Examples:
        >>> quantize_unit_cost(Decimal("2.37") / 1000)
        Decimal('0.0023700000')
    """
    return to_decimal(value).quantize(UNIT_COST_QUANTUM, rounding=ROUND_HALF_UP)


def quantize_cents(value: Union[Number, None]) -> Decimal:
    """
    Round a value to cents (2 decimal places, half up).

    Examples:
        >>> quantize_cents(Decimal("12.345"))
        Decimal('12.35')
    """
    return to_decimal(value).quantize(CENT_QUANTUM, rounding=ROUND_HALF_UP)


def cost_to_string(value: Union[Number, None]) -> str:
    """
    Convert a cost value to a 2-decimal string format.

    This is the standard format for cost values in service DTOs and CLI
    output.

    Args:
        value: Cost value (Decimal, float, int, str, or None)

    Returns:
        String formatted as "12.34" (2 decimal places).
        Returns "0.00" if value is None.

    Examples:
        >>> cost_to_string(Decimal("12.345"))
        '12.35'
        >>> cost_to_string(12.3)
        '12.30'
        >>> cost_to_string(None)
        '0.00'
    """
    return str(quantize_cents(value))
