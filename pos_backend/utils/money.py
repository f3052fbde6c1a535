"""Decimal parsing and rounding helpers for monetary and quantity fields."""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union, Optional

CENT = Decimal('0.01')
ZERO = Decimal('0.00')

Number = Union[int, float, Decimal, str]


def quantize_money(value: Number) -> Decimal:
    """Round to cents, half up."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_decimal(value: Optional[Number], field: str, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """
    Parse a non-negative decimal from user input.

    Floats go through ``str`` first so 0.1 stays 0.1. ``None`` and empty
    strings yield ``default``.

    Raises:
        ValueError: if the value is not a number, is negative, or is not finite.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, bool):
        raise ValueError(f'{field} must be a number')

    try:
        decimal_value = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f'{field} must be a number')

    if not decimal_value.is_finite():
        raise ValueError(f'{field} must be a number')
    if decimal_value < 0:
        raise ValueError(f'{field} cannot be negative')

    return decimal_value


def parse_quantity(value, field: str = 'quantity') -> int:
    """
    Parse a strictly positive integer quantity.

    Accepts ints and integral strings ("3"); rejects 2.5, "abc", 0 and negatives.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f'{field} must be a positive integer')
    if isinstance(value, int):
        qty = value
    else:
        try:
            as_decimal = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValueError(f'{field} must be a positive integer')
        if not as_decimal.is_finite() or as_decimal != as_decimal.to_integral_value():
            raise ValueError(f'{field} must be a positive integer')
        qty = int(as_decimal)
    if qty <= 0:
        raise ValueError(f'{field} must be a positive integer')
    return qty


def money_str(value: Optional[Number]) -> Optional[str]:
    """Serialize a monetary value for JSON ("12.50")."""
    if value is None:
        return None
    return str(quantize_money(value))
