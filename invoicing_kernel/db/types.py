"""
Module: invoicing_kernel.db.types
Responsibility: Decimal conversion and the monetary rounding helpers
    shared by models, engines and services.
Architecture position: Kernel > DB.  MUST NOT import from domain/ or
    outer layers.

Invariants enforced:
    - round_money() is the ONLY sanctioned rounding function for invoice
      amounts.  ROUND_HALF_UP at 2 decimal places.
    - No floats in monetary math.  to_decimal() converts through str so a
      float source value never leaks binary noise into Decimal arithmetic.

Failure modes:
    - ValueError from to_decimal() on missing, non-numeric or non-finite input.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given decimal places.

    Examples:
        round_money(Decimal("30.015")) -> Decimal("30.02")
        round_money(Decimal("7.505"))  -> Decimal("7.51")
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def to_decimal(value: Any) -> Decimal:
    """
    Convert a source value (Decimal, int, float, numeric string) to Decimal.

    Raises:
        ValueError: If value is None, bool, non-numeric or not finite.
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"Not a number: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def decimal_to_str(value: Decimal) -> str:
    """
    Plain string form of a Decimal without exponent or trailing zeros.

    Used for VAT-rate bucket keys ("25", "0", "12.5") and JSON payloads.
    """
    if value == ZERO:
        return "0"
    return format(value.normalize(), "f")


def format_money(value: Decimal) -> str:
    """Fixed 2 dp string form of a monetary amount ("7750.00")."""
    return format(round_money(value), "f")
