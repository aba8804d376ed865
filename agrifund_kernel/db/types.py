"""
Module: agrifund_kernel.db.types
Responsibility: Decimal coercion and rounding helpers for monetary and
    agronomic quantities.  Centralizes precision so every model and service
    uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/ and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats for money or surfaces.  All amounts are Decimal.
    - round_money() and round_percentage() are the sanctioned rounding
      functions (ROUND_HALF_UP).
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Coerce an int, str or Decimal into a Decimal.

    Floats are refused: they would smuggle binary rounding error into
    financial amounts.

    Raises:
        TypeError: If value is a float or another unsupported type.
        ValueError: If a string cannot be parsed as a number.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Refusing to build a Decimal from {type(value).__name__}: {value!r}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, str)):
        try:
            return Decimal(value)
        except InvalidOperation as exc:
            raise ValueError(f"Not a number: {value!r}") from exc
    raise TypeError(f"Unsupported numeric type: {type(value).__name__}")


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantum = Decimal(1).scaleb(-decimal_places)
    return value.quantize(quantum, rounding=rounding)


def round_percentage(value: Decimal) -> int:
    """Round a percentage to the nearest integer, halves away from zero."""
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))
