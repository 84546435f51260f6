"""
Module: erp_kernel.db.types
Responsibility: Decimal coercion and the sanctioned rounding
    helpers for money and stock quantities.
Architecture position: Kernel > DB.  May be imported by ORM files, domain/,
    services/ and engines.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats anywhere.  All amounts are Decimal with explicit precision.
    - round_money() is the ONLY sanctioned rounding function for monetary
      values; round_ratio() is the only one for derived metrics (DSO, CEI).
"""

from decimal import Decimal, ROUND_HALF_UP

MONEY_DECIMAL_PLACES = 2
RATIO_DECIMAL_PLACES = 1
DEFAULT_ROUNDING = ROUND_HALF_UP


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Coerce an int or numeric string to Decimal.

    Floats are rejected: a binary float has already lost the exact value
    a caller meant to pass.

    Raises:
        TypeError: If value is a float (or bool).
        decimal.InvalidOperation: If value is a non-numeric string.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Monetary values must not be {type(value).__name__}: {value!r}")
    return Decimal(str(value))


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    This is the ONLY sanctioned rounding function for financial values.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places > 0 else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def round_ratio(value: Decimal) -> Decimal:
    """Round a derived metric (DSO days, CEI percent) to one decimal place."""
    return round_money(value, decimal_places=RATIO_DECIMAL_PLACES)
