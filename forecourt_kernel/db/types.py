"""
Module: forecourt_kernel.db.types
Responsibility: Annotated column aliases and the money rounding function.
    Centralizes precision and rounding so that every model, engine and
    service uses identical definitions.
Architecture position: Kernel > DB.  Imported by ORM modules, engines and
    services.  MUST NOT import from any of those layers.
Invariants enforced:
    - round_money() is the ONLY sanctioned rounding function for financial
      values.  Amounts are rounded to 2 places, ROUND_HALF_UP, at every
      computation boundary.
    - No floats.  All monetary amounts are Decimal.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import Numeric, String

# 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Percentage rates (tax, statutory, interest)
Rate = Annotated[Decimal, Numeric(9, 4)]

# Short identifier strings (codes, document numbers, enum values)
ShortCode = Annotated[str, String(50)]

# Long text for notes and remarks
LongText = Annotated[str, String(4000)]

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP
ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """
    Coerce int, str or Decimal input to Decimal.

    Floats go through ``str()`` so that ``0.1`` becomes ``Decimal("0.1")``
    rather than its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the specified decimal places.

    Preconditions: value is a Decimal (or coercible via to_decimal).
    Postconditions: Returns a Decimal quantized to ``decimal_places``.

    Example:
        round_money(Decimal("1230.005")) -> Decimal("1230.01")
    """
    quantizer = Decimal(10) ** -decimal_places
    return to_decimal(value).quantize(quantizer, rounding=rounding)
