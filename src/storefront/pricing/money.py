"""Exact decimal money helpers.

Amounts are persisted as decimal strings (protean has no decimal field) and
handled as ``Decimal`` in memory. Rounding is always half-even to the
currency's minor unit.
"""

from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation

from storefront.config import get_settings

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def minor_unit(exponent: int | None = None) -> Decimal:
    """Smallest representable amount, e.g. ``Decimal("0.01")`` for exponent 2."""
    if exponent is None:
        exponent = get_settings().currency_exponent
    return Decimal(1).scaleb(-exponent)


def to_decimal(value) -> Decimal:
    """Coerce a persisted or user-supplied amount into a ``Decimal``.

    Floats are rejected: a float has already lost the exact amount.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        raise TypeError("Money amounts must not be floats")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Not a decimal amount: {value!r}") from exc


def quantize(value, exponent: int | None = None) -> Decimal:
    return to_decimal(value).quantize(minor_unit(exponent), rounding=ROUND_HALF_EVEN)


def to_str(value, exponent: int | None = None) -> str:
    """Canonical persisted form of an amount."""
    return str(quantize(value, exponent))
