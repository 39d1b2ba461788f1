"""
Money helpers.

All amounts are ``Decimal``.  ``round_money`` is the single rounding
function (ROUND_HALF_UP); ``format_money`` renders amounts for display
in the ``"₱ 1,234.50"`` style used on purchase-request screens.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any

DEFAULT_ROUNDING = ROUND_HALF_UP
DEFAULT_CURRENCY_SYMBOL = "₱"


def to_decimal(value: Any) -> Decimal:
    """
    Convert an int, str, float or Decimal to Decimal.

    Floats go through ``str`` so that ``0.1`` becomes ``Decimal("0.1")``
    rather than its binary expansion.

    Raises:
        ValueError: if the value is not numeric.
    """
    if isinstance(value, bool):
        raise ValueError(f"Cannot convert {value!r} to Decimal")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = str(value)
    try:
        result = Decimal(value.strip() if isinstance(value, str) else value)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Cannot convert {value!r} to Decimal") from exc
    if not result.is_finite():
        raise ValueError(f"Cannot convert {value!r} to a finite Decimal")
    return result


def round_money(value: Decimal, places: int = 2) -> Decimal:
    """Round a monetary value to ``places`` decimal places (ROUND_HALF_UP)."""
    with localcontext() as ctx:
        # quantize needs every integer digit plus ``places`` to fit in the precision
        ctx.prec = max(ctx.prec, value.adjusted() + places + 1)
        return value.quantize(Decimal(1).scaleb(-places), rounding=DEFAULT_ROUNDING)


def format_money(amount: Any, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> str:
    """
    Format an amount for display, e.g. ``"₱ 49,339.28"``.

    Negative amounts keep the sign after the symbol (``"₱ -1,250.00"``).
    Returns ``""`` for None, blank strings and anything non-numeric.
    """
    if amount is None:
        return ""
    if isinstance(amount, str) and not amount.strip():
        return ""
    try:
        value = round_money(to_decimal(amount))
    except ValueError:
        return ""
    return f"{symbol} {value:,.2f}"
