"""Decimal arithmetic and rounding rules used by every calculation.

All amounts are ``Decimal``. Display values are floored to 3 places (the
ledgers' precision); internal accounting keeps 8 places.
"""

import re
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any, Optional

DISPLAY_PLACES = 3
ACCOUNTING_PLACES = 8

USERNAME_PATTERN = re.compile(r"[a-z0-9\-.]{3,16}")

# Leading numeric part of a string, e.g. "12.500 HIVE" -> "12.500"
_LEADING_NUMBER = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def _quantum(places: int) -> Decimal:
    return Decimal(1).scaleb(-places)


def to_decimal(value: Any, default: Optional[Decimal] = Decimal("0")) -> Optional[Decimal]:
    """Parse a number from user or API input.

    Empty values, NaN, infinities and unparsable strings yield ``default``.
    """
    if value is None or value == "" or isinstance(value, bool):
        return default

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        match = _LEADING_NUMBER.match(value)
        if not match:
            return default
        try:
            result = Decimal(match.group(1))
        except InvalidOperation:
            return default
    else:
        return default

    if not result.is_finite():
        return default
    return result


def is_positive_number(value: Any) -> bool:
    """Check that a value parses to a finite number greater than zero."""
    number = to_decimal(value, default=None)
    return number is not None and number > 0


def _quantize(value: Any, places: int, rounding: str) -> Decimal:
    number = to_decimal(value)
    with localcontext() as ctx:
        # Large amounts need more digits than the default context holds
        ctx.prec = max(ctx.prec, number.adjusted() + places + 2)
        return number.quantize(_quantum(places), rounding=rounding)


def round_to(value: Any, places: int = DISPLAY_PLACES) -> Decimal:
    """Round half-up to ``places`` decimals."""
    return _quantize(value, places, ROUND_HALF_UP)


def floor_to(value: Any, places: int = DISPLAY_PLACES) -> Decimal:
    """Round toward negative infinity to ``places`` decimals."""
    return _quantize(value, places, ROUND_FLOOR)


def safe_subtract(a: Any, b: Any) -> Decimal:
    return round_to(to_decimal(a) - to_decimal(b), ACCOUNTING_PLACES)


def safe_multiply(a: Any, b: Any) -> Decimal:
    return round_to(to_decimal(a) * to_decimal(b), ACCOUNTING_PLACES)


def safe_divide(a: Any, b: Any) -> Decimal:
    """Divide rounding to 8 places; division by zero yields zero."""
    divisor = to_decimal(b)
    if divisor == 0:
        return Decimal("0")
    return round_to(to_decimal(a) / divisor, ACCOUNTING_PLACES)


def format_amount(value: Any, places: int = DISPLAY_PLACES) -> str:
    """Fixed-point string as the ledgers expect it, e.g. ``"1.000"``."""
    return f"{round_to(value, places):.{places}f}"


def sanitize_username(username: Any) -> str:
    if not username:
        return ""
    return str(username).strip().lower()


def is_valid_username(username: Any) -> bool:
    """Account names: 3-16 chars of lowercase letters, digits, hyphen, dot."""
    if not username or not isinstance(username, str):
        return False
    return USERNAME_PATTERN.fullmatch(username) is not None
