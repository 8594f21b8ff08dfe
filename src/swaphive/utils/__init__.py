"""Utility modules for swaphive."""

from swaphive.utils.numeric import floor_to, format_amount, round_to, to_decimal
from swaphive.utils.resilience import Debouncer, Throttler, retry, with_timeout

__all__ = [
    "floor_to",
    "format_amount",
    "round_to",
    "to_decimal",
    "Debouncer",
    "Throttler",
    "retry",
    "with_timeout",
]
