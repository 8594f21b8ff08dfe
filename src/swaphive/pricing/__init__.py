"""Swap pricing: fee curve parameters and the quote engine."""

from swaphive.pricing.engine import FeeBreakdown, PoolState, PricingEngine, SwapQuote
from swaphive.pricing.fees import FeeConfig, load_fee_config

__all__ = [
    "FeeBreakdown",
    "FeeConfig",
    "PoolState",
    "PricingEngine",
    "SwapQuote",
    "load_fee_config",
]
