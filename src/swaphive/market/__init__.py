"""Market data: bridge liquidity and USD prices."""

from swaphive.market.liquidity import LiquiditySnapshot
from swaphive.market.prices import MarketPrices, PriceFeed

__all__ = ["LiquiditySnapshot", "MarketPrices", "PriceFeed"]
