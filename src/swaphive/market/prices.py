"""USD market prices shown next to the swap form.

HIVE and HBD come from CoinGecko. Hive Engine tokens are priced from their
last trade in HIVE (``market.metrics``) times the HIVE price, so they are
fetched after HIVE.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Optional

import httpx

from swaphive.errors import APIError
from swaphive.ledgers.engine import HiveEngineLedger
from swaphive.utils.numeric import round_to, safe_multiply, to_decimal
from swaphive.utils.resilience import retry, with_timeout

logger = logging.getLogger(__name__)

COINGECKO_API = "https://api.coingecko.com/api/v3"

# Symbol -> CoinGecko id
COINGECKO_IDS = {
    "HIVE": "hive",
    "HBD": "hive_dollar",
}

ENGINE_TOKENS = ("VAULT", "UPME")


@dataclass
class MarketPrices:
    """Latest USD prices (0 when unknown)."""

    usd: dict[str, Decimal] = field(default_factory=dict)
    fetched_at: Optional[float] = None

    def get(self, symbol: str) -> Decimal:
        return self.usd.get(symbol.upper(), Decimal("0"))


class PriceFeed:
    """Cached USD prices for HIVE, HBD and selected Hive Engine tokens."""

    def __init__(
        self,
        engine: Optional[HiveEngineLedger] = None,
        api_url: str = COINGECKO_API,
        cache_ttl: float = 15.0,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.engine = engine
        self.api_url = api_url
        self.cache_ttl = cache_ttl
        self.timeout = timeout
        self._transport = transport
        self._clock = clock
        self._prices = MarketPrices()

    @property
    def prices(self) -> MarketPrices:
        return self._prices

    async def _coingecko(self, coingecko_id: str) -> dict:
        url = f"{self.api_url}/simple/price"
        params = {"ids": coingecko_id, "vs_currencies": "usd"}

        async def _get() -> dict:
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    response = await client.get(url, params=params)
            except httpx.HTTPError as e:
                raise APIError(f"Failed to fetch from CoinGecko: {e}", url)
            if response.status_code != 200:
                raise APIError(f"CoinGecko returned HTTP {response.status_code}", url)
            return response.json()

        return await with_timeout(_get(), self.timeout)

    async def fetch_usd_price(self, symbol: str) -> Decimal:
        """USD price of a CoinGecko-listed coin; 0 on failure."""
        coingecko_id = COINGECKO_IDS[symbol]
        try:
            data = await retry(lambda: self._coingecko(coingecko_id), max_attempts=2, base_delay=1.0)
        except (APIError, ValueError) as e:
            logger.error(f"{symbol} price fetch failed: {e}")
            return Decimal("0")

        price = to_decimal((data.get(coingecko_id) or {}).get("usd"))
        return round_to(price, 4)

    async def fetch_token_price(self, symbol: str, hive_usd: Decimal) -> Decimal:
        """USD price of a Hive Engine token; 0 on failure or without an engine gateway."""
        if self.engine is None:
            return Decimal("0")
        try:
            metrics = await retry(
                lambda: self.engine.find_market_metrics(symbol),
                max_attempts=2,
                base_delay=1.0,
                retry_on=(APIError,),
            )
        except APIError as e:
            logger.error(f"{symbol} price fetch failed: {e}")
            return Decimal("0")

        if not metrics:
            return Decimal("0")
        last_price = to_decimal(metrics.get("lastPrice"))
        return round_to(safe_multiply(last_price, hive_usd), 6)

    async def fetch_all(self, force_refresh: bool = False) -> MarketPrices:
        """Refresh every price unless the cache is still fresh."""
        now = self._clock()
        fetched_at = self._prices.fetched_at
        if not force_refresh and fetched_at is not None and now - fetched_at < self.cache_ttl:
            logger.debug("Using cached market prices")
            return self._prices

        hive_usd, hbd_usd = await asyncio.gather(
            self.fetch_usd_price("HIVE"),
            self.fetch_usd_price("HBD"),
        )
        token_prices = await asyncio.gather(
            *(self.fetch_token_price(symbol, hive_usd) for symbol in ENGINE_TOKENS)
        )

        usd = {"HIVE": hive_usd, "HBD": hbd_usd}
        usd.update(zip(ENGINE_TOKENS, token_prices))
        self._prices = MarketPrices(usd=usd, fetched_at=now)
        summary = ", ".join(f"{symbol}=${price}" for symbol, price in usd.items())
        logger.info(f"Market prices updated: {summary}")
        return self._prices
