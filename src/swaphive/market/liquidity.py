"""Bridge liquidity: the pool sizes that drive pricing.

The bridge account's HIVE and SWAP.HIVE balances are the two pools. They are
refreshed at startup and periodically; between refreshes callers accept the
last known value.
"""

import asyncio
import logging
import time
from decimal import Decimal
from typing import Optional

from swaphive.chains import Token
from swaphive.errors import APIError
from swaphive.ledgers.base import LedgerGateway
from swaphive.pricing.engine import PoolState, PricingEngine
from swaphive.utils.resilience import retry

logger = logging.getLogger(__name__)


class LiquiditySnapshot:
    """Periodically refreshed view of the bridge pools."""

    def __init__(
        self,
        primary: LedgerGateway,
        side: LedgerGateway,
        bridge_account: str,
        pricing: Optional[PricingEngine] = None,
        retry_attempts: int = 2,
        retry_delay: float = 1.0,
    ):
        self.primary = primary
        self.side = side
        self.bridge_account = bridge_account
        self.pricing = pricing
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self._pool_state = pricing.pool_state if pricing else PoolState()
        self._refreshed_at: Optional[float] = None
        self._running = False

    @property
    def pool_state(self) -> PoolState:
        return self._pool_state

    @property
    def refreshed_at(self) -> Optional[float]:
        """Epoch seconds of the last successful refresh (None if never)."""
        return self._refreshed_at

    def liquidity_for(self, token: Token) -> Decimal:
        """Amount of ``token`` the bridge can pay out."""
        return self._pool_state.size_of(token)

    async def _fetch(self, gateway: LedgerGateway) -> Decimal:
        balance = await retry(
            lambda: gateway.get_balance(self.bridge_account),
            max_attempts=self.retry_attempts,
            base_delay=self.retry_delay,
            retry_on=(APIError,),
        )
        if balance is None:
            raise APIError(f"Bridge account @{self.bridge_account} not found on {gateway.name}")
        return balance

    async def refresh(self) -> bool:
        """Re-read both pools.

        Returns:
            True if the pools were updated; on failure the last known value is kept
        """
        try:
            primary_size, side_size = await asyncio.gather(
                self._fetch(self.primary),
                self._fetch(self.side),
            )
        except APIError as e:
            logger.error(f"Liquidity refresh failed, keeping {self._pool_state}: {e}")
            return False

        self._pool_state = PoolState(primary_pool_size=primary_size, side_pool_size=side_size)
        self._refreshed_at = time.time()
        if self.pricing is not None:
            self.pricing.update_pools(self._pool_state)

        logger.info(
            f"Liquidity updated: {primary_size} {Token.HIVE.value}, "
            f"{side_size} {Token.SWAP_HIVE.value}"
        )
        return True

    async def run(self, interval_seconds: float = 60.0) -> None:
        """Refresh in a loop until ``stop()`` is called."""
        self._running = True
        logger.info(f"Starting liquidity refresh loop (interval: {interval_seconds}s)")

        while self._running:
            await self.refresh()
            await asyncio.sleep(interval_seconds)

    def stop(self) -> None:
        self._running = False
        logger.info("Stopping liquidity refresh loop")
