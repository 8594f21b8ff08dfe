"""Debounced, TTL-cached view of a user's balances on both ledgers.

Load flow:
1. Sanitize and validate the account name (no network on failure)
2. Serve the cached snapshot if it belongs to the same user and is fresh
3. Otherwise debounce: bursts of calls collapse into the last one
4. Fetch both balances concurrently; publish only if both succeed
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional

from swaphive.chains import Token
from swaphive.errors import APIError, ValidationError
from swaphive.ledgers.base import LedgerGateway
from swaphive.utils.numeric import floor_to, is_valid_username, sanitize_username
from swaphive.utils.resilience import Debouncer, retry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BalanceSnapshot:
    """Balances of one user, floored to 3 decimals."""

    primary_balance: Decimal
    side_balance: Decimal
    owner_username: str
    fetched_at: float

    def balance_of(self, token: Token) -> Decimal:
        return self.primary_balance if token.is_primary else self.side_balance

    def to_dict(self) -> dict:
        return {
            "username": self.owner_username,
            Token.HIVE.value: str(self.primary_balance),
            Token.SWAP_HIVE.value: str(self.side_balance),
            "fetched_at": self.fetched_at,
        }


class BalanceCache:
    """Balance cache for the currently loaded user."""

    def __init__(
        self,
        primary: LedgerGateway,
        side: LedgerGateway,
        ttl: float = 30.0,
        debounce: float = 0.5,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the cache.

        Args:
            primary: HIVE ledger gateway
            side: SWAP.HIVE ledger gateway
            ttl: Seconds a snapshot is served without network access
            debounce: Quiet period before a load actually fetches
            retry_attempts: Attempts per balance query
            retry_delay: Base backoff delay per balance query
            clock: Time source in seconds (injectable for tests)
        """
        self.primary = primary
        self.side = side
        self.ttl = ttl
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self._clock = clock
        self._snapshot: Optional[BalanceSnapshot] = None
        self._debouncer = Debouncer(self._fetch, wait=debounce)

    @property
    def snapshot(self) -> Optional[BalanceSnapshot]:
        return self._snapshot

    @property
    def current_user(self) -> Optional[str]:
        return self._snapshot.owner_username if self._snapshot else None

    def get_balance(self, token: Token) -> Decimal:
        """Cached balance of the current user (0 if nothing is loaded)."""
        if self._snapshot is None:
            return Decimal("0")
        return self._snapshot.balance_of(token)

    def is_fresh(self, username: str) -> bool:
        snapshot = self._snapshot
        if snapshot is None or snapshot.owner_username != username:
            return False
        return self._clock() - snapshot.fetched_at < self.ttl

    async def load(self, username: str, force_refresh: bool = False) -> BalanceSnapshot:
        """Load balances for a user.

        Calls arriving within the debounce window supersede each other; every
        caller of a burst gets the result of the one fetch that runs. A caller
        whose burst ran for a different account gets a ValidationError.

        Args:
            username: Account name
            force_refresh: Skip the cache and any pending debounce

        Returns:
            Fresh or cached BalanceSnapshot

        Raises:
            ValidationError: Invalid account name, unknown account, or the
                burst ran for another account
            APIError: A ledger query failed after retries
        """
        sanitized = sanitize_username(username)
        if not is_valid_username(sanitized):
            raise ValidationError("Invalid username format")

        if not force_refresh and self.is_fresh(sanitized):
            remaining = self.ttl - (self._clock() - self._snapshot.fetched_at)
            logger.debug(f"Using cached balance for @{sanitized} ({remaining:.0f}s remaining)")
            return self._snapshot

        if force_refresh:
            snapshot = await self._debouncer.call_now(sanitized)
        else:
            snapshot = await self._debouncer(sanitized)

        if snapshot.owner_username != sanitized:
            raise ValidationError(f"Balance load for @{sanitized} superseded by @{snapshot.owner_username}")
        return snapshot

    async def refresh(self) -> BalanceSnapshot:
        """Force-reload the current user.

        Raises:
            ValidationError: If no user is loaded
        """
        if self.current_user is None:
            raise ValidationError("No user loaded")
        logger.info(f"Force refreshing balance for @{self.current_user}")
        return await self.load(self.current_user, force_refresh=True)

    def clear(self) -> None:
        """Forget the current user and cancel any pending load."""
        self._debouncer.cancel()
        self._snapshot = None

    async def _query(self, gateway: LedgerGateway, username: str) -> Optional[Decimal]:
        return await retry(
            lambda: gateway.get_balance(username),
            max_attempts=self.retry_attempts,
            base_delay=self.retry_delay,
            retry_on=(APIError,),
        )

    async def _fetch(self, username: str) -> BalanceSnapshot:
        logger.info(f"Fetching fresh balance for @{username}")

        primary_balance, side_balance = await asyncio.gather(
            self._query(self.primary, username),
            self._query(self.side, username),
        )

        if primary_balance is None:
            raise ValidationError("Account not found")

        snapshot = BalanceSnapshot(
            primary_balance=floor_to(primary_balance),
            side_balance=floor_to(side_balance or Decimal("0")),
            owner_username=username,
            fetched_at=self._clock(),
        )
        self._snapshot = snapshot

        logger.info(
            f"Balance loaded for @{username}: {snapshot.primary_balance} {Token.HIVE.value}, "
            f"{snapshot.side_balance} {Token.SWAP_HIVE.value}"
        )
        return snapshot
