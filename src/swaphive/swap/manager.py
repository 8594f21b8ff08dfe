"""Swap lifecycle: quote, validate, submit, reconcile.

Submission flow:
1. Validate the live quote (amount, minimum, balance, liquidity)
2. Ask the signing service for a transfer to the bridge; the memo is the
   minimum receive amount
3. Record the swap as pending

Nothing polls afterwards. Records are resolved when the history is loaded or
refreshed (see ``SettlementReconciler``).
"""

import asyncio
import json
import logging
import time
from decimal import Decimal
from typing import Any, Callable, Optional

from swaphive.chains import ENGINE_AUTHORITY, ENGINE_CUSTOM_JSON_ID, Token
from swaphive.errors import CheckResult, SwapHiveError, TransactionError, ValidationError
from swaphive.market.liquidity import LiquiditySnapshot
from swaphive.pricing.engine import DEFAULT_SLIPPAGE_PERCENT, PricingEngine, SwapQuote
from swaphive.signing.base import SigningResult, SigningService
from swaphive.swap.history import SwapHistory
from swaphive.swap.models import Settlement, SwapRecord, SwapStatus
from swaphive.swap.reconciler import SettlementReconciler
from swaphive.utils.numeric import format_amount, sanitize_username, to_decimal
from swaphive.utils.resilience import sleep
from swaphive.wallet.balances import BalanceCache

logger = logging.getLogger(__name__)


class SwapLifecycleManager:
    """Owns the live quote and drives swaps through their lifecycle."""

    def __init__(
        self,
        pricing: PricingEngine,
        balances: BalanceCache,
        liquidity: LiquiditySnapshot,
        history: SwapHistory,
        reconciler: SettlementReconciler,
        signer: Optional[SigningService] = None,
        bridge_account: str = "uswap",
        minimum_swap: Any = Decimal("1"),
        default_slippage: Any = DEFAULT_SLIPPAGE_PERCENT,
        post_swap_refresh_delay: float = 5.0,
        settlement_wait: float = 45.0,
        clock: Callable[[], float] = time.time,
    ):
        self.pricing = pricing
        self.balances = balances
        self.liquidity = liquidity
        self.history = history
        self.reconciler = reconciler
        self.signer = signer
        self.bridge_account = bridge_account
        self.minimum_swap = to_decimal(minimum_swap)
        self.default_slippage = to_decimal(default_slippage, default=DEFAULT_SLIPPAGE_PERCENT)
        self.post_swap_refresh_delay = post_swap_refresh_delay
        self.settlement_wait = settlement_wait
        self._clock = clock
        self._quote = SwapQuote.zero(Token.HIVE, Token.SWAP_HIVE, self.default_slippage)
        self._tasks: set[asyncio.Task] = set()

    # ======================
    # Quote
    # ======================

    @property
    def current_quote(self) -> SwapQuote:
        return self._quote

    def update_quote(
        self,
        amount: Any,
        token_in: Any = None,
        token_out: Any = None,
        slippage_percent: Any = None,
    ) -> SwapQuote:
        """Recompute the live quote from form input.

        Omitted arguments keep their current value.
        """
        current = self._quote
        token_in = Token.parse(token_in) if token_in is not None else current.token_in
        if token_out is None:
            token_out = token_in.counterpart
        slippage = current.slippage_percent if slippage_percent is None else slippage_percent

        self._quote = self.pricing.quote(amount, token_in, token_out, slippage)
        return self._quote

    def reverse(self) -> SwapQuote:
        """Swap the input and output tokens, keeping amount and slippage."""
        current = self._quote
        logger.debug(f"Reversing direction: {current.token_out.value} -> {current.token_in.value}")
        return self.update_quote(
            current.amount_in,
            current.token_out,
            current.token_in,
            current.slippage_percent,
        )

    # ======================
    # Validation
    # ======================

    def validate(self, quote: Optional[SwapQuote] = None) -> CheckResult:
        """Check whether a quote can be submitted for the loaded user."""
        quote = quote or self._quote

        if self.balances.current_user is None:
            return CheckResult.failed("Load an account first")

        if quote.amount_in <= 0:
            return CheckResult.failed("Enter an amount to swap")

        if quote.amount_in < self.minimum_swap:
            return CheckResult.failed(f"Minimum swap is {format_amount(self.minimum_swap)} {quote.token_in.value}")

        if quote.amount_in > self.balances.get_balance(quote.token_in):
            return CheckResult.failed(f"Insufficient {quote.token_in.value} balance")

        if quote.expected_out > self.liquidity.liquidity_for(quote.token_out):
            return CheckResult.failed(f"Insufficient {quote.token_out.value} liquidity on the bridge")

        return CheckResult.passed()

    # ======================
    # Submission
    # ======================

    async def submit(self) -> SwapRecord:
        """Submit the live quote through the signing service.

        Returns:
            The pending SwapRecord added to the history

        Raises:
            ValidationError: The quote does not pass ``validate``
            TransactionError: No signing service, a rejection, or no transaction id
        """
        quote = self._quote
        check = self.validate(quote)
        if not check:
            raise ValidationError(check.reason)

        if self.signer is None:
            raise TransactionError("Signing service not available")

        username = self.balances.current_user
        amount = format_amount(quote.amount_in)
        memo = format_amount(quote.min_receive)

        logger.info(
            f"Submitting swap for @{username}: {amount} {quote.token_in.value} -> "
            f"{quote.token_out.value} (min receive {memo})"
        )
        result = await self._request_signature(username, amount, memo, quote.token_in)

        if not result.success:
            raise TransactionError(result.message or "Transaction rejected by signing service")
        if not result.result_id:
            raise TransactionError("Signing service returned no transaction id")

        record = SwapRecord(
            timestamp=int(self._clock() * 1000),
            tx_id_sent=result.result_id,
            amount_sent=f"{amount} {quote.token_in.value}",
            token_in=quote.token_in,
            token_out=quote.token_out,
            username=username,
            status=SwapStatus.PENDING,
        )
        await self.history.add(record)

        if self.post_swap_refresh_delay > 0:
            self._schedule(self._refresh_balances_later(self.post_swap_refresh_delay))

        return record

    async def _request_signature(self, username: str, amount: str, memo: str, token_in: Token) -> SigningResult:
        if token_in.is_primary:
            return await self.signer.request_transfer(
                username,
                self.bridge_account,
                amount,
                memo,
                token_in.value,
            )

        payload = {
            "contractName": "tokens",
            "contractAction": "transfer",
            "contractPayload": {
                "symbol": token_in.value,
                "to": self.bridge_account,
                "quantity": amount,
                "memo": memo,
            },
        }
        return await self.signer.request_custom_json(
            username,
            ENGINE_CUSTOM_JSON_ID,
            ENGINE_AUTHORITY,
            json.dumps(payload),
            f"{token_in.value} Transfer",
        )

    def _schedule(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _refresh_balances_later(self, delay: float) -> None:
        await sleep(delay)
        try:
            await self.balances.refresh()
        except SwapHiveError as e:
            logger.warning(f"Post-swap balance refresh failed: {e}")

    # ======================
    # Reconciliation
    # ======================

    async def load_history(self, username: str) -> list[SwapRecord]:
        """Resolve and return a user's most recent swaps, newest first."""
        username = sanitize_username(username)
        records = await self.history.records_for(username)

        resolved = []
        for record in records:
            resolved.append(await self.reconciler.resolve(record))

        changed = await self.history.update(resolved)
        if changed:
            logger.info(f"Updated {changed} swap record(s) for @{username}")

        return resolved[: self.history.limit]

    async def resolve_pending(self, username: Optional[str] = None) -> list[SwapRecord]:
        """Re-run resolution for a user (the loaded one by default)."""
        username = username or self.balances.current_user
        if not username:
            raise ValidationError("No user loaded")
        return await self.load_history(username)

    async def await_settlement(self, record: SwapRecord, delay: Optional[float] = None) -> Optional[Settlement]:
        """Wait, then look once for the settlement of a freshly submitted swap.

        Returns:
            The Settlement, or None if it has not arrived (or the lookup failed)
        """
        delay = self.settlement_wait if delay is None else delay
        logger.info(f"Waiting {delay:.0f}s for settlement of {record.tx_id_sent}")
        await sleep(delay)

        try:
            return await self.reconciler.find_settlement(record.token_out, record.tx_id_sent, record.username)
        except SwapHiveError as e:
            logger.error(f"Settlement lookup for {record.tx_id_sent} failed: {e}")
            return None

    async def close(self) -> None:
        """Cancel scheduled background work."""
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
