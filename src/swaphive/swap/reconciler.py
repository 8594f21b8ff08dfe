"""Settlement reconciliation for submitted swaps.

The bridge answers a swap with a transfer whose memo carries the original
transaction id, e.g. ``"Swapped Qty: 99.799 Swapped Price: 0.99999 <txid>"``.
Resolution is pull-based and idempotent:

1. Settlement on the output ledger (bridge -> user, memo has the tx id): completed
2. Refund on the input ledger (same convention): refunded
3. Neither, and 30s < age < 600s: if the sent transaction does not exist, not-sent
4. Terminal record with a placeholder counterpart id: backfill the real id

Outside the age window a record stays pending. A failed lookup leaves the
record as it was; the next pass tries again.
"""

import logging
import re
import time
from dataclasses import replace
from typing import Callable, Optional

from swaphive.chains import Token
from swaphive.ledgers.base import LedgerGateway, LedgerTransfer
from swaphive.swap.models import Settlement, SwapRecord, SwapStatus

logger = logging.getLogger(__name__)

SWAPPED_QTY_PATTERN = re.compile(r"Swapped Qty\s*:\s*([\d.]+)")
SWAPPED_PRICE_PATTERN = re.compile(r"Swapped Price\s*:\s*([\d.]+)")

MIN_VERIFY_AGE = 30.0
MAX_VERIFY_AGE = 600.0


def parse_settlement(transfer: LedgerTransfer) -> Settlement:
    """Extract the settlement details carried by a bridge transfer."""
    memo = transfer.memo or ""
    qty = SWAPPED_QTY_PATTERN.search(memo)
    price = SWAPPED_PRICE_PATTERN.search(memo)
    return Settlement(
        tx_id=transfer.tx_id,
        amount=transfer.amount,
        swapped_qty=qty.group(1) if qty else None,
        swapped_price=price.group(1) if price else None,
        memo=memo,
    )


class SettlementReconciler:
    """Resolves pending swap records against the bridge account history."""

    def __init__(
        self,
        primary: LedgerGateway,
        side: LedgerGateway,
        bridge_account: str,
        clock: Callable[[], float] = time.time,
        min_age: float = MIN_VERIFY_AGE,
        max_age: float = MAX_VERIFY_AGE,
        history_limit: int = 100,
    ):
        """Initialize the reconciler.

        Args:
            primary: HIVE ledger gateway
            side: SWAP.HIVE ledger gateway
            bridge_account: Account that pays out settlements and refunds
            clock: Time source in epoch seconds
            min_age: Grace period before an unseen transaction may be judged
            max_age: Age after which existence is no longer checked
            history_limit: Bridge history entries scanned per lookup
        """
        self.primary = primary
        self.side = side
        self.bridge_account = bridge_account
        self._clock = clock
        self.min_age = min_age
        self.max_age = max_age
        self.history_limit = history_limit

    def gateway_for(self, token: Token) -> LedgerGateway:
        return self.primary if token.is_primary else self.side

    async def find_settlement(self, token: Token, tx_id: str, username: str) -> Optional[Settlement]:
        """Newest bridge transfer of ``token`` to ``username`` whose memo contains ``tx_id``."""
        transfer = await self.gateway_for(token).find_transfer_with_memo(
            self.bridge_account,
            username,
            tx_id,
            limit=self.history_limit,
        )
        if transfer is None:
            return None
        return parse_settlement(transfer)

    async def verify_transaction_exists(self, tx_id: str, token: Token) -> bool:
        """Check that a submitted transaction reached the ledger of its input token."""
        return await self.gateway_for(token).transaction_exists(tx_id)

    def in_verification_window(self, record: SwapRecord, now: float) -> bool:
        age = record.age_seconds(now)
        return self.min_age < age < self.max_age

    async def resolve(self, record: SwapRecord, now: Optional[float] = None) -> SwapRecord:
        """Resolve one record.

        Args:
            record: Record to resolve (not modified)
            now: Current time in epoch seconds (defaults to the clock)

        Returns:
            The updated record, or ``record`` itself when nothing changed or
            a lookup failed
        """
        now = self._clock() if now is None else now
        try:
            if record.status.is_terminal:
                return await self._backfill(record)
            return await self._resolve_pending(record, now)
        except Exception as e:
            logger.error(f"Could not resolve swap {record.tx_id_sent}, keeping {record.status.value}: {e}")
            return record

    async def _resolve_pending(self, record: SwapRecord, now: float) -> SwapRecord:
        settlement = await self.find_settlement(record.token_out, record.tx_id_sent, record.username)
        if settlement is not None:
            logger.info(f"Swap {record.tx_id_sent} completed by {settlement.tx_id} ({settlement.amount})")
            return replace(
                record,
                status=SwapStatus.COMPLETED,
                tx_id_received=settlement.tx_id,
                amount_received=settlement.amount,
                swapped_qty=settlement.swapped_qty,
                swapped_price=settlement.swapped_price,
            )

        refund = await self.find_settlement(record.token_in, record.tx_id_sent, record.username)
        if refund is not None:
            logger.info(f"Swap {record.tx_id_sent} refunded by {refund.tx_id} ({refund.amount})")
            return replace(
                record,
                status=SwapStatus.REFUNDED,
                tx_id_received=refund.tx_id,
                amount_received=refund.amount,
            )

        if not self.in_verification_window(record, now):
            return record

        if await self.verify_transaction_exists(record.tx_id_sent, record.token_in):
            return record

        logger.warning(f"Swap {record.tx_id_sent} not found on {record.token_in.value}, marking not-sent")
        return replace(record, status=SwapStatus.NOT_SENT)

    async def _backfill(self, record: SwapRecord) -> SwapRecord:
        if not record.has_placeholder_id:
            return record

        token = record.token_in if record.status is SwapStatus.REFUNDED else record.token_out
        settlement = await self.find_settlement(token, record.tx_id_sent, record.username)
        if settlement is None:
            return record

        logger.info(f"Backfilled {record.tx_id_received} -> {settlement.tx_id} for swap {record.tx_id_sent}")
        return replace(record, tx_id_received=settlement.tx_id)
