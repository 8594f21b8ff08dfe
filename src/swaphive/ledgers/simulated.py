"""In-memory ledger for dry-run mode and tests (no network)."""

import logging
import secrets
from decimal import Decimal
from typing import Optional

from swaphive.chains import Token
from swaphive.errors import APIError
from swaphive.ledgers.base import LedgerGateway, LedgerTransfer
from swaphive.utils.numeric import format_amount, to_decimal

logger = logging.getLogger(__name__)


class SimulatedLedger(LedgerGateway):
    """Ledger backed by plain dictionaries.

    Set ``failure`` to make every query raise, simulating an unreachable node.
    """

    def __init__(self, token: Token):
        super().__init__(token)
        self.balances: dict[str, Decimal] = {}
        self.transfers: list[LedgerTransfer] = []
        self.transactions: set[str] = set()
        self.failure: Optional[Exception] = None
        self.calls: dict[str, int] = {}

    @property
    def name(self) -> str:
        return f"Simulated {self.token.value}"

    def _record_call(self, method: str) -> None:
        self.calls[method] = self.calls.get(method, 0) + 1
        if self.failure is not None:
            raise self.failure

    def set_balance(self, account: str, amount) -> None:
        self.balances[account] = to_decimal(amount)

    def add_transaction(self, tx_id: Optional[str] = None) -> str:
        """Register a transaction id as existing on the ledger."""
        tx_id = tx_id or secrets.token_hex(20)
        self.transactions.add(tx_id)
        return tx_id

    def add_transfer(
        self,
        sender: str,
        recipient: str,
        amount,
        memo: str = "",
        tx_id: Optional[str] = None,
    ) -> LedgerTransfer:
        """Append a transfer to the history (newest last) and mark its tx as existing."""
        transfer = LedgerTransfer(
            tx_id=self.add_transaction(tx_id),
            sender=sender,
            recipient=recipient,
            amount=f"{format_amount(amount)} {self.token.value}",
            symbol=self.token.value,
            memo=memo,
        )
        self.transfers.append(transfer)
        return transfer

    async def get_balance(self, account: str) -> Optional[Decimal]:
        self._record_call("get_balance")
        if account not in self.balances:
            return None if self.token.is_primary else Decimal("0")
        return self.balances[account]

    async def get_outbound_transfers(self, account: str, limit: int = 100) -> list[LedgerTransfer]:
        self._record_call("get_outbound_transfers")
        sent = [t for t in self.transfers if t.sender == account]
        return sent[-limit:]

    async def transaction_exists(self, tx_id: str) -> bool:
        self._record_call("transaction_exists")
        return tx_id in self.transactions


def unreachable(name: str = "simulated node") -> APIError:
    """Build the error a SimulatedLedger raises when marked unreachable."""
    return APIError(f"{name} unreachable", name)
