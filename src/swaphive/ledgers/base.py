"""Base interface for ledger gateways.

A gateway answers the three questions the client asks of a ledger:
how much does an account hold, what did an account send recently, and does a
given transaction exist. Transport failures raise ``APIError``; "not found"
is an ordinary answer (``None`` / ``False``).
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from swaphive.chains import Token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerTransfer:
    """An outbound transfer observed in an account history."""

    tx_id: str
    sender: str
    recipient: str
    amount: str  # as reported by the ledger, e.g. "10.000 HIVE"
    symbol: str
    memo: str = ""
    timestamp: Optional[str] = None


class LedgerGateway(ABC):
    """Abstract base class for ledger query services."""

    def __init__(self, token: Token):
        self.token = token

    @property
    @abstractmethod
    def name(self) -> str:
        """Gateway name for logging."""
        pass

    @abstractmethod
    async def get_balance(self, account: str) -> Optional[Decimal]:
        """Get the token balance of an account.

        Args:
            account: Account name

        Returns:
            Balance (zero when the account holds none), or None if the
            account does not exist
        """
        pass

    @abstractmethod
    async def get_outbound_transfers(self, account: str, limit: int = 100) -> list[LedgerTransfer]:
        """Get recent transfers of this gateway's token sent by an account.

        Args:
            account: Sending account (the bridge)
            limit: How many history entries to inspect

        Returns:
            Transfers ordered oldest first
        """
        pass

    @abstractmethod
    async def transaction_exists(self, tx_id: str) -> bool:
        """Check whether a transaction id is known to the ledger."""
        pass

    async def find_transfer_with_memo(
        self,
        sender: str,
        recipient: str,
        memo_fragment: str,
        limit: int = 100,
    ) -> Optional[LedgerTransfer]:
        """Find the newest transfer from sender to recipient whose memo contains a fragment.

        Scans newest first; the first match wins.
        """
        transfers = await self.get_outbound_transfers(sender, limit=limit)
        for transfer in reversed(transfers):
            if transfer.recipient != recipient:
                continue
            if memo_fragment and memo_fragment in transfer.memo:
                return transfer
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(token={self.token.value})"
