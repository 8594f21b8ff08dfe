"""Hive (primary ledger) gateway over the condenser JSON-RPC API.

API Docs: https://developers.hive.io/apidefinitions/#apidefinitions-condenser-api
"""

import logging
from decimal import Decimal
from typing import Any, Optional

from swaphive.chains import Token
from swaphive.ledgers.base import LedgerGateway, LedgerTransfer
from swaphive.ledgers.rpc import JsonRpcClient, RPCResponseError
from swaphive.utils.numeric import to_decimal

logger = logging.getLogger(__name__)


class HiveLedger(LedgerGateway):
    """HIVE balances, transfers and transactions on the Hive blockchain."""

    def __init__(self, rpc: JsonRpcClient):
        super().__init__(Token.HIVE)
        self.rpc = rpc

    @property
    def name(self) -> str:
        return "Hive"

    async def get_accounts(self, accounts: list[str]) -> list[dict]:
        result = await self.rpc.call("condenser_api.get_accounts", [accounts])
        return result or []

    async def get_account_history(self, account: str, start: int = -1, limit: int = 100) -> list:
        """Raw account history.

        Returns:
            Entries shaped ``[index, {trx_id, op: [type, data], timestamp, ...}]``,
            oldest first
        """
        result = await self.rpc.call("condenser_api.get_account_history", [account, start, limit])
        return result or []

    async def get_transaction(self, tx_id: str) -> Optional[dict]:
        """Get a transaction by id, or None if the node does not know it."""
        try:
            return await self.rpc.call("condenser_api.get_transaction", [tx_id])
        except RPCResponseError as e:
            logger.debug(f"Transaction {tx_id} not found: {e}")
            return None

    async def get_balance(self, account: str) -> Optional[Decimal]:
        accounts = await self.get_accounts([account])
        if not accounts:
            return None
        return to_decimal(accounts[0].get("balance"))

    async def get_outbound_transfers(self, account: str, limit: int = 100) -> list[LedgerTransfer]:
        history = await self.get_account_history(account, -1, limit)
        transfers = []

        for entry in history:
            parsed = parse_history_entry(entry)
            if parsed is None:
                continue
            tx_id, op_type, data, timestamp = parsed

            if op_type != "transfer" or data.get("from") != account:
                continue

            amount = str(data.get("amount", ""))
            if not amount.endswith(Token.HIVE.value):
                continue

            transfers.append(
                LedgerTransfer(
                    tx_id=tx_id,
                    sender=data.get("from", ""),
                    recipient=data.get("to", ""),
                    amount=amount,
                    symbol=Token.HIVE.value,
                    memo=data.get("memo") or "",
                    timestamp=timestamp,
                )
            )

        return transfers

    async def transaction_exists(self, tx_id: str) -> bool:
        tx = await self.get_transaction(tx_id)
        return tx is not None


def parse_history_entry(entry: Any) -> Optional[tuple[str, str, dict, Optional[str]]]:
    """Unpack one account history entry.

    Returns:
        ``(trx_id, op_type, op_data, timestamp)`` or None for malformed entries
    """
    try:
        _, item = entry
        op_type, data = item["op"]
        return item.get("trx_id", ""), op_type, data, item.get("timestamp")
    except (TypeError, ValueError, KeyError):
        logger.debug(f"Skipping malformed history entry: {entry!r}")
        return None
