"""Hive Engine (side ledger) gateway.

Balances and transaction lookups go to the Hive Engine RPC (``/contracts`` and
``/blockchain`` endpoints). Outbound SWAP.HIVE transfers are read from the
sender's Hive account history: every Hive Engine action is broadcast as a Hive
``custom_json`` operation, so the bridge's settlements show up there first.
"""

import json
import logging
from decimal import Decimal
from typing import Any, Optional

from swaphive.chains import ENGINE_CUSTOM_JSON_ID, Token
from swaphive.ledgers.base import LedgerGateway, LedgerTransfer
from swaphive.ledgers.hive import HiveLedger, parse_history_entry
from swaphive.ledgers.rpc import JsonRpcClient
from swaphive.utils.numeric import to_decimal

logger = logging.getLogger(__name__)


class HiveEngineLedger(LedgerGateway):
    """SWAP.HIVE balances and transfers on the Hive Engine side chain."""

    def __init__(self, rpc: JsonRpcClient, hive: HiveLedger):
        """Initialize the gateway.

        Args:
            rpc: Client for Hive Engine RPC nodes
            hive: Primary ledger gateway used to read custom_json history
        """
        super().__init__(Token.SWAP_HIVE)
        self.rpc = rpc
        self.hive = hive

    @property
    def name(self) -> str:
        return "Hive Engine"

    async def find(
        self,
        contract: str,
        table: str,
        query: dict,
        limit: int = 1000,
        offset: int = 0,
    ) -> list[dict]:
        """Query a contract table."""
        params = {
            "contract": contract,
            "table": table,
            "query": query,
            "limit": limit,
            "offset": offset,
            "indexes": [],
        }
        result = await self.rpc.call("find", params, path="/contracts")
        return result or []

    async def get_transaction_info(self, tx_id: str) -> Optional[dict]:
        return await self.rpc.call("getTransactionInfo", {"txid": tx_id}, path="/blockchain")

    async def find_market_metrics(self, symbol: str) -> Optional[dict]:
        metrics = await self.find("market", "metrics", {"symbol": symbol}, limit=1)
        return metrics[0] if metrics else None

    async def get_balance(self, account: str) -> Optional[Decimal]:
        rows = await self.find(
            "tokens", "balances", {"account": account, "symbol": self.token.value}, limit=1
        )
        if not rows:
            return Decimal("0")
        return to_decimal(rows[0].get("balance"))

    async def get_outbound_transfers(self, account: str, limit: int = 100) -> list[LedgerTransfer]:
        history = await self.hive.get_account_history(account, -1, limit)
        transfers = []

        for entry in history:
            parsed = parse_history_entry(entry)
            if parsed is None:
                continue
            tx_id, op_type, data, timestamp = parsed

            if op_type != "custom_json" or data.get("id") != ENGINE_CUSTOM_JSON_ID:
                continue

            transfer = self._parse_token_transfer(tx_id, data, timestamp)
            if transfer is not None and transfer.sender in ("", account):
                transfers.append(transfer)

        return transfers

    def _parse_token_transfer(
        self, tx_id: str, data: dict, timestamp: Optional[str]
    ) -> Optional[LedgerTransfer]:
        """Turn a custom_json op into a SWAP.HIVE transfer, if it is one."""
        try:
            body = json.loads(data.get("json") or "")
        except (TypeError, ValueError) as e:
            logger.warning(f"Skipping custom_json {tx_id} with malformed JSON: {e}")
            return None

        if not isinstance(body, dict):
            return None
        if body.get("contractName") != "tokens" or body.get("contractAction") != "transfer":
            return None

        payload = body.get("contractPayload")
        if not isinstance(payload, dict) or payload.get("symbol") != self.token.value:
            return None

        auths = data.get("required_auths") or data.get("required_posting_auths") or []

        return LedgerTransfer(
            tx_id=tx_id,
            sender=auths[0] if auths else "",
            recipient=payload.get("to", ""),
            amount=f"{payload.get('quantity')} {self.token.value}",
            symbol=self.token.value,
            memo=_as_text(payload.get("memo")),
            timestamp=timestamp,
        )

    async def transaction_exists(self, tx_id: str) -> bool:
        info = await self.get_transaction_info(tx_id)
        return bool(info and info.get("transactionId"))


def _as_text(memo: Any) -> str:
    if memo is None:
        return ""
    return memo if isinstance(memo, str) else str(memo)
