"""Tests for the ledger gateways."""

import json
from decimal import Decimal

import httpx
import pytest

from swaphive.chains import ENGINE_CUSTOM_JSON_ID, Token
from swaphive.errors import APIError
from swaphive.ledgers.engine import HiveEngineLedger
from swaphive.ledgers.hive import HiveLedger, parse_history_entry
from swaphive.ledgers.rpc import JsonRpcClient, RPCResponseError
from swaphive.ledgers.simulated import SimulatedLedger, unreachable

HIVE_NODE = "https://hive.test"
BACKUP_NODE = "https://backup.test"
ENGINE_NODE = "https://engine.test"


def transfer_entry(index, trx_id, sender, recipient, amount, memo=""):
    return [
        index,
        {
            "trx_id": trx_id,
            "op": ["transfer", {"from": sender, "to": recipient, "amount": amount, "memo": memo}],
            "timestamp": "2024-01-01T00:00:00",
        },
    ]


def engine_entry(index, trx_id, sender, recipient, quantity, memo="", symbol="SWAP.HIVE", raw_json=None):
    body = {
        "contractName": "tokens",
        "contractAction": "transfer",
        "contractPayload": {"symbol": symbol, "to": recipient, "quantity": quantity, "memo": memo},
    }
    return [
        index,
        {
            "trx_id": trx_id,
            "op": [
                "custom_json",
                {
                    "id": ENGINE_CUSTOM_JSON_ID,
                    "required_auths": [sender],
                    "required_posting_auths": [],
                    "json": raw_json if raw_json is not None else json.dumps(body),
                },
            ],
            "timestamp": "2024-01-01T00:00:00",
        },
    ]


BRIDGE_HISTORY = [
    transfer_entry(1, "hive-1", "uswap", "alice", "10.000 HIVE", "Swapped Qty: 10 Swapped Price: 1 tx-a"),
    transfer_entry(2, "hbd-1", "uswap", "alice", "5.000 HBD", "tx-a"),
    transfer_entry(3, "in-1", "bob", "uswap", "3.000 HIVE", "2.990"),
    engine_entry(4, "eng-1", "uswap", "alice", "7.500", "Swapped Qty: 7.5 tx-b"),
    engine_entry(5, "eng-bad", "uswap", "alice", "1", raw_json="{not json"),
    engine_entry(6, "eng-other", "uswap", "alice", "1", symbol="BEE"),
    transfer_entry(7, "hive-2", "uswap", "alice", "2.000 HIVE", "refund tx-a"),
]


def rpc_handler(routes: dict):
    """Build a MockTransport answering JSON-RPC calls by method name."""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        seen.append((str(request.url), body["method"], body["params"]))
        answer = routes.get(body["method"])
        if callable(answer):
            answer = answer(body["params"])
        if isinstance(answer, httpx.Response):
            return answer
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": answer})

    return httpx.MockTransport(handler), seen


class TestJsonRpcClient:
    """Tests for JsonRpcClient."""

    @pytest.mark.asyncio
    async def test_call_returns_result(self):
        transport, seen = rpc_handler({"condenser_api.get_accounts": [{"name": "alice"}]})
        client = JsonRpcClient([HIVE_NODE], transport=transport)

        result = await client.call("condenser_api.get_accounts", [["alice"]])

        assert result == [{"name": "alice"}]
        assert seen[0][0].startswith(HIVE_NODE)

    @pytest.mark.asyncio
    async def test_fails_over_and_remembers_node(self):
        """Test a failing node is skipped and the working one is kept."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "hive.test":
                return httpx.Response(503)
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "ok"})

        client = JsonRpcClient([HIVE_NODE, BACKUP_NODE], transport=httpx.MockTransport(handler))

        assert await client.call("any", []) == "ok"
        assert client.current_node == BACKUP_NODE

    @pytest.mark.asyncio
    async def test_all_nodes_down(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = JsonRpcClient([HIVE_NODE, BACKUP_NODE], transport=httpx.MockTransport(handler))

        with pytest.raises(APIError, match="All RPC nodes failed"):
            await client.call("any", [])

    @pytest.mark.asyncio
    async def test_error_object(self):
        error = httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "unknown"}})
        transport, _ = rpc_handler({"any": error})
        client = JsonRpcClient([HIVE_NODE], transport=transport)

        with pytest.raises(RPCResponseError) as exc_info:
            await client.call("any", [])

        assert exc_info.value.code == -32000

    def test_requires_nodes(self):
        with pytest.raises(ValueError):
            JsonRpcClient([])


class TestHiveLedger:
    """Tests for the Hive gateway."""

    @pytest.mark.asyncio
    async def test_get_balance(self):
        transport, _ = rpc_handler({"condenser_api.get_accounts": [{"name": "alice", "balance": "12.345 HIVE"}]})
        ledger = HiveLedger(JsonRpcClient([HIVE_NODE], transport=transport))

        assert await ledger.get_balance("alice") == Decimal("12.345")

    @pytest.mark.asyncio
    async def test_missing_account(self):
        transport, _ = rpc_handler({"condenser_api.get_accounts": []})
        ledger = HiveLedger(JsonRpcClient([HIVE_NODE], transport=transport))

        assert await ledger.get_balance("nobody") is None

    @pytest.mark.asyncio
    async def test_outbound_transfers_keep_only_hive(self):
        """Test only HIVE transfers sent by the account are returned, oldest first."""
        transport, seen = rpc_handler({"condenser_api.get_account_history": BRIDGE_HISTORY})
        ledger = HiveLedger(JsonRpcClient([HIVE_NODE], transport=transport))

        transfers = await ledger.get_outbound_transfers("uswap", limit=50)

        assert [t.tx_id for t in transfers] == ["hive-1", "hive-2"]
        assert transfers[0].amount == "10.000 HIVE"
        assert transfers[0].recipient == "alice"
        assert seen[0][2] == ["uswap", -1, 50]

    @pytest.mark.asyncio
    async def test_find_transfer_with_memo_prefers_newest(self):
        transport, _ = rpc_handler({"condenser_api.get_account_history": BRIDGE_HISTORY})
        ledger = HiveLedger(JsonRpcClient([HIVE_NODE], transport=transport))

        transfer = await ledger.find_transfer_with_memo("uswap", "alice", "tx-a")

        assert transfer.tx_id == "hive-2"

    @pytest.mark.asyncio
    async def test_transaction_exists(self):
        def lookup(params):
            if params == ["known"]:
                return {"transaction_id": "known"}
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"message": "Unknown Transaction"}})

        transport, _ = rpc_handler({"condenser_api.get_transaction": lookup})
        ledger = HiveLedger(JsonRpcClient([HIVE_NODE], transport=transport))

        assert await ledger.transaction_exists("known") is True
        assert await ledger.transaction_exists("missing") is False

    def test_parse_history_entry(self):
        assert parse_history_entry(BRIDGE_HISTORY[0])[0] == "hive-1"
        assert parse_history_entry(["bad"]) is None
        assert parse_history_entry([1, {"trx_id": "x"}]) is None


class TestHiveEngineLedger:
    """Tests for the Hive Engine gateway."""

    def build(self, engine_routes: dict, hive_routes: dict = None):
        engine_transport, engine_seen = rpc_handler(engine_routes)
        hive_transport, _ = rpc_handler(hive_routes or {})
        hive = HiveLedger(JsonRpcClient([HIVE_NODE], transport=hive_transport))
        ledger = HiveEngineLedger(JsonRpcClient([ENGINE_NODE], transport=engine_transport), hive)
        return ledger, engine_seen

    @pytest.mark.asyncio
    async def test_get_balance(self):
        ledger, seen = self.build({"find": [{"account": "alice", "symbol": "SWAP.HIVE", "balance": "42.125"}]})

        assert await ledger.get_balance("alice") == Decimal("42.125")

        url, method, params = seen[0]
        assert url == f"{ENGINE_NODE}/contracts"
        assert params["contract"] == "tokens"
        assert params["table"] == "balances"
        assert params["query"] == {"account": "alice", "symbol": "SWAP.HIVE"}

    @pytest.mark.asyncio
    async def test_no_balance_row_is_zero(self):
        ledger, _ = self.build({"find": []})

        assert await ledger.get_balance("alice") == Decimal("0")

    @pytest.mark.asyncio
    async def test_outbound_transfers_from_custom_json(self):
        """Test SWAP.HIVE transfers are read from custom_json ops; malformed ones are skipped."""
        ledger, _ = self.build({}, {"condenser_api.get_account_history": BRIDGE_HISTORY})

        transfers = await ledger.get_outbound_transfers("uswap")

        assert [t.tx_id for t in transfers] == ["eng-1"]
        assert transfers[0].amount == "7.500 SWAP.HIVE"
        assert transfers[0].sender == "uswap"
        assert transfers[0].memo == "Swapped Qty: 7.5 tx-b"

    @pytest.mark.asyncio
    async def test_transaction_exists(self):
        def info(params):
            return {"transactionId": params["txid"]} if params["txid"] == "known" else None

        ledger, seen = self.build({"getTransactionInfo": info})

        assert await ledger.transaction_exists("known") is True
        assert await ledger.transaction_exists("missing") is False
        assert seen[0][0] == f"{ENGINE_NODE}/blockchain"

    @pytest.mark.asyncio
    async def test_market_metrics(self):
        ledger, _ = self.build({"find": [{"symbol": "VAULT", "lastPrice": "0.5"}]})

        assert (await ledger.find_market_metrics("VAULT"))["lastPrice"] == "0.5"


class TestSimulatedLedger:
    """Tests for the in-memory ledger."""

    @pytest.mark.asyncio
    async def test_unknown_account(self):
        assert await SimulatedLedger(Token.HIVE).get_balance("ghost") is None
        assert await SimulatedLedger(Token.SWAP_HIVE).get_balance("ghost") == Decimal("0")

    @pytest.mark.asyncio
    async def test_transfers_and_transactions(self):
        ledger = SimulatedLedger(Token.HIVE)
        transfer = ledger.add_transfer("uswap", "alice", "1.5", memo="tx-1")

        assert transfer.amount == "1.500 HIVE"
        assert await ledger.transaction_exists(transfer.tx_id)
        assert await ledger.get_outbound_transfers("uswap") == [transfer]
        assert await ledger.get_outbound_transfers("alice") == []

    @pytest.mark.asyncio
    async def test_failure_injection(self):
        ledger = SimulatedLedger(Token.HIVE)
        ledger.failure = unreachable()

        with pytest.raises(APIError):
            await ledger.get_balance("alice")
        assert ledger.calls["get_balance"] == 1
