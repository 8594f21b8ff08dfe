"""Tests for swap records and the persisted history."""

import pytest

from swaphive.chains import Token
from swaphive.storage.base import MemoryStore
from swaphive.swap.history import HISTORY_KEY, SwapHistory
from swaphive.swap.models import SwapRecord, SwapStatus


def make_record(tx_id: str, username: str = "alice", timestamp: int = 1_700_000_000_000, **kwargs) -> SwapRecord:
    return SwapRecord(
        timestamp=timestamp,
        tx_id_sent=tx_id,
        amount_sent="10.000 HIVE",
        token_in=Token.HIVE,
        token_out=Token.SWAP_HIVE,
        username=username,
        **kwargs,
    )


class TestSwapRecord:
    """Tests for SwapRecord."""

    def test_terminal_states(self):
        assert not SwapStatus.PENDING.is_terminal
        assert SwapStatus.COMPLETED.is_terminal
        assert SwapStatus.REFUNDED.is_terminal
        assert SwapStatus.NOT_SENT.is_terminal
        assert SwapStatus.NOT_SENT.value == "not-sent"

    def test_stored_form(self):
        record = make_record("tx-1", status=SwapStatus.COMPLETED, tx_id_received="tx-2")

        data = record.to_dict()

        assert data["token_in"] == "HIVE"
        assert data["status"] == "completed"
        assert SwapRecord.from_dict(data) == record

    def test_from_dict_defaults(self):
        record = SwapRecord.from_dict(
            {"timestamp": 1, "tx_id_sent": "tx", "token_in": "SWAP.HIVE", "username": "bob"}
        )

        assert record.token_out is Token.HIVE
        assert record.status is SwapStatus.PENDING

    def test_placeholder_ids(self):
        assert make_record("tx", tx_id_received="uswap-transfer").has_placeholder_id
        assert make_record("tx", tx_id_received="uswap-refund").has_placeholder_id
        assert not make_record("tx", tx_id_received="abc").has_placeholder_id

    def test_age(self):
        assert make_record("tx", timestamp=1_000_000).age_seconds(1_060.0) == 60.0


class TestSwapHistory:
    """Tests for SwapHistory."""

    @pytest.mark.asyncio
    async def test_add_puts_newest_first(self, history: SwapHistory):
        await history.add(make_record("tx-1"))
        await history.add(make_record("tx-2"))

        records = await history.records_for("alice")

        assert [r.tx_id_sent for r in records] == ["tx-2", "tx-1"]

    @pytest.mark.asyncio
    async def test_cap_per_user(self, history: SwapHistory):
        """Test eleven swaps leave the ten most recent, other users untouched."""
        await history.add(make_record("bob-1", username="bob"))
        for i in range(11):
            await history.add(make_record(f"tx-{i}"))

        alice = await history.records_for("alice")
        bob = await history.records_for("bob")

        assert len(alice) == 10
        assert [r.tx_id_sent for r in alice] == [f"tx-{i}" for i in range(10, 0, -1)]
        assert [r.tx_id_sent for r in bob] == ["bob-1"]

    @pytest.mark.asyncio
    async def test_update_replaces_by_tx_id(self, history: SwapHistory):
        await history.add(make_record("tx-1"))
        await history.add(make_record("tx-2"))

        changed = await history.update([make_record("tx-1", status=SwapStatus.COMPLETED), make_record("tx-2")])
        records = await history.records_for("alice")

        assert changed == 1
        assert records[1].status is SwapStatus.COMPLETED
        assert records[0].status is SwapStatus.PENDING

    @pytest.mark.asyncio
    async def test_malformed_entries_are_skipped(self, store: MemoryStore):
        await store.set(HISTORY_KEY, [{"tx_id_sent": "broken"}, make_record("tx-1").to_dict()])

        records = await SwapHistory(store).all()

        assert [r.tx_id_sent for r in records] == ["tx-1"]

    @pytest.mark.asyncio
    async def test_clear_user(self, history: SwapHistory):
        await history.add(make_record("tx-1"))
        await history.add(make_record("bob-1", username="bob"))

        await history.clear("alice")

        assert await history.records_for("alice") == []
        assert len(await history.records_for("bob")) == 1

    @pytest.mark.asyncio
    async def test_persists_in_sql_store(self, sql_store):
        """Test the history survives a new SwapHistory over the same database."""
        await SwapHistory(sql_store).add(make_record("tx-1"))

        records = await SwapHistory(sql_store).records_for("alice")

        assert [r.tx_id_sent for r in records] == ["tx-1"]
