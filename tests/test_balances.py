"""Tests for the balance cache."""

import asyncio
from decimal import Decimal
from typing import Optional

import pytest

from swaphive.chains import Token
from swaphive.errors import APIError, ValidationError
from swaphive.ledgers.simulated import SimulatedLedger, unreachable
from swaphive.wallet.balances import BalanceCache


class TestLoad:
    """Tests for BalanceCache.load."""

    @pytest.mark.asyncio
    async def test_load_floors_balances(self, balances: BalanceCache):
        """Test balances are floored to 3 decimals."""
        snapshot = await balances.load("alice")

        assert snapshot.owner_username == "alice"
        assert snapshot.primary_balance == Decimal("500.000")
        assert snapshot.side_balance == Decimal("250.000")
        assert balances.get_balance(Token.HIVE) == Decimal("500.000")
        assert balances.current_user == "alice"

    @pytest.mark.asyncio
    async def test_username_is_sanitized(self, balances: BalanceCache):
        snapshot = await balances.load("  Alice ")

        assert snapshot.owner_username == "alice"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["ab", "user_name", ""])
    async def test_invalid_username_makes_no_request(self, balances: BalanceCache, primary, side, name):
        """Test an invalid name fails before any network access."""
        with pytest.raises(ValidationError):
            await balances.load(name)

        assert primary.calls == {}
        assert side.calls == {}

    @pytest.mark.asyncio
    async def test_unknown_account(self, balances: BalanceCache):
        with pytest.raises(ValidationError, match="Account not found"):
            await balances.load("ghost")

        assert balances.snapshot is None

    @pytest.mark.asyncio
    async def test_second_load_within_ttl_uses_cache(self, balances: BalanceCache, primary, clock):
        """Test two loads inside the TTL issue one fetch."""
        await balances.load("alice")
        clock.advance(10)
        await balances.load("alice")

        assert primary.calls["get_balance"] == 1

    @pytest.mark.asyncio
    async def test_expired_cache_refetches(self, balances: BalanceCache, primary, clock):
        await balances.load("alice")
        clock.advance(31)
        await balances.load("alice")

        assert primary.calls["get_balance"] == 2

    @pytest.mark.asyncio
    async def test_other_user_refetches(self, balances: BalanceCache, primary):
        primary.set_balance("bob", "1")

        await balances.load("alice")
        snapshot = await balances.load("bob")

        assert snapshot.owner_username == "bob"
        assert primary.calls["get_balance"] == 2

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_cache(self, balances: BalanceCache, primary):
        await balances.load("alice")
        primary.set_balance("alice", "42")

        snapshot = await balances.load("alice", force_refresh=True)

        assert snapshot.primary_balance == Decimal("42.000")
        assert primary.calls["get_balance"] == 2

    @pytest.mark.asyncio
    async def test_burst_is_debounced(self, balances: BalanceCache, primary):
        """Test concurrent loads collapse into one fetch."""
        results = await asyncio.gather(*(balances.load("alice") for _ in range(5)))

        assert primary.calls["get_balance"] == 1
        assert all(r is results[0] for r in results)


class TestFailures:
    """Tests for failure handling."""

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_snapshot(self, balances: BalanceCache, side, clock):
        """Test a failing ledger fails the whole load without a partial update."""
        first = await balances.load("alice")
        clock.advance(60)
        side.failure = unreachable()

        with pytest.raises(APIError):
            await balances.load("alice")

        assert balances.snapshot is first
        assert side.calls["get_balance"] == 4  # 1 + 3 attempts

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, primary, side, clock):
        class Flaky:
            def __init__(self, ledger):
                self.ledger = ledger
                self.failures = 1

            async def get_balance(self, account):
                if self.failures:
                    self.failures -= 1
                    raise APIError("timeout")
                return await self.ledger.get_balance(account)

        cache = BalanceCache(Flaky(primary), side, debounce=0, retry_delay=0, clock=clock)

        snapshot = await cache.load("alice")

        assert snapshot.primary_balance == Decimal("500.000")


class TestRefresh:
    """Tests for refresh and clear."""

    @pytest.mark.asyncio
    async def test_refresh_requires_user(self, balances: BalanceCache):
        with pytest.raises(ValidationError):
            await balances.refresh()

    @pytest.mark.asyncio
    async def test_refresh_reloads_current_user(self, balances: BalanceCache, side):
        await balances.load("alice")
        side.set_balance("alice", "300")

        snapshot = await balances.refresh()

        assert snapshot.side_balance == Decimal("300.000")

    @pytest.mark.asyncio
    async def test_clear(self, balances: BalanceCache):
        await balances.load("alice")
        balances.clear()

        assert balances.current_user is None
        assert balances.get_balance(Token.SWAP_HIVE) == Decimal("0")


class SlowLedger(SimulatedLedger):
    """Ledger whose balance queries take the given delays in turn."""

    def __init__(self, token: Token, delays: list[float]):
        super().__init__(token)
        self.delays = list(delays)
        self.in_flight = 0
        self.max_in_flight = 0

    async def get_balance(self, account: str) -> Optional[Decimal]:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            balance = await super().get_balance(account)
            await asyncio.sleep(self.delays.pop(0) if self.delays else 0)
            return balance
        finally:
            self.in_flight -= 1


class TestOverlappingLoads:
    """Tests for loads that overlap a running fetch."""

    @pytest.mark.asyncio
    async def test_forced_refresh_is_not_overwritten_by_older_fetch(self, side, clock):
        """Test a slow earlier fetch never replaces a later forced refresh."""
        primary = SlowLedger(Token.HIVE, delays=[0.3, 0.01])
        primary.set_balance("alice", "100")
        cache = BalanceCache(primary, side, debounce=0, retry_delay=0, clock=clock)

        first = asyncio.ensure_future(cache.load("alice"))
        await asyncio.sleep(0.05)
        primary.set_balance("alice", "42")
        forced = await cache.load("alice", force_refresh=True)
        assert (await first).primary_balance == Decimal("100.000")

        assert primary.max_in_flight == 1
        assert forced.primary_balance == Decimal("42.000")
        assert cache.snapshot is forced

    @pytest.mark.asyncio
    async def test_burst_for_other_account_rejects_superseded_caller(self, balances: BalanceCache, primary):
        primary.set_balance("bob", "7")

        alice, bob = await asyncio.gather(balances.load("alice"), balances.load("bob"), return_exceptions=True)

        assert isinstance(alice, ValidationError)
        assert "superseded" in str(alice)
        assert bob.owner_username == "bob"
        assert balances.current_user == "bob"
