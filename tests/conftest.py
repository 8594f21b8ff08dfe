"""Pytest configuration and fixtures."""

import os
from decimal import Decimal

import pytest
import pytest_asyncio

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DEBUG"] = "true"

from swaphive.chains import Token
from swaphive.ledgers.simulated import SimulatedLedger
from swaphive.market.liquidity import LiquiditySnapshot
from swaphive.pricing.engine import PoolState, PricingEngine
from swaphive.signing.dry_run import DryRunSigner
from swaphive.storage.base import MemoryStore
from swaphive.storage.sql import SQLStore
from swaphive.swap.history import SwapHistory
from swaphive.swap.manager import SwapLifecycleManager
from swaphive.swap.reconciler import SettlementReconciler
from swaphive.wallet.balances import BalanceCache

BRIDGE = "uswap"
POOL = Decimal("24900")


class FakeClock:
    """Manually advanced clock in epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def primary() -> SimulatedLedger:
    """HIVE ledger with a funded bridge and user."""
    ledger = SimulatedLedger(Token.HIVE)
    ledger.set_balance(BRIDGE, POOL)
    ledger.set_balance("alice", "500.0009")
    return ledger


@pytest.fixture
def side() -> SimulatedLedger:
    """SWAP.HIVE ledger with a funded bridge and user."""
    ledger = SimulatedLedger(Token.SWAP_HIVE)
    ledger.set_balance(BRIDGE, POOL)
    ledger.set_balance("alice", "250")
    return ledger


@pytest.fixture
def pricing() -> PricingEngine:
    return PricingEngine(pool_state=PoolState(POOL, POOL))


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore(scope="test")


@pytest_asyncio.fixture
async def sql_store(tmp_path):
    """SQLite-backed store in a temporary file."""
    store = SQLStore.from_url(f"sqlite+aiosqlite:///{tmp_path / 'state.db'}", scope="test")
    await store.init()
    yield store
    await store.close()


@pytest.fixture
def history(store) -> SwapHistory:
    return SwapHistory(store)


@pytest.fixture
def balances(primary, side, clock) -> BalanceCache:
    return BalanceCache(primary, side, debounce=0.01, retry_delay=0, clock=clock)


@pytest.fixture
def liquidity(primary, side, pricing) -> LiquiditySnapshot:
    return LiquiditySnapshot(primary, side, BRIDGE, pricing=pricing, retry_delay=0)


@pytest.fixture
def reconciler(primary, side, clock) -> SettlementReconciler:
    return SettlementReconciler(primary, side, BRIDGE, clock=clock)


@pytest.fixture
def signer(primary, side) -> DryRunSigner:
    return DryRunSigner(primary=primary, side=side)


@pytest.fixture
def manager(pricing, balances, liquidity, history, reconciler, signer, clock) -> SwapLifecycleManager:
    return SwapLifecycleManager(
        pricing,
        balances,
        liquidity,
        history,
        reconciler,
        signer=signer,
        bridge_account=BRIDGE,
        post_swap_refresh_delay=0,
        clock=clock,
    )
