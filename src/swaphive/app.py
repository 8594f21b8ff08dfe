"""Application wiring.

Every component is built once here and handed to the components that need
it. Nothing is module-global.
"""

import asyncio
import logging
from typing import Optional

import httpx

from swaphive.chains import Token
from swaphive.config import Settings, get_settings
from swaphive.ledgers import HiveEngineLedger, HiveLedger, JsonRpcClient, LedgerGateway, SimulatedLedger
from swaphive.market import LiquiditySnapshot, PriceFeed
from swaphive.pricing import PricingEngine, load_fee_config
from swaphive.pricing.engine import DEFAULT_POOL_SIZE
from swaphive.signing import DryRunSigner, SigningService
from swaphive.storage import KeyValueStore, MemoryStore, SQLStore
from swaphive.swap import SettlementReconciler, SwapHistory, SwapLifecycleManager
from swaphive.wallet import BalanceCache

logger = logging.getLogger(__name__)


class Application:
    """Builds and owns every client component.

    In dry-run mode the ledgers are in-memory, the signer approves
    everything, and history is kept in memory. Otherwise the ledgers talk to
    public RPC nodes and history is stored in ``database_url``.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        signer: Optional[SigningService] = None,
        store: Optional[KeyValueStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport
        self._liquidity_task: Optional[asyncio.Task] = None
        s = self.settings

        engine_ledger: Optional[HiveEngineLedger] = None
        if s.dry_run:
            self.primary: LedgerGateway = SimulatedLedger(Token.HIVE)
            self.side: LedgerGateway = SimulatedLedger(Token.SWAP_HIVE)
            self.primary.set_balance(s.bridge_account, DEFAULT_POOL_SIZE)
            self.side.set_balance(s.bridge_account, DEFAULT_POOL_SIZE)
            self.signer = signer or DryRunSigner(primary=self.primary, side=self.side)
            self.store = store or MemoryStore(scope=s.storage_scope)
        else:
            hive_rpc = JsonRpcClient(s.hive_nodes(), timeout=s.request_timeout, transport=transport)
            engine_rpc = JsonRpcClient(s.engine_nodes(), timeout=s.request_timeout, transport=transport)
            hive_ledger = HiveLedger(hive_rpc)
            engine_ledger = HiveEngineLedger(engine_rpc, hive_ledger)
            self.primary = hive_ledger
            self.side = engine_ledger
            self.signer = signer
            self.store = store or SQLStore.from_url(s.database_url, scope=s.storage_scope)

        self.pricing = PricingEngine()
        self.liquidity = LiquiditySnapshot(
            self.primary,
            self.side,
            s.bridge_account,
            pricing=self.pricing,
        )
        self.balances = BalanceCache(
            self.primary,
            self.side,
            ttl=s.balance_cache_ttl,
            debounce=s.balance_debounce,
        )
        self.history = SwapHistory(self.store, limit=s.history_limit)
        self.reconciler = SettlementReconciler(self.primary, self.side, s.bridge_account)
        self.prices = PriceFeed(
            engine=engine_ledger,
            api_url=s.coingecko_api_url,
            cache_ttl=s.price_cache_ttl,
            transport=transport,
        )
        self.swaps = SwapLifecycleManager(
            self.pricing,
            self.balances,
            self.liquidity,
            self.history,
            self.reconciler,
            signer=self.signer,
            bridge_account=s.bridge_account,
            minimum_swap=s.minimum_swap,
            default_slippage=s.default_slippage,
            post_swap_refresh_delay=s.post_swap_refresh_delay,
            settlement_wait=s.settlement_wait,
        )

    async def start(self, background_refresh: bool = False) -> None:
        """Initialize storage, load the fee curve, then read liquidity.

        Args:
            background_refresh: Keep refreshing liquidity every
                ``liquidity_refresh_interval`` seconds until ``close()``
        """
        s = self.settings
        logger.info(f"Starting swaphive ({s.environment}, bridge @{s.bridge_account}, dry_run={s.dry_run})")

        if isinstance(self.store, SQLStore):
            await self.store.init()
            logger.info("Database initialized")

        if not s.dry_run:
            fee_config = await load_fee_config(
                s.fee_config_url,
                current=self.pricing.fee_config,
                timeout=s.fee_config_timeout,
                transport=self._transport,
            )
            self.pricing.update_fee_config(fee_config)

        await self.liquidity.refresh()

        if background_refresh:
            self._liquidity_task = asyncio.create_task(self.liquidity.run(s.liquidity_refresh_interval))

    async def close(self) -> None:
        """Stop background work and release storage."""
        logger.info("Cleaning up...")

        if self._liquidity_task is not None:
            self.liquidity.stop()
            self._liquidity_task.cancel()
            await asyncio.gather(self._liquidity_task, return_exceptions=True)
            self._liquidity_task = None

        await self.swaps.close()
        self.balances.clear()

        if isinstance(self.store, SQLStore):
            await self.store.close()
        logger.info("Cleanup complete")

    async def __aenter__(self) -> "Application":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
