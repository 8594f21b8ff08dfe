"""Application configuration using pydantic-settings.

Values come from environment variables (or a local ``.env`` file). Fee curve
parameters are not settings: they are fetched from the bridge's fee document
at startup (see ``swaphive.pricing.fees``).
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_HIVE_RPC_NODES = [
    "https://api.deathwing.me",
    "https://hive.roelandp.nl",
    "https://api.openhive.network",
    "https://rpc.ausbit.dev",
    "https://hived.emre.sh",
    "https://hive-api.arcange.eu",
    "https://api.hive.blog",
    "https://api.c0ff33a.uk",
    "https://rpc.ecency.com",
    "https://anyx.io",
    "https://techcoderx.com",
    "https://api.hive.blue",
    "https://rpc.mahdiyari.info",
]

DEFAULT_ENGINE_RPC_NODES = [
    "https://api.primersion.com",
    "https://api2.hive-engine.com/rpc",
    "https://enginerpc.com",
    "https://api.hive-engine.com/rpc",
    "https://herpc.actifit.io",
    "https://herpc.dtools.dev",
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug logging")
    dry_run: bool = Field(
        default=False, description="Use simulated ledgers and signer (no network)"
    )

    # ======================
    # Bridge
    # ======================
    bridge_account: str = Field(default="uswap", description="Custodial bridge account")
    fee_config_url: str = Field(
        default="https://fee.uswap.app/fee.json",
        description="Remote fee curve document",
    )
    fee_config_timeout: float = Field(
        default=5.0, description="Timeout for the fee document fetch (seconds)"
    )

    # ======================
    # Ledger RPC Endpoints
    # ======================
    hive_rpc_url: str = Field(default="https://anyx.io", description="Preferred Hive RPC node")
    hive_rpc_nodes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_HIVE_RPC_NODES),
        description="Fallback Hive RPC nodes",
    )
    engine_rpc_url: str = Field(
        default="https://enginerpc.com", description="Preferred Hive Engine RPC node"
    )
    engine_rpc_nodes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ENGINE_RPC_NODES),
        description="Fallback Hive Engine RPC nodes",
    )
    request_timeout: float = Field(default=8.0, description="Per-request timeout (seconds)")
    coingecko_api_url: str = Field(
        default="https://api.coingecko.com/api/v3", description="CoinGecko API base URL"
    )

    # ======================
    # Swap Rules
    # ======================
    minimum_swap: float = Field(default=1.0, description="Minimum swap amount")
    default_slippage: float = Field(
        default=0.01, description="Default slippage tolerance in percent"
    )
    history_limit: int = Field(default=10, description="Swap records kept per user")
    settlement_wait: float = Field(
        default=45.0, description="Delay before post-submit settlement check (seconds)"
    )
    post_swap_refresh_delay: float = Field(
        default=5.0, description="Delay before refreshing balances after a swap (0 = off)"
    )

    # ======================
    # Caching
    # ======================
    balance_cache_ttl: float = Field(default=30.0, description="Balance cache TTL (seconds)")
    balance_debounce: float = Field(default=0.5, description="Balance load debounce (seconds)")
    liquidity_refresh_interval: float = Field(
        default=60.0, description="Seconds between liquidity refreshes"
    )
    price_cache_ttl: float = Field(default=15.0, description="Market price cache TTL (seconds)")

    # ======================
    # Storage
    # ======================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/swaphive.db",
        description="Database holding persisted client state",
    )
    storage_scope: str = Field(default="swaphive", description="Key prefix for stored values")

    def hive_nodes(self) -> list[str]:
        """Preferred Hive node first, then the remaining fallbacks."""
        return _ordered_nodes(self.hive_rpc_url, self.hive_rpc_nodes)

    def engine_nodes(self) -> list[str]:
        """Preferred Hive Engine node first, then the remaining fallbacks."""
        return _ordered_nodes(self.engine_rpc_url, self.engine_rpc_nodes)

    def get_safe_dict(self) -> dict:
        """Return settings dict suitable for display."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "dry_run": self.dry_run,
            "bridge_account": self.bridge_account,
            "fee_config_url": self.fee_config_url,
            "database_url": self._redact_url(self.database_url),
            "nodes": {
                "hive": self.hive_rpc_url,
                "engine": self.engine_rpc_url,
                "hive_fallbacks": len(self.hive_rpc_nodes),
                "engine_fallbacks": len(self.engine_rpc_nodes),
            },
            "swap": {
                "minimum": self.minimum_swap,
                "slippage_percent": self.default_slippage,
                "history_limit": self.history_limit,
            },
            "cache": {
                "balance_ttl": self.balance_cache_ttl,
                "price_ttl": self.price_cache_ttl,
            },
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact credentials in a database URL."""
        if "://" in url and "@" in url:
            proto, rest = url.split("://", 1)
            if "@" in rest:
                creds, host = rest.rsplit("@", 1)
                if ":" in creds:
                    user, _ = creds.split(":", 1)
                    return f"{proto}://{user}:***@{host}"
        return url


def _ordered_nodes(preferred: str, nodes: list[str]) -> list[str]:
    ordered = [preferred] if preferred else []
    ordered.extend(node for node in nodes if node != preferred)
    return ordered


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
