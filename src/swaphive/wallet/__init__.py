"""User wallet state."""

from swaphive.wallet.balances import BalanceCache, BalanceSnapshot

__all__ = ["BalanceCache", "BalanceSnapshot"]
