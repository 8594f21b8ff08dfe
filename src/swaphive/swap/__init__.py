"""Swap submission, history and settlement reconciliation."""

from swaphive.swap.history import SwapHistory
from swaphive.swap.manager import SwapLifecycleManager
from swaphive.swap.models import LEGACY_PLACEHOLDER_IDS, Settlement, SwapRecord, SwapStatus
from swaphive.swap.reconciler import SettlementReconciler, parse_settlement

__all__ = [
    "LEGACY_PLACEHOLDER_IDS",
    "Settlement",
    "SettlementReconciler",
    "SwapHistory",
    "SwapLifecycleManager",
    "SwapRecord",
    "SwapStatus",
    "parse_settlement",
]
