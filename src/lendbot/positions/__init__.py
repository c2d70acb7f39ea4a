"""Position reconciliation and refresh."""

from lendbot.positions.reconciler import (
    ReconciliationResult,
    SkippedDeposit,
    reconcile,
    scale_amount,
)
from lendbot.positions.refresher import WalletPositionRefresher

__all__ = [
    "ReconciliationResult",
    "SkippedDeposit",
    "WalletPositionRefresher",
    "reconcile",
    "scale_amount",
]
