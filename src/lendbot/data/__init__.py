"""Persistence layer.

Provides the SQLite database manager and typed async stores for reserve
snapshots, current positions, protocol rules, APY predictions and linked
wallets.
"""

from lendbot.data.database import LendingDatabase
from lendbot.data.positions import PositionStore
from lendbot.data.predictions import PredictionStore
from lendbot.data.rules import RuleStore
from lendbot.data.snapshots import SnapshotStore
from lendbot.data.wallets import WalletStore

__all__ = [
    "LendingDatabase",
    "PositionStore",
    "PredictionStore",
    "RuleStore",
    "SnapshotStore",
    "WalletStore",
]
