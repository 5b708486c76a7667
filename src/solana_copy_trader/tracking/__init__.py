"""Balance-diff trade-decision engine."""

from .base import ChainClient, Notifier, SwapExecutor
from .classifier import DUST_THRESHOLD, DiffClassifier
from .coordinator import ExecutionCoordinator
from .correlator import SignatureCorrelator
from .ledger import PositionLedger
from .models import (
    ActivityNotice,
    BalanceSnapshot,
    Direction,
    SwapCommand,
    TradeOutcome,
    TransitionEvent,
    TransitionKind,
)
from .policy import TradeDecisionPolicy, build_increase_strategy
from .snapshot_source import SnapshotBatch, SnapshotSource
from .tracker import TrackerState, WalletTracker

__all__ = [
    "ActivityNotice",
    "BalanceSnapshot",
    "ChainClient",
    "DUST_THRESHOLD",
    "DiffClassifier",
    "Direction",
    "ExecutionCoordinator",
    "Notifier",
    "PositionLedger",
    "SignatureCorrelator",
    "SnapshotBatch",
    "SnapshotSource",
    "SwapCommand",
    "SwapExecutor",
    "TrackerState",
    "TradeDecisionPolicy",
    "TradeOutcome",
    "TransitionEvent",
    "TransitionKind",
    "WalletTracker",
    "build_increase_strategy",
]
