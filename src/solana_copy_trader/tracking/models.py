"""Data models shared by the tracking, decision, and execution layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from ..utils.constants import utc_now


class TransitionKind(str, Enum):
    """Semantic classification of a tracked-wallet balance change."""

    NEW_POSITION = "new_position"
    INCREASE = "increase"
    PARTIAL_DECREASE = "partial_decrease"
    FULL_EXIT = "full_exit"


class Direction(str, Enum):
    BUY = "buy"
    SELL = "sell"


class Audience(str, Enum):
    """Which wallet a notification describes."""

    TRACKED = "tracked"
    BOT = "bot"


@dataclass(frozen=True, slots=True)
class BalanceSnapshot:
    """Token balances of one wallet, in UI units, captured at one instant."""

    wallet_address: str
    captured_at: datetime
    balances: Mapping[str, float] = field(default_factory=dict)
    fetch_failed: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "balances", MappingProxyType(dict(self.balances)))

    @classmethod
    def empty(cls, wallet_address: str, *, fetch_failed: bool = False) -> "BalanceSnapshot":
        return cls(wallet_address=wallet_address, captured_at=utc_now(), fetch_failed=fetch_failed)

    def get(self, mint: str) -> float:
        return float(self.balances.get(mint, 0.0))

    def __contains__(self, mint: object) -> bool:
        return mint in self.balances


@dataclass(frozen=True, slots=True)
class ActivityNotice:
    """A ledger-activity notification from the wallet subscription feed."""

    signature: str
    slot: int
    err: Optional[Any] = None

    @property
    def failed(self) -> bool:
        return self.err is not None


@dataclass(frozen=True, slots=True)
class TransitionEvent:
    """A classified change for a single mint between two snapshots."""

    mint: str
    kind: TransitionKind
    old_balance: float
    new_balance: float
    observed_at: datetime

    @property
    def increase_amount(self) -> float:
        return max(self.new_balance - self.old_balance, 0.0)

    @property
    def decrease_percent(self) -> float:
        if self.kind == TransitionKind.FULL_EXIT:
            return 100.0
        if self.old_balance <= 0 or self.new_balance >= self.old_balance:
            return 0.0
        return (self.old_balance - self.new_balance) / self.old_balance * 100

    @property
    def increase_percent(self) -> float:
        if self.old_balance <= 0:
            return 100.0 if self.new_balance > 0 else 0.0
        return (self.new_balance - self.old_balance) / self.old_balance * 100


@dataclass(frozen=True, slots=True)
class SwapCommand:
    """A mirrored swap to dispatch to the swap executor.

    BUY commands carry an amount of the input asset in smallest units; SELL
    commands carry the percentage of the bot's holding to sell.
    """

    direction: Direction
    input_asset: str
    output_asset: str
    amount_or_percent: float
    event: TransitionEvent

    @property
    def mint(self) -> str:
        return self.event.mint

    @property
    def is_full_exit(self) -> bool:
        return self.direction == Direction.SELL and self.amount_or_percent >= 100


@dataclass(frozen=True, slots=True)
class TradeOutcome:
    """Result reported by the swap executor, stamped with measured latency.

    ``out_amount`` is expressed in UI units of the output asset.
    """

    success: bool
    out_amount: float = 0.0
    signature: Optional[str] = None
    dex: Optional[str] = None
    latency_ms: float = 0.0

    @classmethod
    def failed(cls, latency_ms: float = 0.0) -> "TradeOutcome":
        return cls(success=False, out_amount=0.0, latency_ms=latency_ms)


@dataclass(frozen=True, slots=True)
class BuyDetails:
    tokens_bought: float
    trade_lamports: int


@dataclass(frozen=True, slots=True)
class IncreaseDetails:
    new_balance: float
    increase_percent: float


@dataclass(frozen=True, slots=True)
class DecreaseDetails:
    sol_returned: Optional[float]
    decrease_percent: float


@dataclass(frozen=True, slots=True)
class ExitDetails:
    sol_returned: Optional[float]
    updated_balance: float = 0.0


NotificationDetails = Union[BuyDetails, IncreaseDetails, DecreaseDetails, ExitDetails]


@dataclass(frozen=True, slots=True)
class Notification:
    """Payload handed to a notifier; ``details`` is keyed by ``kind``."""

    kind: TransitionKind
    audience: Audience
    wallet_address: str
    mint: str
    details: NotificationDetails
    latency_ms: float = 0.0
    signature: Optional[str] = None
    venue: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)


__all__ = [
    "ActivityNotice",
    "Audience",
    "BalanceSnapshot",
    "BuyDetails",
    "DecreaseDetails",
    "Direction",
    "ExitDetails",
    "IncreaseDetails",
    "Notification",
    "NotificationDetails",
    "SwapCommand",
    "TradeOutcome",
    "TransitionEvent",
    "TransitionKind",
]
