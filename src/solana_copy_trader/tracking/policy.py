"""Mapping from transition events to mirrored swap commands."""

from __future__ import annotations

from typing import Optional, Protocol

from ..config.settings import IncreasePolicy, TradingConfig
from ..monitoring.logger import get_logger
from .ledger import PositionLedger
from .models import Direction, SwapCommand, TransitionEvent, TransitionKind


class IncreaseStrategy(Protocol):
    """Decides whether the bot buys when the tracked wallet adds to a position."""

    name: str

    def decide(self, event: TransitionEvent, held: float) -> Optional[SwapCommand]:
        """Return a buy command or ``None`` to treat the increase as an alert only."""


class ObserveIncreaseStrategy:
    name = "observe"

    def decide(self, event: TransitionEvent, held: float) -> Optional[SwapCommand]:
        return None


class MirrorFractionIncreaseStrategy:
    """Buy a fixed fraction of the base trade size on every increase of a held mint."""

    name = "mirror_fraction"

    def __init__(self, base_mint: str, trade_amount_lamports: int, fraction: float) -> None:
        if not 0 < fraction <= 1:
            raise ValueError("fraction must be within (0, 1]")
        self._base_mint = base_mint
        self._amount = int(trade_amount_lamports * fraction)

    def decide(self, event: TransitionEvent, held: float) -> Optional[SwapCommand]:
        if held <= 0 or self._amount <= 0:
            return None
        return SwapCommand(
            direction=Direction.BUY,
            input_asset=self._base_mint,
            output_asset=event.mint,
            amount_or_percent=float(self._amount),
            event=event,
        )


def build_increase_strategy(config: TradingConfig) -> IncreaseStrategy:
    if config.increase_policy == IncreasePolicy.MIRROR_FRACTION:
        return MirrorFractionIncreaseStrategy(
            config.base_mint, config.trade_amount_lamports, config.mirror_fraction
        )
    return ObserveIncreaseStrategy()


class TradeDecisionPolicy:
    """Evaluates each event independently against the current ledger state."""

    def __init__(
        self,
        ledger: PositionLedger,
        *,
        base_mint: str,
        trade_amount_lamports: int,
        increase_strategy: Optional[IncreaseStrategy] = None,
    ) -> None:
        if trade_amount_lamports <= 0:
            raise ValueError("trade_amount_lamports must be positive")
        self._ledger = ledger
        self._base_mint = base_mint
        self._trade_amount = int(trade_amount_lamports)
        self._increase = increase_strategy or ObserveIncreaseStrategy()
        self._logger = get_logger(__name__)

    @classmethod
    def from_config(cls, ledger: PositionLedger, config: TradingConfig) -> "TradeDecisionPolicy":
        return cls(
            ledger,
            base_mint=config.base_mint,
            trade_amount_lamports=config.trade_amount_lamports,
            increase_strategy=build_increase_strategy(config),
        )

    @property
    def increase_strategy(self) -> IncreaseStrategy:
        return self._increase

    def decide(self, event: TransitionEvent) -> Optional[SwapCommand]:
        held = self._ledger.held(event.mint)
        if event.kind == TransitionKind.NEW_POSITION:
            return SwapCommand(
                direction=Direction.BUY,
                input_asset=self._base_mint,
                output_asset=event.mint,
                amount_or_percent=float(self._trade_amount),
                event=event,
            )
        if event.kind == TransitionKind.INCREASE:
            return self._increase.decide(event, held)
        if held <= 0:
            self._logger.debug("No bot position in %s; ignoring %s", event.mint, event.kind.value)
            return None
        if event.kind == TransitionKind.PARTIAL_DECREASE:
            return self._sell(event, event.decrease_percent)
        if event.kind == TransitionKind.FULL_EXIT:
            return self._sell(event, 100.0)
        return None

    def _sell(self, event: TransitionEvent, percent: float) -> SwapCommand:
        return SwapCommand(
            direction=Direction.SELL,
            input_asset=event.mint,
            output_asset=self._base_mint,
            amount_or_percent=percent,
            event=event,
        )


__all__ = [
    "IncreaseStrategy",
    "MirrorFractionIncreaseStrategy",
    "ObserveIncreaseStrategy",
    "TradeDecisionPolicy",
    "build_increase_strategy",
]
