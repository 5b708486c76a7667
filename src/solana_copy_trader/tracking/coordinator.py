"""Dispatches mirrored swaps and reconciles their outcomes."""

from __future__ import annotations

import asyncio
import time
from dataclasses import replace
from typing import Callable, List, Optional, Sequence, Set, Tuple

from ..monitoring.logger import get_logger
from ..monitoring.metrics import MetricsSink
from .base import Notifier, SwapExecutor
from .correlator import SignatureCorrelator
from .ledger import PositionLedger
from .models import (
    Audience,
    BuyDetails,
    DecreaseDetails,
    Direction,
    ExitDetails,
    IncreaseDetails,
    Notification,
    NotificationDetails,
    SwapCommand,
    TradeOutcome,
    TransitionEvent,
    TransitionKind,
)

Decision = Tuple[TransitionEvent, Optional[SwapCommand]]


class ExecutionCoordinator:
    """Sole writer of the bot's :class:`PositionLedger`.

    Every dispatched command is timed and counted in the metrics sink,
    whether it succeeds, fails, or the executor raises. Notifications are
    delivered in background tasks so a slow or failing notifier never holds
    up trading; :meth:`flush` waits for them.
    """

    def __init__(
        self,
        executor: SwapExecutor,
        ledger: PositionLedger,
        metrics: MetricsSink,
        *,
        tracked_wallet: str,
        bot_wallet: str,
        notifier: Optional[Notifier] = None,
        correlator: Optional[SignatureCorrelator] = None,
        default_venue: str = "Jupiter Aggregator",
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._executor = executor
        self._ledger = ledger
        self._metrics = metrics
        self._tracked_wallet = tracked_wallet
        self._bot_wallet = bot_wallet
        self._notifier = notifier
        self._correlator = correlator if correlator is not None else SignatureCorrelator()
        self._default_venue = default_venue
        self._clock = clock
        self._pending: Set[asyncio.Task] = set()
        self._logger = get_logger(__name__)

    @property
    def ledger(self) -> PositionLedger:
        return self._ledger

    async def run_pass(self, decisions: Sequence[Decision]) -> List[Optional[TradeOutcome]]:
        """Handle every decision of one comparison pass concurrently."""

        if not decisions:
            return []
        results = await asyncio.gather(
            *(self.handle(event, command) for event, command in decisions),
            return_exceptions=True,
        )
        outcomes: List[Optional[TradeOutcome]] = []
        for (event, _), result in zip(decisions, results):
            if isinstance(result, BaseException):
                self._logger.error(
                    "Unhandled error for %s %s: %s", event.kind.value, event.mint, result
                )
                outcomes.append(None)
            else:
                outcomes.append(result)
        return outcomes

    async def handle(
        self, event: TransitionEvent, command: Optional[SwapCommand]
    ) -> Optional[TradeOutcome]:
        self._log_event(event)
        outcome: Optional[TradeOutcome] = None
        if command is not None:
            outcome = await self.execute(command)
            if outcome.success:
                self._notify_bot(command, outcome)
        if command is not None or event.kind != TransitionKind.PARTIAL_DECREASE:
            self._notify_tracked(event, command, outcome)
        return outcome

    async def execute(self, command: SwapCommand) -> TradeOutcome:
        """Run one swap, update the ledger on success, and record metrics."""

        async with self._ledger.hold(command.mint):
            start = self._clock()
            try:
                reported = await asyncio.to_thread(self._dispatch, command)
            except Exception as exc:  # noqa: BLE001 - executor failures never escape the coordinator
                self._logger.warning(
                    "%s %s raised: %s", command.direction.value.upper(), command.mint, exc
                )
                reported = TradeOutcome.failed()
            latency_ms = (self._clock() - start) * 1000.0
            outcome = replace(reported, latency_ms=latency_ms)
            if outcome.success:
                self._apply(command, outcome)
            self._metrics.record(latency_ms, outcome.success)
        if outcome.success:
            self._logger.info(
                "%s executed | mint=%s out=%.6f sig=%s latency_ms=%.0f",
                command.direction.value.upper(),
                command.mint,
                outcome.out_amount,
                outcome.signature,
                latency_ms,
            )
        else:
            self._logger.warning(
                "%s failed | mint=%s latency_ms=%.0f",
                command.direction.value.upper(),
                command.mint,
                latency_ms,
            )
        return outcome

    async def flush(self) -> None:
        """Wait for in-flight notifications."""

        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _dispatch(self, command: SwapCommand) -> TradeOutcome:
        if command.direction == Direction.BUY:
            return self._executor.buy(
                command.input_asset, command.output_asset, int(command.amount_or_percent)
            )
        return self._executor.sell(command.input_asset, command.output_asset, command.amount_or_percent)

    def _apply(self, command: SwapCommand, outcome: TradeOutcome) -> None:
        mint = command.mint
        if command.direction == Direction.BUY:
            if self._ledger.has_position(mint):
                self._ledger.add(mint, outcome.out_amount)
            else:
                self._ledger.set(mint, outcome.out_amount)
        else:
            self._ledger.reduce_by_percent(mint, command.amount_or_percent)
        self._logger.debug("Ledger %s -> %.6f", mint, self._ledger.held(mint))

    def _log_event(self, event: TransitionEvent) -> None:
        if event.kind == TransitionKind.NEW_POSITION:
            self._logger.info("Buy detected | mint=%s amount=%s", event.mint, event.new_balance)
        elif event.kind == TransitionKind.INCREASE:
            self._logger.info(
                "Balance increased | mint=%s delta=+%s", event.mint, event.increase_amount
            )
        elif event.kind == TransitionKind.PARTIAL_DECREASE:
            self._logger.info(
                "Balance decreased | mint=%s pct=%.2f", event.mint, event.decrease_percent
            )
        else:
            self._logger.info("Full exit | mint=%s", event.mint)

    def _notify_bot(self, command: SwapCommand, outcome: TradeOutcome) -> None:
        event = command.event
        details: NotificationDetails
        if command.direction == Direction.BUY:
            details = BuyDetails(
                tokens_bought=outcome.out_amount,
                trade_lamports=int(command.amount_or_percent),
            )
        elif command.is_full_exit:
            details = ExitDetails(sol_returned=outcome.out_amount, updated_balance=self._ledger.held(event.mint))
        else:
            details = DecreaseDetails(
                sol_returned=outcome.out_amount, decrease_percent=command.amount_or_percent
            )
        self._send(
            Notification(
                kind=event.kind,
                audience=Audience.BOT,
                wallet_address=self._bot_wallet,
                mint=event.mint,
                details=details,
                latency_ms=outcome.latency_ms,
                signature=outcome.signature,
                venue=outcome.dex or self._default_venue,
            )
        )

    def _notify_tracked(
        self,
        event: TransitionEvent,
        command: Optional[SwapCommand],
        outcome: Optional[TradeOutcome],
    ) -> None:
        details: NotificationDetails
        if event.kind == TransitionKind.NEW_POSITION:
            trade_lamports = int(command.amount_or_percent) if command is not None else 0
            details = BuyDetails(tokens_bought=event.increase_amount, trade_lamports=trade_lamports)
        elif event.kind == TransitionKind.INCREASE:
            details = IncreaseDetails(
                new_balance=event.new_balance, increase_percent=event.increase_percent
            )
        elif event.kind == TransitionKind.PARTIAL_DECREASE:
            details = DecreaseDetails(sol_returned=None, decrease_percent=event.decrease_percent)
        else:
            details = ExitDetails(sol_returned=None, updated_balance=event.new_balance)
        self._send(
            Notification(
                kind=event.kind,
                audience=Audience.TRACKED,
                wallet_address=self._tracked_wallet,
                mint=event.mint,
                details=details,
                latency_ms=outcome.latency_ms if outcome is not None else 0.0,
                signature=self._correlator.lookup(event.mint),
                venue=self._default_venue,
            )
        )

    def _send(self, notification: Notification) -> None:
        if self._notifier is None:
            return
        task = asyncio.create_task(self._deliver(notification))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, notification: Notification) -> None:
        try:
            await self._notifier.notify(notification)  # type: ignore[union-attr]
        except Exception as exc:  # noqa: BLE001 - delivery failures never affect trading state
            self._logger.warning(
                "Notification failed | %s %s %s: %s",
                notification.audience.value,
                notification.kind.value,
                notification.mint,
                exc,
            )


__all__ = ["Decision", "ExecutionCoordinator"]
