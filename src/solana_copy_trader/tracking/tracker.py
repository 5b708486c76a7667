"""Pass scheduler tying snapshots, classification, decisions, and execution together."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional

from ..monitoring.logger import correlation_scope, get_logger
from ..monitoring.metrics import MetricsSink
from .classifier import DiffClassifier
from .coordinator import Decision, ExecutionCoordinator
from .correlator import SignatureCorrelator
from .ledger import PositionLedger
from .models import BalanceSnapshot, TradeOutcome
from .policy import TradeDecisionPolicy
from .snapshot_source import SnapshotBatch, SnapshotSource


@dataclass(slots=True)
class TrackerState:
    """Process-wide mutable state, owned explicitly instead of living in module globals.

    ``previous`` is replaced only by the tracker between passes, ``ledger``
    is written only by the execution coordinator, and ``correlator`` is fed
    from the activity feed.
    """

    tracked_wallet: str
    bot_wallet: str
    previous: BalanceSnapshot
    ledger: PositionLedger = field(default_factory=PositionLedger)
    correlator: SignatureCorrelator = field(default_factory=SignatureCorrelator)
    passes: int = 0

    @classmethod
    def initial(cls, tracked_wallet: str, bot_wallet: str) -> "TrackerState":
        return cls(
            tracked_wallet=tracked_wallet,
            bot_wallet=bot_wallet,
            previous=BalanceSnapshot.empty(tracked_wallet),
        )


class WalletTracker:
    """Runs comparison passes for the tracked wallet one at a time."""

    def __init__(
        self,
        state: TrackerState,
        source: SnapshotSource,
        classifier: DiffClassifier,
        policy: TradeDecisionPolicy,
        coordinator: ExecutionCoordinator,
        metrics: MetricsSink,
    ) -> None:
        self._state = state
        self._source = source
        self._classifier = classifier
        self._policy = policy
        self._coordinator = coordinator
        self._metrics = metrics
        self._logger = get_logger(__name__)

    @property
    def state(self) -> TrackerState:
        return self._state

    async def start(self) -> None:
        """Load the tracked-wallet baseline and prime the bot ledger from chain."""

        tracked, bot = await asyncio.gather(
            self._source.poll_async(self._state.tracked_wallet),
            self._source.poll_async(self._state.bot_wallet),
        )
        self._state.previous = tracked
        if tracked.fetch_failed:
            self._logger.warning("Tracked wallet read failed; the first good pass becomes the baseline")
        self._logger.info(
            "Sync complete | tracked=%s tokens=%d", self._state.tracked_wallet, len(tracked.balances)
        )
        if bot.fetch_failed:
            self._logger.warning("Bot wallet read failed; starting with an empty ledger")
            self._state.ledger.prime({})
        else:
            self._state.ledger.prime(bot.balances)

    async def process(self, batch: SnapshotBatch) -> List[Optional[TradeOutcome]]:
        """Run one comparison pass; the next pass starts only after this returns."""

        self._state.passes += 1
        with correlation_scope(f"pass-{self._state.passes}", wallet=self._state.tracked_wallet):
            old = self._state.previous
            new = batch.snapshot
            if new.fetch_failed and self._classifier.guards_failed_snapshots:
                self._logger.warning("Keeping previous baseline after failed fetch")
                return []
            if old.fetch_failed and self._classifier.guards_failed_snapshots:
                self._logger.warning("No baseline yet; adopting this snapshot without trading")
                self._state.previous = new
                return []
            self._state.correlator.attribute(batch.latest_signature, old, new)
            events = self._classifier.classify(old, new, self._state.ledger.has_position)
            decisions: List[Decision] = [(event, self._policy.decide(event)) for event in events]
            outcomes = await self._coordinator.run_pass(decisions)
            self._state.previous = new
            commands = sum(1 for _, command in decisions if command is not None)
            snap = self._metrics.snapshot()
            self._logger.info(
                "Pass complete | events=%d commands=%d trades=%d calls=%d",
                len(events),
                commands,
                snap.total_trades,
                snap.api_call_count,
            )
            return outcomes

    async def run(self) -> None:
        """Subscribe to wallet activity and process passes until cancelled."""

        await self.start()
        wallet = self._state.tracked_wallet
        subscription = asyncio.create_task(self._source.subscribe(wallet), name="activity-feed")
        passes = asyncio.create_task(self._consume(wallet), name="comparison-passes")
        self._logger.info("Tracker started | monitoring %s", wallet)
        try:
            done, _ = await asyncio.wait({subscription, passes}, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                task.result()
        finally:
            for task in (subscription, passes):
                task.cancel()
            await asyncio.gather(subscription, passes, return_exceptions=True)
            await self._coordinator.flush()
            self._metrics.log_summary()

    async def _consume(self, wallet: str) -> None:
        async for batch in self._source.snapshots(wallet):
            await self.process(batch)


__all__ = ["TrackerState", "WalletTracker"]
