"""Balance-diff classification of tracked-wallet snapshots."""

from __future__ import annotations

from typing import Callable, List, Optional

from ..monitoring.logger import get_logger
from .models import BalanceSnapshot, TransitionEvent, TransitionKind

DUST_THRESHOLD = 0.001

PositionCheck = Callable[[str], bool]


class DiffClassifier:
    """Turns two successive snapshots of one wallet into transition events.

    The resulting kind for each mint depends only on ``(old, new,
    bot_has_position(mint))`` so replaying a pair yields the same events.
    The dust threshold is a policy constant: balances at or below it count
    as an exit, there is no additional floating point tolerance.
    """

    def __init__(
        self,
        dust_threshold: float = DUST_THRESHOLD,
        *,
        guard_failed_snapshots: bool = True,
    ) -> None:
        self._dust = dust_threshold
        self._guard_failed = guard_failed_snapshots
        self._logger = get_logger(__name__)

    @property
    def dust_threshold(self) -> float:
        return self._dust

    @property
    def guards_failed_snapshots(self) -> bool:
        return self._guard_failed

    def classify(
        self,
        old: BalanceSnapshot,
        new: BalanceSnapshot,
        bot_has_position: PositionCheck,
    ) -> List[TransitionEvent]:
        if new.fetch_failed and self._guard_failed:
            self._logger.warning(
                "Skipping classification for %s: snapshot fetch failed", new.wallet_address
            )
            return []
        events: List[TransitionEvent] = []
        for mint in sorted(set(old.balances) | set(new.balances)):
            kind = self.classify_pair(
                old.get(mint),
                new.get(mint),
                bot_has_position(mint),
                present=mint in new,
            )
            if kind is None:
                continue
            events.append(
                TransitionEvent(
                    mint=mint,
                    kind=kind,
                    old_balance=old.get(mint),
                    new_balance=new.get(mint),
                    observed_at=new.captured_at,
                )
            )
        if events:
            self._logger.debug(
                "Classified %d transitions for %s", len(events), new.wallet_address
            )
        return events

    def classify_pair(
        self,
        old_balance: float,
        new_balance: float,
        bot_has_position: bool,
        *,
        present: bool = True,
    ) -> Optional[TransitionKind]:
        """Return the transition kind for one mint, or ``None`` for no event."""

        if new_balance > old_balance:
            if old_balance == 0 and not bot_has_position:
                return TransitionKind.NEW_POSITION
            return TransitionKind.INCREASE
        if new_balance == old_balance and present:
            return None
        exited = not present or new_balance <= self._dust
        if not exited:
            return TransitionKind.PARTIAL_DECREASE
        if bot_has_position and old_balance > new_balance:
            return TransitionKind.FULL_EXIT
        return None


__all__ = ["DUST_THRESHOLD", "DiffClassifier", "PositionCheck"]
