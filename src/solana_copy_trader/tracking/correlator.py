"""Best-effort attribution of balance changes to activity signatures."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from .models import BalanceSnapshot


class SignatureCorrelator:
    """Remembers the most recent activity signature seen for each mint.

    Snapshots are fetched after debouncing, so one fetch may reflect several
    notifications; only the latest signature per mint is kept and the
    attribution can be wrong when the same mint trades in quick succession.
    """

    def __init__(self) -> None:
        self._signatures: Dict[str, str] = {}

    def record(self, mint: str, signature: str) -> None:
        self._signatures[mint] = signature

    def lookup(self, mint: str) -> Optional[str]:
        return self._signatures.get(mint)

    def attribute(
        self,
        signature: Optional[str],
        old: BalanceSnapshot,
        new: BalanceSnapshot,
    ) -> List[str]:
        """Record ``signature`` for every mint whose balance moved between snapshots."""

        if not signature:
            return []
        changed = [
            mint
            for mint in sorted(set(old.balances) | set(new.balances))
            if old.get(mint) != new.get(mint)
        ]
        for mint in changed:
            self.record(mint, signature)
        return changed

    def forget(self, mints: Iterable[str]) -> None:
        for mint in mints:
            self._signatures.pop(mint, None)


__all__ = ["SignatureCorrelator"]
