"""In-memory shadow of the bot wallet's per-token holdings."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Mapping

from ..monitoring.logger import get_logger


class PositionLedger:
    """Per-mint holdings of the bot wallet, in UI units.

    Only the execution coordinator mutates the ledger after startup. Each
    mint has its own ``asyncio.Lock`` so updates for one mint are atomic
    with respect to other updates of the same mint while different mints
    proceed independently. Nothing here is persisted; the ledger is primed
    from an on-chain read when the process starts.
    """

    def __init__(self, initial: Mapping[str, float] | None = None) -> None:
        self._holdings: Dict[str, float] = {}
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._users: Dict[str, int] = defaultdict(int)
        self._logger = get_logger(__name__)
        if initial:
            self.prime(initial)

    def prime(self, balances: Mapping[str, float]) -> None:
        """Replace the ledger contents with balances read from chain."""

        self._holdings = {mint: float(amount) for mint, amount in balances.items() if amount > 0}
        self._logger.info("Bot ledger primed with %d positions", len(self._holdings))

    def lock_for(self, mint: str) -> asyncio.Lock:
        return self._locks[mint]

    @asynccontextmanager
    async def hold(self, mint: str) -> AsyncIterator[None]:
        """Hold the mint lock; the lock is dropped once the mint is no longer held."""

        lock = self._locks[mint]
        self._users[mint] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[mint] -= 1
            if not self._users[mint]:
                del self._users[mint]
                if not self.has_position(mint):
                    self._locks.pop(mint, None)

    def held(self, mint: str) -> float:
        return self._holdings.get(mint, 0.0)

    def has_position(self, mint: str) -> bool:
        return self.held(mint) > 0

    def set(self, mint: str, amount: float) -> None:
        self._holdings[mint] = max(float(amount), 0.0)

    def add(self, mint: str, amount: float) -> float:
        updated = self.held(mint) + float(amount)
        self.set(mint, updated)
        return updated

    def reduce_by_percent(self, mint: str, percent: float) -> float:
        if percent >= 100:
            self.set(mint, 0.0)
            return 0.0
        held = self.held(mint)
        updated = held - held * (percent / 100)
        self.set(mint, updated)
        return updated

    def snapshot(self) -> Dict[str, float]:
        return dict(self._holdings)

    def __contains__(self, mint: object) -> bool:
        return mint in self._holdings


__all__ = ["PositionLedger"]
