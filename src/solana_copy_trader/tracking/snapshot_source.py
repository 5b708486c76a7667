"""Debounced, deduplicated stream of tracked-wallet balance snapshots."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Tuple

from cachetools import TTLCache

from ..config.settings import TrackingConfig
from ..monitoring.logger import get_logger
from ..monitoring.metrics import MetricsSink
from ..utils.constants import utc_now
from .base import ChainClient
from .models import ActivityNotice, BalanceSnapshot


@dataclass(frozen=True, slots=True)
class SnapshotBatch:
    """A fetched snapshot plus every activity signature coalesced into it."""

    snapshot: BalanceSnapshot
    signatures: Tuple[str, ...]

    @property
    def latest_signature(self) -> Optional[str]:
        return self.signatures[-1] if self.signatures else None


class SnapshotSource:
    """Wraps a :class:`ChainClient` into a uniform stream of snapshots.

    Activity notices are deduplicated by signature and pushed onto a
    bounded queue. The consumer side coalesces every notice that is queued
    when it wakes up and fetches at most once per ``min_check_interval_ms``.
    A failed fetch degrades to an empty snapshot flagged ``fetch_failed``.
    """

    def __init__(
        self,
        client: ChainClient,
        *,
        min_check_interval_ms: int = 50,
        queue_size: int = 1024,
        seen_capacity: int = 10_000,
        seen_ttl_seconds: int = 3_600,
        metrics: Optional[MetricsSink] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._interval = max(min_check_interval_ms, 0) / 1000.0
        self._queue: "asyncio.Queue[ActivityNotice]" = asyncio.Queue(maxsize=queue_size)
        self._seen: TTLCache[str, bool] = TTLCache(maxsize=seen_capacity, ttl=seen_ttl_seconds)
        self._metrics = metrics
        self._clock = clock
        self._sleep = sleep
        self._last_fetch: Optional[float] = None
        self._logger = get_logger(__name__)

    @classmethod
    def from_config(
        cls,
        client: ChainClient,
        config: TrackingConfig,
        *,
        metrics: Optional[MetricsSink] = None,
    ) -> "SnapshotSource":
        return cls(
            client,
            min_check_interval_ms=config.min_check_interval_ms,
            queue_size=config.activity_queue_size,
            seen_capacity=config.seen_signature_capacity,
            seen_ttl_seconds=config.seen_signature_ttl_seconds,
            metrics=metrics,
        )

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def poll(self, wallet_address: str) -> BalanceSnapshot:
        """Fetch balances synchronously; never raises."""

        self._count_api_call()
        try:
            balances = self._client.get_token_balances(wallet_address)
        except Exception as exc:  # noqa: BLE001 - read failures degrade to an empty snapshot
            self._logger.warning("Balance fetch failed for %s: %s", wallet_address, exc)
            return BalanceSnapshot.empty(wallet_address, fetch_failed=True)
        cleaned = {mint: float(amount) for mint, amount in balances.items() if amount and amount > 0}
        return BalanceSnapshot(wallet_address=wallet_address, captured_at=utc_now(), balances=cleaned)

    async def poll_async(self, wallet_address: str) -> BalanceSnapshot:
        return await asyncio.to_thread(self.poll, wallet_address)

    def handle_activity(self, notice: ActivityNotice) -> bool:
        """Accept a notice from the feed; returns ``False`` when it is dropped."""

        self._count_api_call()
        if notice.signature in self._seen:
            return False
        self._seen[notice.signature] = True
        self._logger.info(
            "Activity found | tx=%s... slot=%d", notice.signature[:10], notice.slot
        )
        if notice.failed:
            self._logger.info("Ignoring failed transaction %s...", notice.signature[:10])
            return False
        if self._queue.full():
            # A later fetch supersedes whatever the oldest notice would have triggered.
            dropped = self._queue.get_nowait()
            self._logger.warning("Activity queue full; dropping %s...", dropped.signature[:10])
        self._queue.put_nowait(notice)
        return True

    async def next_batch(self, wallet_address: str) -> SnapshotBatch:
        """Wait for activity and return one snapshot covering every pending notice."""

        first = await self._queue.get()
        signatures = [first.signature, *self._drain()]
        if self._last_fetch is not None:
            remaining = self._interval - (self._clock() - self._last_fetch)
            if remaining > 0:
                await self._sleep(remaining)
                signatures.extend(self._drain())
        self._last_fetch = self._clock()
        snapshot = await self.poll_async(wallet_address)
        if len(signatures) > 1:
            self._logger.debug("Coalesced %d notices into one fetch", len(signatures))
        return SnapshotBatch(snapshot=snapshot, signatures=tuple(signatures))

    async def snapshots(self, wallet_address: str) -> AsyncIterator[SnapshotBatch]:
        while True:
            yield await self.next_batch(wallet_address)

    async def subscribe(self, wallet_address: str) -> None:
        await self._client.subscribe(wallet_address, self.handle_activity)

    def _drain(self) -> List[str]:
        drained: List[str] = []
        while True:
            try:
                drained.append(self._queue.get_nowait().signature)
            except asyncio.QueueEmpty:
                return drained

    def _count_api_call(self) -> None:
        if self._metrics is not None:
            self._metrics.record_api_call()


__all__ = ["SnapshotBatch", "SnapshotSource"]
