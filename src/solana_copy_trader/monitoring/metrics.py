"""Thread-safe trade performance metrics (latency, success rate, API usage)."""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from statistics import mean
from typing import Dict, List, Optional, Sequence, Tuple

from .logger import get_logger


@dataclass(slots=True)
class PerformanceMetrics:
    """Point-in-time copy of the session counters."""

    latencies: Tuple[float, ...] = ()
    successful_trades: int = 0
    total_trades: int = 0
    api_call_count: int = 0

    @property
    def average_latency_ms(self) -> int:
        return calculate_average_trade_latency(self.latencies)

    @property
    def api_calls_per_trade(self) -> int:
        return calculate_api_calls_per_trade(self.total_trades, self.api_call_count)

    @property
    def success_rate_pct(self) -> int:
        return calculate_success_rate(self.total_trades, self.successful_trades)


def calculate_average_trade_latency(latencies: Sequence[float]) -> int:
    if not latencies:
        return 0
    return int(round(mean(latencies)))


def calculate_api_calls_per_trade(total_trades: int, api_call_count: int) -> int:
    return int(round(api_call_count / total_trades)) if total_trades > 0 else 0


def calculate_success_rate(total_trades: int, successful_trades: int) -> int:
    return int(round(successful_trades / total_trades * 100)) if total_trades > 0 else 0


def _percentile(data: Sequence[float], percentile: float) -> float:
    items = sorted(data)
    if not items:
        return 0.0
    index = max(int(math.ceil(percentile * len(items))) - 1, 0)
    return float(items[min(index, len(items) - 1)])


class MetricsSink:
    """Append-only per-session trade counters.

    ``total_trades`` counts every dispatched swap command regardless of its
    outcome; ``successful_trades`` only those that reported success. The
    counters are cleared only by :meth:`reset` at session boundaries.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._latencies: List[float] = []
        self._successful = 0
        self._total = 0
        self._api_calls = 0
        self._logger = get_logger(__name__)

    def record(self, latency_ms: float, success: bool) -> None:
        with self._lock:
            self._latencies.append(float(latency_ms))
            self._total += 1
            if success:
                self._successful += 1

    def record_api_call(self, count: int = 1) -> None:
        with self._lock:
            self._api_calls += count

    def snapshot(self) -> PerformanceMetrics:
        with self._lock:
            return PerformanceMetrics(
                latencies=tuple(self._latencies),
                successful_trades=self._successful,
                total_trades=self._total,
                api_call_count=self._api_calls,
            )

    def latency_stats(self) -> Dict[str, float]:
        with self._lock:
            data = list(self._latencies)
        if not data:
            return {}
        return {
            "count": float(len(data)),
            "avg": mean(data),
            "p50": _percentile(data, 0.5),
            "p90": _percentile(data, 0.9),
            "p99": _percentile(data, 0.99),
        }

    def reset(self) -> None:
        with self._lock:
            self._latencies.clear()
            self._successful = 0
            self._total = 0
            self._api_calls = 0

    def log_summary(self, *, debug: Optional[bool] = None) -> PerformanceMetrics:
        snap = self.snapshot()
        self._logger.info(
            "Session summary | trades=%d calls=%d avg_latency_ms=%d calls_per_trade=%d success_rate=%d%%",
            snap.total_trades,
            snap.api_call_count,
            snap.average_latency_ms,
            snap.api_calls_per_trade,
            snap.success_rate_pct,
        )
        verbose = debug if debug is not None else self._logger.isEnabledFor(logging.DEBUG)
        if verbose:
            self._logger.debug("Trade latencies: %s", list(snap.latencies))
        return snap


METRICS = MetricsSink()


__all__ = [
    "METRICS",
    "MetricsSink",
    "PerformanceMetrics",
    "calculate_api_calls_per_trade",
    "calculate_average_trade_latency",
    "calculate_success_rate",
]
