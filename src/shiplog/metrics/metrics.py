"""
Async-first delivery metrics for shiplog.

Implements a small Prometheus-compatible metric set around the flush cycle.

Design goals:
- Pure async/await, no blocking I/O
- Zero global state; each shipper gets its own registry
- Safe no-op exporters when metrics are disabled, while still tracking
  in-memory counters for tests
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram


@dataclass
class ShipperMetrics:
    """Captured runtime metrics for quick assertions in tests."""

    flush_attempts: int = 0
    flush_failures: int = 0
    entries_delivered: int = 0
    entries_requeued: int = 0
    entries_dropped: int = 0
    buffer_depth: int = 0


class MetricsCollector:
    """Shipper-scoped async metrics collector."""

    def __init__(self, *, enabled: bool = False) -> None:
        self._enabled = bool(enabled)
        self._lock = asyncio.Lock()
        self._state = ShipperMetrics()

        self._c_attempts: Any | None = None
        self._c_delivered: Any | None = None
        self._c_requeued: Any | None = None
        self._c_dropped: Any | None = None
        self._g_depth: Any | None = None
        self._h_flush_latency: Any | None = None
        self._registry: CollectorRegistry | None = None

        if self._enabled:
            # Isolated registry avoids duplicate registration across shippers
            self._registry = CollectorRegistry()
            self._c_attempts = Counter(
                "shiplog_flush_attempts_total",
                "Flush cycles that shipped a non-empty batch",
                ["result"],
                registry=self._registry,
            )
            self._c_delivered = Counter(
                "shiplog_entries_delivered_total",
                "Entries acknowledged by the collector",
                registry=self._registry,
            )
            self._c_requeued = Counter(
                "shiplog_entries_requeued_total",
                "Entries returned to the buffer after a failed delivery",
                registry=self._registry,
            )
            self._c_dropped = Counter(
                "shiplog_entries_dropped_total",
                "Entries evicted from a full buffer",
                registry=self._registry,
            )
            self._g_depth = Gauge(
                "shiplog_buffer_depth",
                "Entries currently waiting in the buffer",
                registry=self._registry,
            )
            self._h_flush_latency = Histogram(
                "shiplog_flush_seconds",
                "Latency of one ship attempt",
                buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
                registry=self._registry,
            )

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def registry(self) -> CollectorRegistry | None:
        """Expose the isolated Prometheus registry when enabled."""
        return self._registry

    async def record_delivered(
        self, count: int, *, duration_seconds: float | None = None
    ) -> None:
        async with self._lock:
            self._state.flush_attempts += 1
            self._state.entries_delivered += count
        if not self._enabled:
            return
        if self._c_attempts is not None:
            self._c_attempts.labels(result="delivered").inc()
        if self._c_delivered is not None:
            self._c_delivered.inc(count)
        if duration_seconds is not None and self._h_flush_latency is not None:
            self._h_flush_latency.observe(duration_seconds)

    async def record_requeued(
        self, count: int, *, duration_seconds: float | None = None
    ) -> None:
        async with self._lock:
            self._state.flush_attempts += 1
            self._state.flush_failures += 1
            self._state.entries_requeued += count
        if not self._enabled:
            return
        if self._c_attempts is not None:
            self._c_attempts.labels(result="requeued").inc()
        if self._c_requeued is not None:
            self._c_requeued.inc(count)
        if duration_seconds is not None and self._h_flush_latency is not None:
            self._h_flush_latency.observe(duration_seconds)

    async def record_buffer_state(self, *, depth: int, dropped_total: int) -> None:
        """Publish buffer depth and the buffer's cumulative drop count."""
        async with self._lock:
            new_drops = max(0, dropped_total - self._state.entries_dropped)
            self._state.entries_dropped = max(
                self._state.entries_dropped, dropped_total
            )
            self._state.buffer_depth = depth
        if not self._enabled:
            return
        if self._g_depth is not None:
            self._g_depth.set(depth)
        if new_drops and self._c_dropped is not None:
            self._c_dropped.inc(new_drops)

    async def snapshot(self) -> ShipperMetrics:
        async with self._lock:
            return replace(self._state)


__all__ = ["MetricsCollector", "ShipperMetrics"]
