"""
Producer-facing shipper API.

``LogShipper`` is the synchronous facade: it owns a daemon thread running a
private event loop that hosts the flush coordinator, so ``log()`` can be
called from any thread and never waits on the network.

``AsyncLogShipper`` exposes the same surface for asyncio applications and
runs the coordinator on the caller's loop.

Usage::

    shipper = LogShipper("http://localhost:3000", "billing-api")
    shipper.initialize(10)  # ship every 10 lines, and every 5s regardless
    shipper.log("INFO", "trace-123", "Application started")
    shipper.close()
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import threading
import types
from datetime import datetime
from typing import Any, Callable, Coroutine, TypeVar

from pydantic import ValidationError

from .core import diagnostics
from .core.buffer import BufferManager
from .core.coordinator import FlushCoordinator, FlushResult
from .core.entry import LogEntry
from .core.errors import ConfigurationError
from .core.settings import CoreSettings, HttpSettings, Settings
from .core.shutdown import register_shipper, unregister_shipper
from .metrics.metrics import MetricsCollector
from .transport import HttpTransport, Transport

T = TypeVar("T")


def _validate_threshold(batch_threshold: Any) -> int:
    if (
        isinstance(batch_threshold, bool)
        or not isinstance(batch_threshold, int)
        or batch_threshold < 1
    ):
        raise ConfigurationError(
            f"batch_threshold must be an integer >= 1, got {batch_threshold!r}"
        )
    return batch_threshold


class _ShipperBase:
    """Wiring shared by the sync and async facades."""

    def __init__(
        self,
        endpoint: str | None = None,
        source: str | None = None,
        *,
        settings: Settings | None = None,
        transport: Transport | None = None,
        metrics: MetricsCollector | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        cfg = settings or Settings()
        try:
            core = cfg.core
            if source is not None:
                core = CoreSettings(**{**core.model_dump(), "source": source})
            http = cfg.http
            if endpoint is not None:
                http = HttpSettings(**{**http.model_dump(), "endpoint": endpoint})
        except ValidationError as exc:
            raise ConfigurationError(str(exc)) from exc
        self._core = core
        self._report = diagnostics.Reporter(core.internal_logging_enabled)
        self._endpoint = http.endpoint
        if metrics is None and core.enable_metrics:
            metrics = MetricsCollector(enabled=True)
        self._metrics = metrics
        self._buffer = BufferManager(
            batch_threshold=core.batch_threshold,
            max_size=core.max_buffer_size,
        )
        self._transport = transport or HttpTransport(
            http.endpoint,
            timeout_seconds=http.timeout_seconds,
            headers=http.headers,
        )
        self._coordinator = FlushCoordinator(
            self._buffer,
            self._transport,
            source=core.source,
            metrics=metrics,
            reporter=self._report,
        )
        self._clock = clock or datetime.now
        self._closed = False

    @property
    def source(self) -> str:
        return self._core.source

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def batch_threshold(self) -> int:
        return self._buffer.batch_threshold

    @property
    def flush_interval_seconds(self) -> float:
        return self._core.flush_interval_seconds

    @property
    def atexit_drain_timeout_seconds(self) -> float:
        return self._core.atexit_drain_timeout_seconds

    @property
    def pending_count(self) -> int:
        """Entries buffered and not currently in flight."""
        return len(self._buffer)

    @property
    def dropped_count(self) -> int:
        """Entries evicted because the buffer was full."""
        return self._buffer.dropped_count

    @property
    def metrics(self) -> MetricsCollector | None:
        return self._metrics

    @property
    def coordinator(self) -> FlushCoordinator:
        return self._coordinator

    @property
    def closed(self) -> bool:
        return self._closed

    def log(self, level: str, trace_id: str | None, content: str) -> None:
        """Buffer one log line. Never raises and never blocks on I/O."""
        if self._closed:
            self._report.debug("shipper", "log after close discarded", level=level)
            return
        try:
            entry = LogEntry.create(level, trace_id, content, now=self._clock())
            self._coordinator.submit(entry)
        except Exception as exc:
            self._report.warn(
                "shipper",
                "failed to buffer log",
                error=str(exc),
                error_type=type(exc).__name__,
            )


class LogShipper(_ShipperBase):
    """Synchronous shipper backed by a background event-loop thread."""

    def __init__(
        self,
        endpoint: str | None = None,
        source: str | None = None,
        *,
        settings: Settings | None = None,
        transport: Transport | None = None,
        metrics: MetricsCollector | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(
            endpoint,
            source,
            settings=settings,
            transport=transport,
            metrics=metrics,
            clock=clock,
        )
        self._close_lock = threading.Lock()
        self._close_result: FlushResult | None = None
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._run_loop, name="shiplog-worker", daemon=True
        )
        self._thread.start()
        try:
            self._call(self._coordinator.start())
        except Exception:
            self._stop_loop()
            raise
        if self._core.atexit_drain_enabled:
            register_shipper(self)

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def _call(
        self, coro: Coroutine[Any, Any, T], timeout: float | None = None
    ) -> T:
        return asyncio.run_coroutine_threadsafe(coro, self._loop).result(timeout)

    def _stop_loop(self) -> None:
        try:
            self._loop.call_soon_threadsafe(self._loop.stop)
        except RuntimeError:
            return
        self._thread.join(timeout=5.0)
        if not self._thread.is_alive():
            self._loop.close()

    def initialize(self, batch_threshold: int | None = None) -> None:
        """Set the flush threshold and start the auto-flush timer."""
        threshold = _validate_threshold(
            self._core.batch_threshold if batch_threshold is None else batch_threshold
        )
        if self._closed:
            raise ConfigurationError("shipper is closed")
        self._buffer.batch_threshold = threshold
        self._call(
            self._coordinator.start_auto_flush(self._core.flush_interval_seconds)
        )
        # Lines logged before initialize() may already satisfy the threshold
        if len(self._buffer) >= threshold:
            self._coordinator.flush_now()

    def flush(self) -> concurrent.futures.Future[FlushResult]:
        """Request a flush; the returned future resolves when the cycle ends."""
        return self._coordinator.flush_now()

    def close(self, timeout: float | None = None) -> FlushResult:
        """Stop auto-flush, ship what is left and stop the worker thread.

        Safe to call more than once; later calls return the first result.
        """
        with self._close_lock:
            if self._close_result is not None:
                return self._close_result
            self._closed = True
            unregister_shipper(self)
            result = FlushResult.REJECTED
            try:
                wait = None if timeout is None else timeout + 1.0
                result = self._call(self._coordinator.shutdown(timeout), wait)
            except Exception as exc:
                self._report.warn(
                    "shipper",
                    "close failed",
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
            finally:
                self._stop_loop()
            self._close_result = result
            return result

    def __enter__(self) -> LogShipper:
        return self

    def __exit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc: BaseException | None,
        _tb: types.TracebackType | None,
    ) -> None:
        self.close()


class AsyncLogShipper(_ShipperBase):
    """Shipper for asyncio applications; the coordinator runs on the caller's loop.

    Usage:
        async with AsyncLogShipper("http://localhost:3000", "worker") as shipper:
            await shipper.initialize(10)
            shipper.log("INFO", None, "job started")
    """

    def __init__(
        self,
        endpoint: str | None = None,
        source: str | None = None,
        *,
        settings: Settings | None = None,
        transport: Transport | None = None,
        metrics: MetricsCollector | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(
            endpoint,
            source,
            settings=settings,
            transport=transport,
            metrics=metrics,
            clock=clock,
        )
        self._close_result: FlushResult | None = None

    async def start(self) -> None:
        await self._coordinator.start()
        if len(self._buffer) >= self._buffer.batch_threshold:
            self._coordinator.flush_now()

    async def initialize(self, batch_threshold: int | None = None) -> None:
        threshold = _validate_threshold(
            self._core.batch_threshold if batch_threshold is None else batch_threshold
        )
        if self._closed:
            raise ConfigurationError("shipper is closed")
        await self._coordinator.start()
        self._buffer.batch_threshold = threshold
        await self._coordinator.start_auto_flush(self._core.flush_interval_seconds)
        if len(self._buffer) >= threshold:
            self._coordinator.flush_now()

    async def flush(self) -> FlushResult:
        return await asyncio.wrap_future(self._coordinator.flush_now())

    async def close(self, timeout: float | None = None) -> FlushResult:
        """Ship what is left and stop; lines logged before :meth:`start` included."""
        if self._close_result is None:
            self._closed = True
            if not self._coordinator.started and not self._buffer.is_empty():
                try:
                    await self._coordinator.start()
                except Exception as exc:
                    self._report.warn(
                        "shipper",
                        "close failed",
                        error=str(exc),
                        error_type=type(exc).__name__,
                    )
            self._close_result = await self._coordinator.shutdown(timeout)
        return self._close_result

    async def __aenter__(self) -> AsyncLogShipper:
        await self.start()
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc: BaseException | None,
        _tb: types.TracebackType | None,
    ) -> None:
        await self.close()


__all__ = ["LogShipper", "AsyncLogShipper"]
