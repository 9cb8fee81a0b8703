"""
Flush coordination: drain the buffer, ship the batch, requeue on failure.

The coordinator is a single actor task living on one event loop. Every flush
trigger (size threshold, auto-flush tick, explicit ``flush_now()``) only sets
a wakeup event, so overlapping triggers coalesce into the next pending cycle
and at most one batch is ever in flight.

Cycle state machine::

    IDLE -> DRAINING -> SHIPPING -> {DELIVERED | REQUEUED} -> IDLE

``DRAINING`` never suspends. ``SHIPPING`` is the only state that awaits
(the transport). A failed batch goes back to the head of the buffer and is
retried by whichever trigger fires next; there is no retry limit and no
backoff.

Producer threads interact through the thread-safe ``submit()`` and
``flush_now()``; everything else must be awaited on the coordinator's loop.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import threading
import time
from enum import Enum
from typing import Iterable

from ..metrics.metrics import MetricsCollector
from ..transport import LogBatch, Transport
from . import diagnostics
from .buffer import BufferManager
from .entry import LogEntry


class FlushState(str, Enum):
    IDLE = "idle"
    DRAINING = "draining"
    SHIPPING = "shipping"


class FlushResult(str, Enum):
    IDLE = "idle"  # Nothing was buffered; no transport call
    DELIVERED = "delivered"  # Collector acknowledged the batch
    REQUEUED = "requeued"  # Delivery failed; batch is back at the head
    REJECTED = "rejected"  # Coordinator is not running


def _resolve(
    waiters: Iterable[concurrent.futures.Future[FlushResult]], result: FlushResult
) -> None:
    for waiter in waiters:
        if not waiter.done():
            waiter.set_result(result)


class FlushCoordinator:
    """Single-owner flush actor bound to the loop that calls :meth:`start`."""

    def __init__(
        self,
        buffer: BufferManager,
        transport: Transport,
        *,
        source: str,
        metrics: MetricsCollector | None = None,
        reporter: diagnostics.Reporter | None = None,
    ) -> None:
        self._buffer = buffer
        self._transport = transport
        self._source = source
        self._metrics = metrics
        self._report = reporter or diagnostics.Reporter()
        self._state = FlushState.IDLE
        self._loop: asyncio.AbstractEventLoop | None = None
        self._wakeup: asyncio.Event | None = None
        self._actor: asyncio.Task[None] | None = None
        self._timer: asyncio.Task[None] | None = None
        self._stopping = False
        self._shutdown_task: asyncio.Task[FlushResult] | None = None
        # Waiters are registered from producer threads
        self._waiters_lock = threading.Lock()
        self._waiters: list[concurrent.futures.Future[FlushResult]] = []
        self._active_waiters: list[concurrent.futures.Future[FlushResult]] = []
        self._closed = False

    @property
    def buffer(self) -> BufferManager:
        return self._buffer

    @property
    def source(self) -> str:
        return self._source

    @property
    def state(self) -> FlushState:
        return self._state

    @property
    def started(self) -> bool:
        return self._actor is not None

    @property
    def is_running(self) -> bool:
        return self._actor is not None and not self._closed and not self._stopping

    @property
    def auto_flush_active(self) -> bool:
        return self._timer is not None and not self._timer.done()

    async def start(self) -> None:
        if self._actor is not None or self._closed:
            return
        self._loop = asyncio.get_running_loop()
        self._wakeup = asyncio.Event()
        await self._transport.start()
        self._actor = self._loop.create_task(
            self._run(), name="shiplog-flush-coordinator"
        )

    # ------------------------------------------------------------------
    # Thread-safe producer surface
    # ------------------------------------------------------------------

    def submit(self, entry: LogEntry) -> bool:
        """Buffer ``entry``; request a flush when the threshold is reached.

        Returns whether a flush was requested. Entries submitted after the
        coordinator has shut down are discarded.
        """
        if self._closed:
            self._report.debug(
                "flush-coordinator", "log after close discarded", level=entry.level
            )
            return False
        if self._buffer.append(entry):
            return self._request()
        return False

    def flush_now(self) -> concurrent.futures.Future[FlushResult]:
        """Request a flush and return a future for the cycle's outcome.

        With an empty buffer the returned future is already resolved with
        ``FlushResult.IDLE`` and the transport is not touched.
        """
        future: concurrent.futures.Future[FlushResult] = concurrent.futures.Future()
        if self._buffer.is_empty():
            future.set_result(FlushResult.IDLE)
            return future
        if not self._request(future):
            future.set_result(FlushResult.REJECTED)
        return future

    def _request(
        self, waiter: concurrent.futures.Future[FlushResult] | None = None
    ) -> bool:
        loop, wakeup = self._loop, self._wakeup
        if loop is None or wakeup is None:
            return False
        with self._waiters_lock:
            if self._closed:
                return False
            if waiter is not None:
                self._waiters.append(waiter)
        try:
            loop.call_soon_threadsafe(wakeup.set)
        except RuntimeError:
            # Loop already closed
            with self._waiters_lock:
                if waiter is not None and waiter in self._waiters:
                    self._waiters.remove(waiter)
            return False
        return True

    # ------------------------------------------------------------------
    # Actor
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        assert self._wakeup is not None
        try:
            while True:
                await self._wakeup.wait()
                self._wakeup.clear()
                with self._waiters_lock:
                    self._active_waiters, self._waiters = self._waiters, []
                try:
                    result = await self._flush_cycle()
                except Exception as exc:  # pragma: no cover - defensive catch
                    self._report.warn(
                        "flush-coordinator",
                        "flush cycle failed",
                        error=str(exc),
                        error_type=type(exc).__name__,
                    )
                    result = FlushResult.REQUEUED
                _resolve(self._active_waiters, result)
                self._active_waiters = []
                if self._stopping and not self._wakeup.is_set():
                    with self._waiters_lock:
                        pending = bool(self._waiters)
                    if not pending:
                        return
                    self._wakeup.set()
        finally:
            with self._waiters_lock:
                self._closed = True
                leftovers = self._active_waiters + self._waiters
                self._active_waiters, self._waiters = [], []
            _resolve(leftovers, FlushResult.REJECTED)
            self._state = FlushState.IDLE

    async def _flush_cycle(self) -> FlushResult:
        self._state = FlushState.DRAINING
        batch = self._buffer.drain_all()
        if not batch:
            self._state = FlushState.IDLE
            return FlushResult.IDLE

        self._state = FlushState.SHIPPING
        start = time.perf_counter()
        delivered = False
        try:
            payload = LogBatch.from_entries(self._source, batch)
            delivered = bool(await self._transport.send(payload))
        except asyncio.CancelledError:
            self._buffer.requeue_front(batch)
            self._state = FlushState.IDLE
            raise
        except Exception as exc:
            self._report.warn(
                "flush-coordinator",
                "error sending logs",
                error=str(exc),
                error_type=type(exc).__name__,
                status_code=getattr(exc, "status_code", None),
                count=len(batch),
            )
        latency = time.perf_counter() - start

        if delivered:
            self._state = FlushState.IDLE
            if self._metrics is not None:
                await self._metrics.record_delivered(
                    len(batch), duration_seconds=latency
                )
            await self._record_buffer_state()
            return FlushResult.DELIVERED

        self._buffer.requeue_front(batch)
        self._state = FlushState.IDLE
        self._report.debug(
            "flush-coordinator",
            "batch requeued for retry",
            count=len(batch),
            buffered=len(self._buffer),
        )
        if self._metrics is not None:
            await self._metrics.record_requeued(len(batch), duration_seconds=latency)
        await self._record_buffer_state()
        return FlushResult.REQUEUED

    async def _record_buffer_state(self) -> None:
        if self._metrics is None:
            return
        try:
            await self._metrics.record_buffer_state(
                depth=len(self._buffer),
                dropped_total=self._buffer.dropped_count,
            )
        except Exception as exc:
            self._report.warn(
                "flush-coordinator",
                "failed to record buffer metrics",
                error=str(exc),
                error_type=type(exc).__name__,
            )

    # ------------------------------------------------------------------
    # Auto-flush timer
    # ------------------------------------------------------------------

    async def start_auto_flush(self, interval_seconds: float) -> None:
        """Start (or restart) the periodic flush timer."""
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        if self._loop is None:
            raise RuntimeError("FlushCoordinator.start() must be awaited first")
        await self.stop_auto_flush()
        self._timer = self._loop.create_task(
            self._tick(interval_seconds), name="shiplog-auto-flush"
        )

    async def stop_auto_flush(self) -> None:
        """Cancel the periodic timer. Does not flush; safe to call repeatedly."""
        timer, self._timer = self._timer, None
        if timer is None:
            return
        timer.cancel()
        await asyncio.gather(timer, return_exceptions=True)

    async def _tick(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            if not self._buffer.is_empty():
                self._request()

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def shutdown(self, timeout: float | None = None) -> FlushResult:
        """Stop the timer, run one final flush and stop the transport.

        The in-flight cycle and the final cycle run to completion unless
        ``timeout`` elapses first, in which case the actor is cancelled and
        its batch is requeued. Repeated calls return the first call's result.
        """
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.get_running_loop().create_task(
                self._shutdown(timeout)
            )
        return await asyncio.shield(self._shutdown_task)

    async def _shutdown(self, timeout: float | None) -> FlushResult:
        await self.stop_auto_flush()
        actor = self._actor
        if actor is None or self._wakeup is None:
            with self._waiters_lock:
                self._closed = True
            self._report_leftovers(FlushResult.REJECTED)
            return FlushResult.REJECTED

        final: concurrent.futures.Future[FlushResult] = concurrent.futures.Future()
        # _stopping, the final waiter and the wakeup must land in one loop step
        with self._waiters_lock:
            closed = self._closed
            if not closed:
                self._waiters.append(final)
        self._stopping = True
        if closed:
            final.set_result(FlushResult.REJECTED)
        else:
            self._wakeup.set()
        try:
            await asyncio.wait_for(asyncio.shield(actor), timeout)
        except asyncio.TimeoutError:
            self._report.warn(
                "flush-coordinator",
                "shutdown timed out; cancelling in-flight flush",
                timeout_seconds=timeout,
            )
            actor.cancel()
            await asyncio.gather(actor, return_exceptions=True)

        result = final.result() if final.done() else FlushResult.REJECTED
        self._report_leftovers(result)
        try:
            await self._transport.stop()
        except Exception as exc:
            self._report.warn(
                "flush-coordinator",
                "transport stop failed",
                error=str(exc),
            )
        return result

    def _report_leftovers(self, result: FlushResult) -> None:
        remaining = len(self._buffer)
        if remaining:
            self._report.warn(
                "flush-coordinator",
                "entries left unsent at shutdown",
                remaining=remaining,
                result=result.value,
            )


__all__ = ["FlushCoordinator", "FlushState", "FlushResult"]
