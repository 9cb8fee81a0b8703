from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any

import pytest

from shiplog.core.coordinator import FlushResult
from shiplog.core.errors import ConfigurationError
from shiplog.core.settings import CoreSettings, Settings
from shiplog.shipper import AsyncLogShipper
from shiplog.transport import LogBatch

NOW = datetime(2024, 5, 17, 8, 30, 15)


class _StubTransport:
    def __init__(self, outcomes: list[Any] | None = None) -> None:
        self.outcomes = list(outcomes or [])
        self.batches: list[LogBatch] = []
        self.stopped = False

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        self.stopped = True

    async def send(self, batch: LogBatch) -> bool:
        self.batches.append(batch)
        return bool(self.outcomes.pop(0)) if self.outcomes else True


def _shipper(transport: _StubTransport, **core: Any) -> AsyncLogShipper:
    return AsyncLogShipper(
        "http://collector",
        "async-app",
        settings=Settings(core=CoreSettings(atexit_drain_enabled=False, **core)),
        transport=transport,
        clock=lambda: NOW,
    )


@pytest.mark.asyncio
async def test_async_shipper_round_trip() -> None:
    transport = _StubTransport([False])
    async with _shipper(transport, batch_threshold=100) as shipper:
        await shipper.initialize(100)
        shipper.log("INFO", "t1", "A")
        assert await shipper.flush() is FlushResult.REQUEUED
        shipper.log("INFO", "t2", "B")
        assert await shipper.flush() is FlushResult.DELIVERED

    assert shipper.closed is True
    assert transport.stopped is True
    assert transport.batches[1].logs == [
        "2024-05-17\t08:30:15\tINFO\tt1\tA",
        "2024-05-17\t08:30:15\tINFO\tt2\tB",
    ]


@pytest.mark.asyncio
async def test_logs_before_start_ship_once_started() -> None:
    transport = _StubTransport()
    shipper = _shipper(transport)
    shipper.log("INFO", None, "early")
    assert await shipper.flush() is FlushResult.REJECTED

    await shipper.start()
    await asyncio.sleep(0.02)

    assert transport.batches and transport.batches[0].logs[0].endswith("early")
    assert await shipper.close() is FlushResult.IDLE


@pytest.mark.asyncio
async def test_async_initialize_validates_threshold() -> None:
    shipper = _shipper(_StubTransport())
    with pytest.raises(ConfigurationError):
        await shipper.initialize(0)
    await shipper.close()


@pytest.mark.asyncio
async def test_async_auto_flush() -> None:
    transport = _StubTransport()
    shipper = _shipper(transport, flush_interval_seconds=0.02)
    await shipper.initialize(10)
    shipper.log("DEBUG", None, "tick")

    for _ in range(100):
        if transport.batches:
            break
        await asyncio.sleep(0.01)

    assert transport.batches[0].logs[0].endswith("tick")
    await shipper.close()


@pytest.mark.asyncio
async def test_async_close_is_idempotent() -> None:
    transport = _StubTransport()
    shipper = _shipper(transport, batch_threshold=100)
    await shipper.start()
    shipper.log("INFO", None, "x")

    assert await shipper.close() is FlushResult.DELIVERED
    assert await shipper.close() is FlushResult.DELIVERED
    assert len(transport.batches) == 1


@pytest.mark.asyncio
async def test_close_without_start_ships_buffered_logs() -> None:
    transport = _StubTransport()
    shipper = _shipper(transport, batch_threshold=100)
    shipper.log("INFO", "t1", "never started")
    shipper.log("INFO", "t1", "still shipped")

    assert await shipper.close() is FlushResult.DELIVERED
    assert transport.stopped is True
    assert shipper.pending_count == 0
    assert [line.split("\t", 4)[4] for line in transport.batches[0].logs] == [
        "never started",
        "still shipped",
    ]


@pytest.mark.asyncio
async def test_close_without_start_or_logs_skips_transport() -> None:
    transport = _StubTransport()
    shipper = _shipper(transport)

    assert await shipper.close() is FlushResult.REJECTED
    assert transport.batches == []


@pytest.mark.asyncio
async def test_log_racing_close_is_discarded(
    caplog: pytest.LogCaptureFixture,
) -> None:
    transport = _StubTransport()
    shipper = _shipper(transport, batch_threshold=100)
    await shipper.start()
    # Coordinator finished its final drain; the shipper has not flagged close yet
    await shipper.coordinator.shutdown()

    with caplog.at_level(logging.DEBUG, logger="shiplog.diagnostics"):
        shipper.log("INFO", None, "straggler")

    assert shipper.pending_count == 0
    messages = [getattr(r, "diagnostics", {}).get("message") for r in caplog.records]
    assert "log after close discarded" in messages
    await shipper.close()
