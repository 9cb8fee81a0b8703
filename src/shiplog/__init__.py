"""
Public entrypoints for shiplog.

Provides ``get_shipper()`` for a ready-to-use, initialized shipper and
``runtime()`` for scoped usage that always drains on exit.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from ._version import __version__
from .core.coordinator import FlushResult, FlushState
from .core.entry import LogEntry, escape_content, parse_line, unescape_content
from .core.errors import (
    ConfigurationError,
    InvalidLogLineError,
    ShiplogError,
    TransportError,
)
from .core.settings import Settings
from .shipper import AsyncLogShipper, LogShipper
from .transport import HttpTransport, LogBatch, Transport

__all__ = [
    "get_shipper",
    "runtime",
    "LogShipper",
    "AsyncLogShipper",
    "LogEntry",
    "LogBatch",
    "FlushResult",
    "FlushState",
    "Settings",
    "Transport",
    "HttpTransport",
    "escape_content",
    "unescape_content",
    "parse_line",
    "ShiplogError",
    "ConfigurationError",
    "TransportError",
    "InvalidLogLineError",
    "__version__",
    "VERSION",
]


def get_shipper(
    endpoint: str | None = None,
    source: str | None = None,
    *,
    batch_threshold: int | None = None,
    settings: Settings | None = None,
) -> LogShipper:
    """Return an initialized shipper with auto-flush running.

    Endpoint, source and threshold default to ``Settings`` (and therefore to
    ``SHIPLOG_*`` environment variables) when not given.

    Example:
        shipper = get_shipper("http://localhost:3000", "billing-api", batch_threshold=10)
        shipper.log("INFO", "trace-123", "invoice created")
        shipper.close()
    """
    shipper = LogShipper(endpoint, source, settings=settings)
    try:
        shipper.initialize(batch_threshold)
    except Exception:
        shipper.close()
        raise
    return shipper


@contextmanager
def runtime(
    endpoint: str | None = None,
    source: str | None = None,
    *,
    batch_threshold: int | None = None,
    settings: Settings | None = None,
) -> Iterator[LogShipper]:
    """Context manager that initializes a shipper and drains it on exit."""
    shipper = get_shipper(
        endpoint, source, batch_threshold=batch_threshold, settings=settings
    )
    try:
        yield shipper
    finally:
        shipper.close()


VERSION = __version__
