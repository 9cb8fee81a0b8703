"""
Exception hierarchy for shiplog.

Only configuration mistakes are raised to callers. Transport failures,
including :class:`TransportError`, are recovered inside the flush coordinator
and never surface through ``log()``.
"""

from __future__ import annotations


class ShiplogError(Exception):
    """Base class for all shiplog errors."""


class ConfigurationError(ShiplogError, ValueError):
    """Raised when a shipper is constructed or initialized with bad values."""


class TransportError(ShiplogError):
    """A delivery the collector refused, e.g. a non-200 response."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InvalidLogLineError(ShiplogError, ValueError):
    """Raised when a tab-separated log line cannot be parsed."""


__all__ = [
    "ShiplogError",
    "ConfigurationError",
    "TransportError",
    "InvalidLogLineError",
]
