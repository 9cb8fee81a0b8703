"""
Internal diagnostics channel.

Non-fatal errors inside the shipper (failed deliveries, requeues, shutdown
leftovers) are reported here instead of being raised to the producer. Records
go through the stdlib ``logging`` logger ``shiplog.diagnostics`` with the
structured fields attached as ``extra={"diagnostics": {...}}``.

Emission is gated process-wide by ``Settings().core.internal_logging_enabled``
read from the environment. The value is read once and cached; tests reset
``_internal_logging_enabled`` to ``None`` to force a re-read.

A shipper built with explicit settings reports through its own
:class:`Reporter`, so its ``internal_logging_enabled`` flag only silences that
shipper. Both the process gate and the reporter flag must be on for a record
to be emitted.
"""

from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger("shiplog.diagnostics")

_internal_logging_enabled: bool | None = None


def _enabled() -> bool:
    global _internal_logging_enabled

    if _internal_logging_enabled is None:
        try:
            from .settings import Settings

            _internal_logging_enabled = bool(
                Settings().core.internal_logging_enabled
            )
        except Exception:
            _internal_logging_enabled = True
    return _internal_logging_enabled


def set_enabled(enabled: bool) -> None:
    """Override the cached process-wide gate."""
    global _internal_logging_enabled

    _internal_logging_enabled = bool(enabled)


def _emit(level: int, component: str, message: str, fields: dict[str, Any]) -> None:
    if not _enabled():
        return
    try:
        payload = {"component": component, "message": message, **fields}
        logger.log(
            level,
            "[%s] %s %s",
            component,
            message,
            json.dumps(fields, default=str, sort_keys=True),
            extra={"diagnostics": payload},
        )
    except Exception:
        # Diagnostics must never break the caller
        pass


def warn(component: str, message: str, **fields: Any) -> None:
    _emit(logging.WARNING, component, message, fields)


def debug(component: str, message: str, **fields: Any) -> None:
    _emit(logging.DEBUG, component, message, fields)


class Reporter:
    """Diagnostics scoped to one shipper's ``internal_logging_enabled`` flag."""

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = bool(enabled)

    def warn(self, component: str, message: str, **fields: Any) -> None:
        if self.enabled:
            warn(component, message, **fields)

    def debug(self, component: str, message: str, **fields: Any) -> None:
        if self.enabled:
            debug(component, message, **fields)


__all__ = ["warn", "debug", "set_enabled", "Reporter", "logger"]
