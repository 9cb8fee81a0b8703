"""Best-effort drain of open shippers at interpreter exit.

This module provides:
- Atexit handler that closes every registered shipper with a timeout
- WeakSet-based registration so shippers can still be garbage collected

The handler never raises and never blocks longer than each shipper's
configured drain timeout.
"""

from __future__ import annotations

import atexit
import weakref
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..shipper import LogShipper


_shutdown_in_progress: bool = False
_registered_shippers: weakref.WeakSet[Any] = weakref.WeakSet()


def register_shipper(shipper: LogShipper) -> None:
    """Register a shipper for automatic drain at exit."""
    _registered_shippers.add(shipper)


def unregister_shipper(shipper: LogShipper) -> None:
    """Unregister a shipper, typically from its own ``close()``."""
    try:
        _registered_shippers.discard(shipper)
    except Exception:  # pragma: no cover - defensive
        pass


def registered_count() -> int:
    return len(_registered_shippers)


def _drain_single_shipper(shipper: Any) -> None:
    try:
        shipper.close(timeout=shipper.atexit_drain_timeout_seconds)
    except Exception:
        pass  # Best effort - don't crash on exit


def _atexit_handler() -> None:
    """Close every registered shipper. Called by atexit; never raises."""
    global _shutdown_in_progress

    if _shutdown_in_progress:
        return
    _shutdown_in_progress = True

    # Snapshot the shippers (WeakSet iteration can fail if GC runs)
    try:
        shippers = list(_registered_shippers)
    except Exception:  # pragma: no cover - rare GC race
        return

    for shipper in shippers:
        _drain_single_shipper(shipper)


atexit.register(_atexit_handler)
