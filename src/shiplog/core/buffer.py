"""
In-memory buffer of pending log entries.

``BufferManager`` owns the ordered queue of not-yet-shipped entries. All
mutation (append, drain, requeue) happens under a single ``threading.Lock``
so producer threads, the auto-flush timer and the flush coordinator never
observe a half-applied change.

When ``max_size`` is set the buffer behaves as a ring: appending to a full
buffer evicts the oldest entry and increments ``dropped_count``. Requeueing a
failed batch into a buffer that cannot hold it evicts from the head (the
oldest entries) for the same reason.
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Iterable

from .entry import LogEntry


class BufferManager:
    """Thread-safe ordered buffer with a size-triggered flush threshold."""

    def __init__(self, *, batch_threshold: int = 1, max_size: int | None = None) -> None:
        if batch_threshold < 1:
            raise ValueError("batch_threshold must be >= 1")
        if max_size is not None and max_size < 1:
            raise ValueError("max_size must be >= 1")
        self._lock = threading.Lock()
        self._entries: deque[LogEntry] = deque()
        self._batch_threshold = batch_threshold
        self._max_size = max_size
        self._dropped = 0

    @property
    def batch_threshold(self) -> int:
        return self._batch_threshold

    @batch_threshold.setter
    def batch_threshold(self, value: int) -> None:
        if value < 1:
            raise ValueError("batch_threshold must be >= 1")
        with self._lock:
            self._batch_threshold = value

    @property
    def max_size(self) -> int | None:
        return self._max_size

    @property
    def dropped_count(self) -> int:
        """Total entries evicted because the buffer was full."""
        with self._lock:
            return self._dropped

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def is_empty(self) -> bool:
        with self._lock:
            return not self._entries

    def append(self, entry: LogEntry) -> bool:
        """Append ``entry`` and report whether the flush threshold is reached.

        The size check happens under the same lock as the append, so two
        producers can never both miss (or both double-count) the threshold.
        """
        with self._lock:
            if self._max_size is not None and len(self._entries) >= self._max_size:
                self._entries.popleft()
                self._dropped += 1
            self._entries.append(entry)
            return len(self._entries) >= self._batch_threshold

    def drain_all(self) -> list[LogEntry]:
        """Atomically remove and return every buffered entry, oldest first."""
        with self._lock:
            if not self._entries:
                return []
            batch = list(self._entries)
            self._entries.clear()
            return batch

    def requeue_front(self, batch: Iterable[LogEntry]) -> None:
        """Put a failed batch back at the head, ahead of newer entries."""
        items = list(batch)
        if not items:
            return
        with self._lock:
            if self._max_size is not None:
                room = self._max_size - len(self._entries)
                overflow = len(items) - max(room, 0)
                if overflow > 0:
                    # Oldest entries go first; newer appends are kept
                    del items[:overflow]
                    self._dropped += overflow
            self._entries.extendleft(reversed(items))

    def snapshot(self) -> list[LogEntry]:
        """Copy of the current contents without draining them."""
        with self._lock:
            return list(self._entries)


__all__ = ["BufferManager"]
