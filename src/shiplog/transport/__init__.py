from __future__ import annotations

from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from ..core.entry import LogEntry


class LogBatch(BaseModel):
    """JSON body POSTed to the collector: ``{"source": ..., "logs": [...]}``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    source: str
    logs: list[str] = Field(default_factory=list)

    @classmethod
    def from_entries(cls, source: str, entries: list[LogEntry]) -> LogBatch:
        return cls(source=source, logs=[entry.line for entry in entries])


@runtime_checkable
class Transport(Protocol):
    """Delivery capability used by the flush coordinator.

    ``send`` returns ``True`` only when the collector acknowledged the batch.
    Returning ``False`` or raising both count as a failed delivery; the
    coordinator requeues the batch either way. Implementations must not retry
    internally in a way that blocks shutdown indefinitely.
    """

    async def start(self) -> None:  # Optional lifecycle hook
        ...

    async def stop(self) -> None:  # Optional lifecycle hook
        ...

    async def send(self, batch: LogBatch) -> bool: ...


from .http import HttpTransport  # noqa: E402

__all__ = ["LogBatch", "Transport", "HttpTransport"]
