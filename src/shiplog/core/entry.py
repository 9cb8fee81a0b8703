"""
Log entry construction and the tab-separated line format.

A shipped line has five tab-separated fields::

    <date>\t<time>\t<level>\t<trace-id>\t<content>

``date`` is the local calendar day (``YYYY-MM-DD``), ``time`` the local
time of day with second precision (``HH:MM:SS``). Backslashes and newlines in
the content are escaped so that every entry stays on one line.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .errors import InvalidLogLineError

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M:%S"
FIELD_SEPARATOR = "\t"

_ESCAPE_SEQUENCE = re.compile(r"\\(\\|n)")


def escape_content(content: str) -> str:
    """Escape backslashes first, then newlines."""
    return content.replace("\\", "\\\\").replace("\n", "\\n")


def unescape_content(escaped: str) -> str:
    """Exact inverse of :func:`escape_content`.

    Decodes in a single left-to-right pass. Two chained ``str.replace`` calls
    would turn an escaped literal ``\\n`` (backslash, ``n``) into a newline.
    """
    return _ESCAPE_SEQUENCE.sub(
        lambda m: "\\" if m.group(1) == "\\" else "\n", escaped
    )


def _coerce(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


@dataclass(frozen=True, slots=True)
class LogEntry:
    """A single immutable log record, already escaped for transport."""

    date: str
    time: str
    level: str
    trace_id: str
    content: str

    @classmethod
    def create(
        cls,
        level: Any,
        trace_id: Any,
        content: Any,
        *,
        now: datetime | None = None,
    ) -> LogEntry:
        """Build an entry from raw producer inputs.

        ``None`` values become empty fields and non-string values are
        ``str()``-coerced, so building an entry never fails on odd input.
        """
        ts = now or datetime.now()
        return cls(
            date=ts.strftime(DATE_FORMAT),
            time=ts.strftime(TIME_FORMAT),
            level=_coerce(level),
            trace_id=_coerce(trace_id),
            content=escape_content(_coerce(content)),
        )

    @property
    def line(self) -> str:
        return FIELD_SEPARATOR.join(
            (self.date, self.time, self.level, self.trace_id, self.content)
        )

    @property
    def raw_content(self) -> str:
        return unescape_content(self.content)

    def __str__(self) -> str:
        return self.line


def parse_line(line: str) -> LogEntry:
    """Parse a shipped line back into a :class:`LogEntry`.

    The content is everything after the fourth tab, so tabs inside content
    survive. Raises :class:`InvalidLogLineError` when fewer than five fields
    are present.
    """
    parts = line.split(FIELD_SEPARATOR, 4)
    if len(parts) < 5:
        raise InvalidLogLineError(
            f"Invalid log format: expected 5 fields, got {len(parts)}"
        )
    date, time, level, trace_id, content = parts
    return LogEntry(
        date=date, time=time, level=level, trace_id=trace_id, content=content
    )


__all__ = [
    "LogEntry",
    "escape_content",
    "unescape_content",
    "parse_line",
]
