from __future__ import annotations

from datetime import datetime

import pytest

from shiplog.core.entry import (
    LogEntry,
    escape_content,
    parse_line,
    unescape_content,
)
from shiplog.core.errors import InvalidLogLineError

NOW = datetime(2024, 3, 9, 7, 5, 3, 987654)


def test_create_formats_date_and_time_to_the_second() -> None:
    entry = LogEntry.create("INFO", "trace-1", "hello", now=NOW)

    assert entry.date == "2024-03-09"
    assert entry.time == "07:05:03"
    assert entry.line == "2024-03-09\t07:05:03\tINFO\ttrace-1\thello"


def test_missing_trace_id_is_an_empty_field() -> None:
    entry = LogEntry.create("WARN", None, "no trace", now=NOW)

    assert entry.trace_id == ""
    assert entry.line.split("\t") == [
        "2024-03-09",
        "07:05:03",
        "WARN",
        "",
        "no trace",
    ]


def test_none_and_non_string_inputs_are_coerced() -> None:
    entry = LogEntry.create(None, 42, None, now=NOW)

    assert entry.level == ""
    assert entry.trace_id == "42"
    assert entry.content == ""


def test_content_with_newlines_stays_on_one_line() -> None:
    entry = LogEntry.create("ERROR", "", "line one\nline two", now=NOW)

    assert "\n" not in entry.line
    assert entry.content == "line one\\nline two"
    assert entry.raw_content == "line one\nline two"


def test_backslashes_are_escaped_before_newlines() -> None:
    assert escape_content("C:\\temp\n") == "C:\\\\temp\\n"


def test_literal_backslash_n_is_not_decoded_as_newline() -> None:
    original = "path\\name"  # backslash followed by "n"
    escaped = escape_content(original)

    assert escaped == "path\\\\name"
    assert unescape_content(escaped) == original


def test_entry_is_immutable() -> None:
    entry = LogEntry.create("INFO", "", "x", now=NOW)

    with pytest.raises(AttributeError):
        entry.level = "DEBUG"  # type: ignore[misc]


def test_parse_line_round_trips_entry() -> None:
    entry = LogEntry.create("DEBUG", "abc", "multi\nline \\ content", now=NOW)

    assert parse_line(entry.line) == entry


def test_parse_line_keeps_tabs_inside_content() -> None:
    entry = parse_line("2024-03-09\t07:05:03\tINFO\t\tcol1\tcol2")

    assert entry.trace_id == ""
    assert entry.content == "col1\tcol2"


def test_parse_line_rejects_short_lines() -> None:
    with pytest.raises(InvalidLogLineError, match="expected 5 fields"):
        parse_line("2024-03-09\t07:05:03\tINFO")


def test_str_is_the_wire_line() -> None:
    entry = LogEntry.create("INFO", "t", "c", now=NOW)

    assert str(entry) == entry.line
