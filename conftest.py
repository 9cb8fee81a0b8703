"""
Root pytest configuration.
"""

from __future__ import annotations

import os
from collections.abc import Generator

import pytest


def get_test_timeout(base: float, max_multiplier: float = 5.0) -> float:
    """Apply CI timeout multiplier to a base timeout value.

    Args:
        base: Base timeout in seconds
        max_multiplier: Maximum allowed multiplier (default 5x)

    Returns:
        Scaled timeout value

    Environment:
        CI_TIMEOUT_MULTIPLIER: Multiplier for CI environments (default: 1.0)

    Note:
        Reads env var on each call to support per-test monkeypatching.
    """
    raw = os.getenv("CI_TIMEOUT_MULTIPLIER", "1.0")
    try:
        multiplier = float(raw) if raw else 1.0
        multiplier = min(multiplier, max_multiplier)
    except ValueError:
        multiplier = 1.0
    return base * multiplier


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line(
        "markers",
        "critical: Tests that must never fail - core functionality",
    )
    config.addinivalue_line(
        "markers",
        "integration: Tests exercising the full shipper with an HTTP stack",
    )
    config.addinivalue_line(
        "markers",
        "slow: Tests that take >1 second",
    )
    config.addinivalue_line(
        "markers",
        "property: Property-based tests (may be slow)",
    )


@pytest.fixture(autouse=True)
def reset_diagnostics_cache() -> Generator[None, None, None]:
    """Reset the diagnostics gate before and after each test.

    The diagnostics module caches ``internal_logging_enabled`` on first use
    and shippers built with explicit settings override it, so every test
    starts from a fresh read.
    """
    import shiplog.core.diagnostics as diag

    diag._internal_logging_enabled = None
    yield
    diag._internal_logging_enabled = None


@pytest.fixture(autouse=True)
def isolate_shiplog_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer ``SHIPLOG_*`` variables from leaking into tests."""
    for key in list(os.environ):
        if key.upper().startswith("SHIPLOG_"):
            monkeypatch.delenv(key, raising=False)
