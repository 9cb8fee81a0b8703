"""
Configuration models for shiplog using Pydantic v2 Settings.

Values can come from constructor arguments, ``Settings(...)`` keyword
arguments or environment variables prefixed with ``SHIPLOG_`` (nested groups
use ``__``, e.g. ``SHIPLOG_CORE__BATCH_THRESHOLD=10``).
"""

from __future__ import annotations

from typing import Mapping

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (  # type: ignore[import-not-found]
    BaseSettings,
    SettingsConfigDict,
)

DEFAULT_SOURCE = "python-app"
DEFAULT_FLUSH_INTERVAL_SECONDS = 5.0


class CoreSettings(BaseModel):
    """Buffering, batching and lifecycle settings."""

    source: str = Field(
        default=DEFAULT_SOURCE,
        description="Source identifier sent with every batch",
    )
    batch_threshold: int = Field(
        default=1,
        ge=1,
        description="Number of buffered entries that triggers a flush",
    )
    flush_interval_seconds: float = Field(
        default=DEFAULT_FLUSH_INTERVAL_SECONDS,
        gt=0.0,
        description="Period of the auto-flush timer",
    )
    max_buffer_size: int | None = Field(
        default=10_000,
        ge=1,
        description=(
            "Maximum buffered entries; the oldest are evicted when full. "
            "None keeps the buffer unbounded"
        ),
    )
    enable_metrics: bool = Field(
        default=False,
        description="Enable Prometheus-compatible metrics",
    )
    internal_logging_enabled: bool = Field(
        default=True,
        description="Emit diagnostics for failed deliveries and shutdown leftovers",
    )
    atexit_drain_enabled: bool = Field(
        default=True,
        description="Flush open shippers when the interpreter exits",
    )
    atexit_drain_timeout_seconds: float = Field(
        default=2.0,
        gt=0.0,
        description="Maximum time spent draining each shipper at exit",
    )

    @field_validator("source", mode="before")
    @classmethod
    def _default_blank_source(cls, value: str | None) -> str:
        if value is None:
            return DEFAULT_SOURCE
        value = str(value).strip()
        return value or DEFAULT_SOURCE


class HttpSettings(BaseModel):
    """Collector endpoint and HTTP client settings."""

    endpoint: str = Field(
        default="http://localhost:3000",
        description="Collector base address; batches go to <endpoint>/api/logs",
    )
    timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Per-request timeout",
    )
    headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("endpoint")
    @classmethod
    def _ensure_endpoint_non_empty(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("endpoint must not be empty")
        return value

    @field_validator("headers", mode="before")
    @classmethod
    def _coerce_headers(cls, value: Mapping[str, str] | None) -> dict[str, str]:
        if value is None:
            return {}
        return dict(value)


class Settings(BaseSettings):
    """Top-level configuration model."""

    core: CoreSettings = Field(default_factory=CoreSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)

    model_config = SettingsConfigDict(
        env_prefix="SHIPLOG_",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )


__all__ = [
    "CoreSettings",
    "HttpSettings",
    "Settings",
    "DEFAULT_SOURCE",
    "DEFAULT_FLUSH_INTERVAL_SECONDS",
]
