"""
HTTP transport that POSTs log batches to the collector with httpx.

The collector accepts ``POST <endpoint>/api/logs`` with a JSON body
``{"source": <str>, "logs": [<line>, ...]}`` and answers ``200`` on success.
Any other status raises :class:`TransportError` carrying the status code and
the start of the response body; the coordinator reports it and requeues.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Mapping

import httpx

from ..core.errors import TransportError

if TYPE_CHECKING:
    from . import LogBatch

LOGS_PATH = "/api/logs"
_BODY_SNIPPET_CHARS = 256


def logs_url(endpoint: str) -> str:
    return endpoint.rstrip("/") + LOGS_PATH


class HttpTransport:
    """Async HTTP transport backed by a single ``httpx.AsyncClient``.

    The client is created in :meth:`start` so it binds to the event loop that
    runs the coordinator. An injected client is used as-is and left open on
    :meth:`stop`.
    """

    name = "http"

    def __init__(
        self,
        endpoint: str,
        *,
        timeout_seconds: float = 5.0,
        headers: Mapping[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = logs_url(endpoint)
        self._timeout = timeout_seconds
        self._headers = dict(headers or {})
        self._client = client
        self._owns_client = client is None
        self._last_status: int | None = None
        self._last_error: str | None = None

    @property
    def url(self) -> str:
        return self._url

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True

    async def stop(self) -> None:
        client = self._client
        if client is not None and self._owns_client:
            self._client = None
            await client.aclose()

    async def send(self, batch: LogBatch) -> bool:
        if self._client is None:
            await self.start()
        assert self._client is not None
        try:
            resp = await self._client.post(
                self._url, json=batch.model_dump(), headers=self._headers
            )
        except httpx.HTTPError as exc:
            self._last_status = None
            self._last_error = str(exc)
            raise
        self._last_status = resp.status_code
        if resp.status_code != 200:
            message = f"collector returned HTTP {resp.status_code}"
            try:
                body = resp.text[:_BODY_SNIPPET_CHARS]
            except UnicodeDecodeError:
                body = ""
            if body:
                message = f"{message}: {body}"
            self._last_error = f"HTTP {resp.status_code}"
            raise TransportError(message, status_code=resp.status_code)
        self._last_error = None
        return True

    async def health_check(self) -> bool:
        return self._last_error is None and self._last_status == 200


__all__ = ["HttpTransport", "logs_url", "LOGS_PATH"]
