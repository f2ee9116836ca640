"""The transport performing a single HTTP attempt."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

import httpx

from .exceptions import TransportFailure, TransportTimeout

if TYPE_CHECKING:
    from .request import RequestMessage


logger = logging.getLogger(__name__)


class Transport(Protocol):
    @property
    def is_closed(self) -> bool: ...

    async def dispatch(self, message: RequestMessage) -> httpx.Response: ...

    async def aclose(self) -> None: ...


class HttpxTransport:
    """Sends requests through an ``httpx.AsyncClient``.

    A fresh ``httpx.Request`` is built from the message on every attempt,
    so bodies are re-materialized for retries and resubmits.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        timeout: float | httpx.Timeout | None = None,
        owns_client: bool = False,
    ) -> None:
        self._client = client
        self._timeout = timeout
        self._owns_client = owns_client
        self._closed = False

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    @property
    def is_closed(self) -> bool:
        return self._closed or self._client.is_closed

    def build_request(self, message: RequestMessage) -> httpx.Request:
        content = message.body.materialize() if message.body is not None else None
        kwargs = {}
        if self._timeout is not None:
            kwargs["timeout"] = self._timeout
        return self._client.build_request(
            message.method,
            message.url,
            headers=message.headers.copy(),
            content=content,
            **kwargs,
        )

    async def dispatch(self, message: RequestMessage) -> httpx.Response:
        http_request = self.build_request(message)
        logger.debug("Dispatching %s %s", http_request.method, http_request.url)
        try:
            return await self._client.send(http_request)
        except httpx.TimeoutException as exc:
            raise TransportTimeout("Request timed out", cause=exc) from exc
        except httpx.TransportError as exc:
            raise TransportFailure(f"Network error: {exc}", cause=exc) from exc

    async def aclose(self) -> None:
        """Stop accepting requests. A borrowed httpx client is left open for its owner."""
        self._closed = True
        if self._owns_client:
            await self._client.aclose()
