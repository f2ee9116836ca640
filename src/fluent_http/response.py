"""Repeatable read access to a completed HTTP response."""

from __future__ import annotations

import io
from typing import Any

import httpx

from .formatters import FormatterCollection
from .retry import parse_retry_after


class Response:
    """Wraps an ``httpx.Response``.

    The body is read once and buffered, so every ``as_*`` reader can be
    called any number of times and in any combination.
    """

    def __init__(self, message: httpx.Response, formatters: FormatterCollection) -> None:
        self.message = message
        self.formatters = formatters
        self._content: bytes | None = None

    def __repr__(self) -> str:
        return f"<Response [{self.status_code} {self.reason_phrase}]>"

    @property
    def status_code(self) -> int:
        return self.message.status_code

    @property
    def is_success(self) -> bool:
        return self.message.is_success

    @property
    def reason_phrase(self) -> str:
        return self.message.reason_phrase

    @property
    def headers(self) -> httpx.Headers:
        return self.message.headers

    @property
    def content_type(self) -> str | None:
        return self.message.headers.get("content-type")

    @property
    def retry_after(self) -> float | None:
        return parse_retry_after(self.message.headers.get("Retry-After"))

    async def as_bytes(self) -> bytes:
        if self._content is None:
            self._content = await self.message.aread()
        return self._content

    async def as_string(self) -> str:
        content = await self.as_bytes()
        return content.decode(self.message.encoding or "utf-8", errors="replace")

    async def as_stream(self) -> io.BytesIO:
        """Return a new seekable stream over the buffered body."""
        return io.BytesIO(await self.as_bytes())

    async def as_json(self) -> Any:
        """Parse the body as JSON without binding it to a model."""
        return self.formatters.select("application/json").deserialize(await self.as_bytes())

    async def as_model(self, model_type: Any) -> Any:
        """Deserialize the body into ``model_type`` with the formatter matching the response content type."""
        formatter = self.formatters.select(self.content_type)
        content = await self.as_bytes()
        return formatter.deserialize(content, model_type, encoding=self.message.charset_encoding)

    async def as_list(self, model_type: Any) -> list[Any]:
        return await self.as_model(list[model_type])
