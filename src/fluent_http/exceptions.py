"""Exceptions raised by the fluent HTTP client."""

from __future__ import annotations

from typing import TYPE_CHECKING, Mapping

if TYPE_CHECKING:
    from .response import Response


class FluentHttpError(Exception):
    """Base exception for all fluent HTTP client failures."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        headers: Mapping[str, str] | None = None,
        request_id: str | None = None,
        retry_after: float | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.headers = dict(headers) if headers is not None else {}
        self.request_id = request_id
        self.retry_after = retry_after
        self.cause = cause

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        if self.status_code is None:
            return str(self.args[0])
        return f"{self.status_code}: {self.args[0]}"


class ConfigurationError(FluentHttpError):
    """Raised when the client or a request is misconfigured."""


class InvalidOperationError(ConfigurationError):
    """Raised when an operation is not valid in the current state, e.g. on a closed client."""


class ApiError(FluentHttpError):
    """Raised for a final HTTP response outside the 2xx range.

    The response is buffered, so it can still be read through
    ``await error.response.as_string()`` and friends.
    """

    def __init__(self, response: "Response", message: str) -> None:
        headers = response.headers
        super().__init__(
            message,
            status_code=response.status_code,
            headers=headers,
            request_id=headers.get("x-request-id"),
            retry_after=response.retry_after,
        )
        self.response = response
        self.reason_phrase = response.reason_phrase


class TransportFailure(FluentHttpError):
    """Raised for transport-level failures like DNS and TCP errors."""


class TransportTimeout(TransportFailure):
    """Raised when a single attempt exceeds the configured timeout."""


class CancellationFailure(FluentHttpError):
    """Raised when the caller cancels a request through its cancellation token."""
