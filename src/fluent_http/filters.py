"""Middleware which can intercept and modify requests and responses."""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any, Iterable, Iterator

from .exceptions import ApiError
from .security import redact_url, sanitize_headers

if TYPE_CHECKING:
    from .request import Request
    from .response import Response


_logger = logging.getLogger(__name__)


class HttpFilter:
    """Base class for HTTP filters.

    Either hook may be a plain method or a coroutine function.
    """

    def on_request(self, request: Request) -> Any:
        """Called before the request is dispatched. May modify ``request.message``."""
        return None

    def on_response(self, response: Response, http_error_as_exception: bool) -> Any:
        """Called after the final response is received."""
        return None


class DefaultErrorFilter(HttpFilter):
    """Raises :class:`ApiError` for responses outside the 2xx range."""

    def on_response(self, response: Response, http_error_as_exception: bool) -> None:
        if http_error_as_exception and not response.is_success:
            raise ApiError(
                response,
                f"The API query failed with status code {response.status_code}: {response.reason_phrase}",
            )


class LoggingFilter(HttpFilter):
    """Logs outgoing requests and incoming responses, with credentials and query values redacted."""

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.DEBUG) -> None:
        self.logger = logger or _logger
        self.level = level

    def on_request(self, request: Request) -> None:
        message = request.message
        self.logger.log(
            self.level,
            "Request: %s %s headers=%s",
            message.method,
            redact_url(message.url),
            sanitize_headers(message.headers),
        )

    def on_response(self, response: Response, http_error_as_exception: bool) -> None:
        self.logger.log(self.level, "Response: %s %s", response.status_code, response.reason_phrase)


async def _invoke(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


class FilterChain:
    """Ordered filters, run in registration order for both hooks.

    Modifying a chain while requests created from it are in flight is not
    supported; clients hand each request its own copy.
    """

    def __init__(self, filters: Iterable[HttpFilter] | None = None) -> None:
        self._filters: list[HttpFilter] = list(filters) if filters is not None else []

    def __iter__(self) -> Iterator[HttpFilter]:
        return iter(self._filters)

    def __len__(self) -> int:
        return len(self._filters)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, type):
            return any(isinstance(existing, item) for existing in self._filters)
        return item in self._filters

    def __repr__(self) -> str:
        return f"FilterChain({self._filters!r})"

    def add(self, http_filter: HttpFilter, remove_existing: bool = False) -> None:
        """Append a filter, optionally removing filters of the same type first."""
        if remove_existing:
            while self.remove(type(http_filter)):
                pass
        self._filters.append(http_filter)

    def remove(self, http_filter: HttpFilter | type[HttpFilter]) -> bool:
        """Remove the first filter matching an instance or a type."""
        for existing in self._filters:
            if existing is http_filter or (isinstance(http_filter, type) and isinstance(existing, http_filter)):
                self._filters.remove(existing)
                return True
        return False

    def clear(self) -> None:
        self._filters.clear()

    def copy(self) -> FilterChain:
        return FilterChain(self._filters)

    async def run_before(self, request: Request) -> None:
        for http_filter in list(self._filters):
            await _invoke(http_filter.on_request(request))

    async def run_after(self, response: Response, http_error_as_exception: bool) -> None:
        for http_filter in list(self._filters):
            await _invoke(http_filter.on_response(response, http_error_as_exception))
