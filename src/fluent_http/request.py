"""The fluent request builder and its execution pipeline."""

from __future__ import annotations

import base64
import copy
import dataclasses
import io
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Generator, Iterable

import httpx

from .body import BodyBuilder, RequestBody
from .cancellation import CancellationToken
from .exceptions import InvalidOperationError
from .filters import FilterChain, HttpFilter
from .formatters import FormatterCollection
from .options import RequestOptions
from .query import to_key_value_pairs, with_arguments
from .response import Response
from .retry import RequestCoordinator, RetryCoordinator, RetryPolicy
from .transport import Transport


logger = logging.getLogger(__name__)


@dataclass
class RequestMessage:
    """The mutable HTTP request state filters and ``with_custom`` operate on."""

    method: str
    url: str
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: RequestBody | None = None


class Request:
    """Builds an HTTP request and dispatches it when awaited.

    Every ``await`` (or :meth:`execute` call) runs the whole pipeline again:
    request filters, the coordinator around the transport, then response
    filters. Each execution works on its own copy of the message and filter
    chain, so filter changes never carry over and concurrent executions
    don't share state. Nothing is memoized between executions.

    >>> response = await client.get("items").with_argument("page", 2)
    >>> items = await client.get("items").as_list(Item)
    """

    def __init__(
        self,
        message: RequestMessage,
        *,
        transport: Transport,
        formatters: FormatterCollection,
        filters: FilterChain,
        options: RequestOptions | None = None,
        coordinator: RequestCoordinator | None = None,
    ) -> None:
        self.message = message
        self.transport = transport
        self.formatters = formatters
        self.filters = filters
        self.options = options or RequestOptions()
        self.coordinator = coordinator
        self.cancellation: CancellationToken | None = None

    def __repr__(self) -> str:
        return f"<Request [{self.message.method} {self.message.url}]>"

    def __await__(self) -> Generator[Any, None, Response]:
        return self.execute().__await__()

    # Build request

    def with_header(self, key: str, value: str | None) -> Request:
        if value is not None:
            self.message.headers = httpx.Headers([*self.message.headers.multi_items(), (key, value)])
        return self

    def with_authentication(self, scheme: str, parameter: str) -> Request:
        self.message.headers["Authorization"] = f"{scheme} {parameter}"
        return self

    def with_bearer_authentication(self, token: str) -> Request:
        return self.with_authentication("Bearer", token)

    def with_basic_authentication(self, username: str, password: str) -> Request:
        credentials = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
        return self.with_authentication("Basic", credentials)

    def with_argument(self, key: str, value: Any) -> Request:
        return self._add_arguments([(key, value)])

    def with_arguments(self, arguments: Any) -> Request:
        """Add query arguments from pairs, a mapping, a dataclass, a pydantic model or a plain object."""
        return self._add_arguments(to_key_value_pairs(arguments))

    def with_body(self, body: Any, *, content_type: str | None = None) -> Request:
        """Set the request body.

        ``body`` may be a callable receiving a :class:`BodyBuilder`, a
        :class:`RequestBody`, raw ``bytes``, or a model serialized with the
        formatter matching ``content_type``. ``None`` clears the body.
        """
        if body is None or isinstance(body, RequestBody):
            request_body = body
        elif isinstance(body, bytes):
            request_body = RequestBody(body, content_type or "application/octet-stream")
        elif callable(body) and not isinstance(body, type):
            request_body = body(BodyBuilder(self.formatters, self.options))
            if isinstance(request_body, (bytes, str)):
                request_body = RequestBody(request_body, content_type)
        else:
            request_body = BodyBuilder(self.formatters, self.options).model(body, content_type)

        self.message.body = request_body
        if request_body is None:
            self.message.headers.pop("Content-Type", None)
        elif request_body.content_type:
            self.message.headers["Content-Type"] = request_body.content_type
        return self

    def with_custom(self, mutator: Callable[[RequestMessage], Any]) -> Request:
        mutator(self.message)
        return self

    def with_cancellation(self, token: CancellationToken | None) -> Request:
        self.cancellation = token
        return self

    def with_options(
        self,
        options: RequestOptions | None = None,
        *,
        ignore_null_arguments: bool | None = None,
        ignore_http_errors: bool | None = None,
    ) -> Request:
        self.options = self.options.merge(options).merge(
            RequestOptions(ignore_null_arguments=ignore_null_arguments, ignore_http_errors=ignore_http_errors)
        )
        return self

    def with_retry_policy(self, policy: RetryPolicy | Iterable[RetryPolicy] | None) -> Request:
        """Retry with one or more policies; the first whose predicate matches an outcome applies."""
        return self.with_request_coordinator(RetryCoordinator(policy))

    def with_request_coordinator(self, coordinator: RequestCoordinator | None) -> Request:
        self.coordinator = coordinator
        return self

    def with_filter(self, http_filter: HttpFilter, remove_existing: bool = True) -> Request:
        self.filters.add(http_filter, remove_existing=remove_existing)
        return self

    def without_filter(self, http_filter: HttpFilter | type[HttpFilter]) -> Request:
        self.filters.remove(http_filter)
        return self

    # Retrieve response

    async def execute(self) -> Response:
        if self.transport.is_closed:
            raise InvalidOperationError("The client has been closed, so it can't send requests.")

        execution = self._snapshot()
        method = execution.message.method
        await execution.filters.run_before(execution)
        message = execution.message
        if message.method != method:
            raise InvalidOperationError(
                f"Request filters can't change the HTTP method (changed from {method} to {message.method})."
            )

        coordinator = execution.coordinator or RetryCoordinator()
        raw = await coordinator.execute(lambda: self.transport.dispatch(message), execution.cancellation)
        logger.debug("%s %s completed with HTTP %d", method, message.url, raw.status_code)

        response = Response(raw, self.formatters)
        await execution.filters.run_after(response, not execution.options.should_ignore_http_errors)
        return response

    async def as_response(self) -> Response:
        return await self.execute()

    async def as_message(self) -> httpx.Response:
        return (await self.execute()).message

    async def as_bytes(self) -> bytes:
        return await (await self.execute()).as_bytes()

    async def as_string(self) -> str:
        return await (await self.execute()).as_string()

    async def as_stream(self) -> io.BytesIO:
        return await (await self.execute()).as_stream()

    async def as_json(self) -> Any:
        return await (await self.execute()).as_json()

    async def as_model(self, model_type: Any) -> Any:
        return await (await self.execute()).as_model(model_type)

    async def as_list(self, model_type: Any) -> list[Any]:
        return await (await self.execute()).as_list(model_type)

    def _snapshot(self) -> Request:
        execution = copy.copy(self)
        execution.message = dataclasses.replace(self.message, headers=self.message.headers.copy())
        execution.filters = self.filters.copy()
        return execution

    def _add_arguments(self, arguments: list[tuple[str, Any]]) -> Request:
        self.message.url = with_arguments(
            self.message.url,
            arguments,
            self.options.should_ignore_null_arguments,
        )
        return self
