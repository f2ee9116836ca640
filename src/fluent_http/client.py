"""The asynchronous fluent client."""

from __future__ import annotations

import base64
import os
from typing import Any, Callable, Iterable, Mapping

import httpx

from . import __version__
from .exceptions import ConfigurationError, InvalidOperationError
from .filters import DefaultErrorFilter, FilterChain
from .formatters import FormatterCollection
from .options import ClientOptions
from .query import resolve_url
from .request import Request, RequestMessage
from .retry import RequestCoordinator, RetryCoordinator, RetryPolicy
from .security import validate_base_url
from .transport import HttpxTransport


_UNSET: Any = object()


def _normalize_headers(headers: Mapping[str, str] | None) -> dict[str, str]:
    if not headers:
        return {}
    clean: dict[str, str] = {}
    for key, value in headers.items():
        clean[str(key)] = str(value)
    return clean


class FluentClient:
    """Creates fluent requests against a base URL.

    The client owns the filter chain, formatters, default headers and request
    coordinator; each request gets its own copy of the filter chain and headers
    when it's created, so reconfiguring the client doesn't affect requests
    already built.

    >>> async with FluentClient("https://api.example.com/v1/") as client:
    ...     item = await client.get("items/14").as_model(Item)
    """

    default_timeout = 30.0
    default_user_agent = f"fluent-http/{__version__}"

    def __init__(
        self,
        base_url: str | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | httpx.Timeout | None = default_timeout,
        options: ClientOptions | None = None,
        retry_policy: RetryPolicy | Iterable[RetryPolicy] | None = None,
        request_coordinator: RequestCoordinator | None = None,
        formatters: FormatterCollection | None = None,
        user_agent: str | None = None,
        base_url_env_var: str = "FLUENT_HTTP_BASE_URL",
    ) -> None:
        self.base_url = base_url or os.getenv(base_url_env_var) or None
        if self.base_url is not None:
            validate_base_url(self.base_url)

        self.options = options or ClientOptions()
        if retry_policy is not None and request_coordinator is not None:
            raise ConfigurationError("Pass either retry_policy or request_coordinator, not both.")
        self.coordinator: RequestCoordinator = request_coordinator or RetryCoordinator(retry_policy)
        self.formatters = formatters if formatters is not None else FormatterCollection.default()
        self.filters = FilterChain([DefaultErrorFilter()])
        self._defaults: list[Callable[[Request], Any]] = []

        self.headers = httpx.Headers({"User-Agent": user_agent or self.default_user_agent})
        if headers:
            self.headers.update(_normalize_headers(headers))

        owns_client = http_client is None
        self._transport = HttpxTransport(
            http_client or httpx.AsyncClient(follow_redirects=True, trust_env=False),
            timeout=timeout if owns_client else None,
            owns_client=owns_client,
        )

    @property
    def http_client(self) -> httpx.AsyncClient:
        return self._transport.client

    @property
    def is_closed(self) -> bool:
        return self._transport.is_closed

    async def __aenter__(self) -> "FluentClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Stop sending requests, closing the httpx client if this client created it.

        Requests already built from this client fail with
        :class:`InvalidOperationError` afterwards.
        """
        await self._transport.aclose()

    # Requests

    def send(self, method: str, resource: str | None = "") -> Request:
        if self.is_closed:
            raise InvalidOperationError("The client has been closed, so it can't create requests.")

        headers = self.headers.copy()
        if "Accept" not in headers and len(self.formatters):
            headers["Accept"] = self.formatters.accept_header()
        message = RequestMessage(
            method=method.upper(),
            url=resolve_url(self.base_url, resource),
            headers=headers,
        )
        request = Request(
            message,
            transport=self._transport,
            formatters=self.formatters,
            filters=self.filters.copy(),
            options=self.options.to_request_options(),
            coordinator=self.coordinator,
        )
        for apply_default in self._defaults:
            apply_default(request)
        return request

    def get(self, resource: str | None = "") -> Request:
        return self.send("GET", resource)

    def head(self, resource: str | None = "") -> Request:
        return self.send("HEAD", resource)

    def delete(self, resource: str | None = "") -> Request:
        return self.send("DELETE", resource)

    def post(self, resource: str | None = "", body: Any = _UNSET) -> Request:
        return self._with_optional_body(self.send("POST", resource), body)

    def put(self, resource: str | None = "", body: Any = _UNSET) -> Request:
        return self._with_optional_body(self.send("PUT", resource), body)

    def patch(self, resource: str | None = "", body: Any = _UNSET) -> Request:
        return self._with_optional_body(self.send("PATCH", resource), body)

    # Configuration

    def set_authentication(self, scheme: str, parameter: str) -> "FluentClient":
        self.headers["Authorization"] = f"{scheme} {parameter}"
        return self

    def set_bearer_authentication(self, token: str) -> "FluentClient":
        return self.set_authentication("Bearer", token)

    def set_basic_authentication(self, username: str, password: str) -> "FluentClient":
        credentials = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
        return self.set_authentication("Basic", credentials)

    def set_user_agent(self, user_agent: str) -> "FluentClient":
        self.headers["User-Agent"] = user_agent
        return self

    def set_header(self, key: str, value: str) -> "FluentClient":
        self.headers[key] = value
        return self

    def set_options(
        self,
        options: ClientOptions | None = None,
        *,
        ignore_null_arguments: bool | None = None,
        ignore_http_errors: bool | None = None,
    ) -> "FluentClient":
        current = options or self.options
        self.options = ClientOptions(
            ignore_null_arguments=(
                current.ignore_null_arguments if ignore_null_arguments is None else ignore_null_arguments
            ),
            ignore_http_errors=current.ignore_http_errors if ignore_http_errors is None else ignore_http_errors,
        )
        return self

    def set_retry_policy(self, policy: RetryPolicy | Iterable[RetryPolicy] | None) -> "FluentClient":
        return self.set_request_coordinator(RetryCoordinator(policy))

    def set_request_coordinator(self, coordinator: RequestCoordinator | None) -> "FluentClient":
        """Replace how requests are dispatched; only one coordinator is used at a time."""
        self.coordinator = coordinator or RetryCoordinator()
        return self

    def add_default(self, apply: Callable[[Request], Any]) -> "FluentClient":
        """Register a callback applied to every request this client creates."""
        self._defaults.append(apply)
        return self

    @staticmethod
    def _with_optional_body(request: Request, body: Any) -> Request:
        if body is _UNSET:
            return request
        return request.with_body(body)
