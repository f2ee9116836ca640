"""A fluent, asynchronous HTTP client with filters and retry policies."""

__version__ = "0.1.0"

from .body import BodyBuilder, RequestBody
from .cancellation import CancellationToken
from .client import FluentClient
from .exceptions import (
    ApiError,
    CancellationFailure,
    ConfigurationError,
    FluentHttpError,
    InvalidOperationError,
    TransportFailure,
    TransportTimeout,
)
from .filters import DefaultErrorFilter, FilterChain, HttpFilter, LoggingFilter
from .formatters import Formatter, FormatterCollection, JsonFormatter, PlainTextFormatter
from .options import ClientOptions, RequestOptions
from .query import resolve_url, to_key_value_pairs, with_arguments
from .request import Request, RequestMessage
from .response import Response
from .retry import (
    RequestCoordinator,
    RetryCoordinator,
    RetryPolicy,
    exponential_backoff,
    is_transient,
    parse_retry_after,
)

__all__ = [
    "__version__",
    "ApiError",
    "BodyBuilder",
    "CancellationFailure",
    "CancellationToken",
    "ClientOptions",
    "ConfigurationError",
    "DefaultErrorFilter",
    "FilterChain",
    "FluentClient",
    "FluentHttpError",
    "Formatter",
    "FormatterCollection",
    "HttpFilter",
    "InvalidOperationError",
    "JsonFormatter",
    "LoggingFilter",
    "PlainTextFormatter",
    "Request",
    "RequestBody",
    "RequestCoordinator",
    "RequestMessage",
    "RequestOptions",
    "Response",
    "RetryCoordinator",
    "RetryPolicy",
    "TransportFailure",
    "TransportTimeout",
    "exponential_backoff",
    "is_transient",
    "parse_retry_after",
    "resolve_url",
    "to_key_value_pairs",
    "with_arguments",
]
