"""Per-request and client-wide options."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RequestOptions:
    """Options for a single request.

    Fields left as ``None`` don't override the current value when merged.
    """

    ignore_null_arguments: bool | None = None
    ignore_http_errors: bool | None = None

    def merge(self, other: RequestOptions | None) -> RequestOptions:
        if other is None:
            return self
        return RequestOptions(
            ignore_null_arguments=(
                other.ignore_null_arguments
                if other.ignore_null_arguments is not None
                else self.ignore_null_arguments
            ),
            ignore_http_errors=(
                other.ignore_http_errors
                if other.ignore_http_errors is not None
                else self.ignore_http_errors
            ),
        )

    @property
    def should_ignore_null_arguments(self) -> bool:
        return True if self.ignore_null_arguments is None else self.ignore_null_arguments

    @property
    def should_ignore_http_errors(self) -> bool:
        return False if self.ignore_http_errors is None else self.ignore_http_errors


@dataclass(frozen=True)
class ClientOptions:
    """Defaults copied into every request created by a client."""

    ignore_null_arguments: bool = True
    ignore_http_errors: bool = False

    def to_request_options(self) -> RequestOptions:
        return RequestOptions(
            ignore_null_arguments=self.ignore_null_arguments,
            ignore_http_errors=self.ignore_http_errors,
        )
