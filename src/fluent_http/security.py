"""Redaction for logs and base URL validation."""

from __future__ import annotations

from typing import Mapping
from urllib.parse import urlparse, urlsplit, urlunsplit

from .exceptions import ConfigurationError


REDACTED = "[REDACTED]"

SENSITIVE_HEADERS = {
    "authorization",
    "proxy-authorization",
    "cookie",
    "set-cookie",
    "x-api-key",
}


def sanitize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Return headers with sensitive values redacted for logging."""
    return {key: REDACTED if key.lower() in SENSITIVE_HEADERS else value for key, value in headers.items()}


def redact_url(url: str) -> str:
    """Return ``url`` with every query argument value redacted for logging.

    Keys are kept so the log still shows which arguments were sent.
    """
    parts = urlsplit(url)
    if not parts.query:
        return url
    keys = (pair.partition("=")[0] for pair in parts.query.split("&") if pair)
    return urlunsplit(parts._replace(query="&".join(f"{key}={REDACTED}" for key in keys)))


def validate_base_url(url: str) -> None:
    """Validate that a base URL is an absolute http(s) URL."""
    if "\x00" in url:
        raise ConfigurationError("Invalid base_url")
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise ConfigurationError("base_url must include scheme and host")
    if parsed.scheme not in {"http", "https"}:
        raise ConfigurationError(f"Unsupported base_url scheme: {parsed.scheme}")
