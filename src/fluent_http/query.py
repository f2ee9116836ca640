"""URL resolution and query string merging."""

from __future__ import annotations

import dataclasses
from datetime import date, datetime
from typing import Any, Iterable, Mapping
from urllib.parse import quote_plus, urljoin, urlsplit

from pydantic import BaseModel

from .exceptions import ConfigurationError


Argument = tuple[str, Any]


def quote_component(value: str) -> str:
    return quote_plus(value, safe="")


def format_value(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def with_arguments(
    url: str,
    arguments: Iterable[Argument],
    ignore_null_arguments: bool = True,
) -> str:
    """Append query arguments to a URL.

    Keys and values are form-encoded. Duplicate keys are kept in order. A
    ``None`` value is dropped when ``ignore_null_arguments`` is set, otherwise
    it's written as ``key=`` after the arguments that have values. List and
    tuple values expand into one argument per item. An existing fragment stays
    at the end of the URL.
    """
    present: list[str] = []
    missing: list[str] = []
    for key, value in arguments:
        encoded_key = quote_component(str(key))
        if value is None:
            if not ignore_null_arguments:
                missing.append(f"{encoded_key}=")
            continue
        if isinstance(value, (list, tuple)):
            for item in value:
                item_value = "" if item is None else quote_component(format_value(item))
                present.append(f"{encoded_key}={item_value}")
            continue
        present.append(f"{encoded_key}={quote_component(format_value(value))}")

    addition = "&".join(present + missing)
    if not addition.strip():
        return url

    head, hash_mark, fragment = url.partition("#")
    _, question_mark, query = head.partition("?")
    if query:
        head = f"{head}&{addition}"
    elif question_mark:
        head = f"{head}{addition}"
    else:
        head = f"{head}?{addition}"
    return f"{head}{hash_mark}{fragment}"


def is_absolute_url(url: str) -> bool:
    parts = urlsplit(url)
    return bool(parts.scheme and parts.netloc)


def resolve_url(base_url: str | None, resource: str | None) -> str:
    """Combine a base URL with a resource.

    A blank resource yields the base URL unchanged, and an absolute resource
    replaces it. A resource starting with ``?``, ``&`` or ``#`` extends the
    base URL's query or fragment textually. Anything else is resolved
    relative to the base URL.
    """
    resource = resource or ""
    if not resource.strip():
        if base_url is None:
            raise ConfigurationError("A resource URL is required when the client has no base URL.")
        return base_url

    if is_absolute_url(resource):
        return resource

    if base_url is None:
        raise ConfigurationError(
            f"Can't resolve the relative resource '{resource}' because the client has no base URL."
        )

    if resource[0] in "?&#":
        return f"{base_url}{resource}"
    return urljoin(base_url, resource)


def to_key_value_pairs(arguments: Any) -> list[Argument]:
    """Convert a pair list, mapping, dataclass, pydantic model or plain object into ordered pairs.

    Pairs whose key is ``None`` or blank are skipped.
    """
    if arguments is None:
        return []

    items: Iterable[Any]
    if isinstance(arguments, BaseModel):
        items = arguments.model_dump().items()
    elif isinstance(arguments, Mapping):
        items = arguments.items()
    elif dataclasses.is_dataclass(arguments) and not isinstance(arguments, type):
        items = ((field.name, getattr(arguments, field.name)) for field in dataclasses.fields(arguments))
    elif isinstance(arguments, (str, bytes)):
        raise TypeError("Query arguments must be pairs, a mapping or an object, not a string")
    elif isinstance(arguments, Iterable):
        items = arguments
    else:
        try:
            attributes = vars(arguments)
        except TypeError:
            raise TypeError(f"Can't read query arguments from {type(arguments).__name__}") from None
        items = ((name, value) for name, value in attributes.items() if not name.startswith("_"))

    pairs: list[Argument] = []
    for item in items:
        key, value = item
        if key is None:
            continue
        key = str(key)
        if not key.strip():
            continue
        pairs.append((key, value))
    return pairs
