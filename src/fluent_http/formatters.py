"""Body formatters selected by content type."""

from __future__ import annotations

import functools
from abc import ABC, abstractmethod
from typing import Any, Iterable, Iterator

from pydantic import TypeAdapter, ValidationError

from .exceptions import ConfigurationError


def media_type_of(content_type: str) -> str:
    """Strip parameters such as ``charset`` from a content type."""
    return content_type.split(";", 1)[0].strip().lower()


@functools.lru_cache(maxsize=256)
def _adapter(model_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(model_type)


class Formatter(ABC):
    """Serializes request models and deserializes response bodies for a set of media types."""

    media_types: tuple[str, ...] = ()

    @property
    def default_media_type(self) -> str:
        return self.media_types[0]

    def can_handle(self, media_type: str) -> bool:
        return media_type_of(media_type) in self.media_types

    @abstractmethod
    def serialize(self, value: Any) -> bytes:
        """Encode a request model."""

    @abstractmethod
    def deserialize(self, data: bytes, model_type: Any = None, *, encoding: str | None = None) -> Any:
        """Decode a response body, into ``model_type`` when given."""


class JsonFormatter(Formatter):
    media_types = ("application/json", "text/json")

    def can_handle(self, media_type: str) -> bool:
        media_type = media_type_of(media_type)
        return media_type in self.media_types or media_type.endswith("+json")

    def serialize(self, value: Any) -> bytes:
        return _adapter(Any).dump_json(value)

    def deserialize(self, data: bytes, model_type: Any = None, *, encoding: str | None = None) -> Any:
        try:
            return _adapter(Any if model_type is None else model_type).validate_json(data)
        except ValidationError as exc:
            raise ValueError(f"Response body doesn't match {model_type!r}: {exc}") from exc


class PlainTextFormatter(Formatter):
    media_types = ("text/plain",)

    def serialize(self, value: Any) -> bytes:
        if isinstance(value, bytes):
            return value
        return str(value).encode("utf-8")

    def deserialize(self, data: bytes, model_type: Any = None, *, encoding: str | None = None) -> Any:
        if model_type not in (None, str):
            raise ConfigurationError(f"The plain text formatter can't deserialize into {model_type!r}.")
        return data.decode(encoding or "utf-8")


class FormatterCollection:
    """Ordered formatters. The first one is used when no content type is given."""

    def __init__(self, formatters: Iterable[Formatter] | None = None) -> None:
        self._formatters: list[Formatter] = list(formatters) if formatters is not None else []

    @classmethod
    def default(cls) -> FormatterCollection:
        return cls([JsonFormatter(), PlainTextFormatter()])

    def __iter__(self) -> Iterator[Formatter]:
        return iter(self._formatters)

    def __len__(self) -> int:
        return len(self._formatters)

    def add(self, formatter: Formatter) -> None:
        self._formatters.append(formatter)

    def insert(self, index: int, formatter: Formatter) -> None:
        self._formatters.insert(index, formatter)

    def remove(self, formatter: Formatter | type[Formatter]) -> bool:
        for existing in self._formatters:
            if existing is formatter or (isinstance(formatter, type) and isinstance(existing, formatter)):
                self._formatters.remove(existing)
                return True
        return False

    def copy(self) -> FormatterCollection:
        return FormatterCollection(self._formatters)

    def select(self, content_type: str | None = None) -> Formatter:
        if not self._formatters:
            raise ConfigurationError("No formatters are available on the client.")
        if content_type is None:
            return self._formatters[0]
        for formatter in self._formatters:
            if formatter.can_handle(content_type):
                return formatter
        raise ConfigurationError(
            f"No formatters are available on the client for the '{media_type_of(content_type)}' content-type."
        )

    def accept_header(self) -> str:
        seen: list[str] = []
        for formatter in self._formatters:
            for media_type in formatter.media_types:
                if media_type not in seen:
                    seen.append(media_type)
        return ", ".join(seen)
