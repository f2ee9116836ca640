"""Request bodies and the builder handed to ``Request.with_body``."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any, Callable, Iterable, Mapping, Union

import httpx

from .formatters import FormatterCollection
from .options import RequestOptions
from .query import format_value, quote_component, to_key_value_pairs


BodyContent = Union[bytes, str, Callable[[], Any]]
FileSource = Union[str, os.PathLike, bytes, IO[bytes]]


@dataclass(frozen=True)
class RequestBody:
    """A replayable request body.

    ``content`` is either materialized (``bytes``/``str``) or a zero-argument
    factory called once per attempt, which may return bytes, a string or a
    fresh (async) iterator of byte chunks.
    """

    content: BodyContent
    content_type: str | None = None

    def materialize(self) -> Any:
        if callable(self.content):
            return self.content()
        return self.content


class BodyBuilder:
    def __init__(self, formatters: FormatterCollection, options: RequestOptions) -> None:
        self._formatters = formatters
        self._options = options

    def form_url_encoded(self, arguments: Any) -> RequestBody:
        ignore_null = self._options.should_ignore_null_arguments
        pairs = [
            f"{quote_component(key)}={'' if value is None else quote_component(format_value(value))}"
            for key, value in to_key_value_pairs(arguments)
            if value is not None or not ignore_null
        ]
        return RequestBody("&".join(pairs).encode("utf-8"), "application/x-www-form-urlencoded")

    def file_upload(self, files: FileSource | Iterable[FileSource] | Mapping[str, FileSource]) -> RequestBody:
        """Build a multipart body with one part per file, named after the file.

        Files are read into memory here so the body can be sent more than once.
        """
        parts = [(name, (name, data)) for name, data in _read_files(files)]
        encoded = httpx.Request("POST", "http://localhost/", files=parts)
        encoded.read()
        return RequestBody(encoded.content, encoded.headers["Content-Type"])

    def model(self, value: Any, content_type: str | None = None) -> RequestBody:
        formatter = self._formatters.select(content_type)
        return RequestBody(formatter.serialize(value), content_type or formatter.default_media_type)

    def text(self, value: str, content_type: str = "text/plain; charset=utf-8") -> RequestBody:
        return RequestBody(value.encode("utf-8"), content_type)

    def stream(self, factory: Callable[[], Any], content_type: str | None = None) -> RequestBody:
        return RequestBody(factory, content_type)


def _read_files(files: Any) -> list[tuple[str, bytes]]:
    if isinstance(files, (str, os.PathLike)):
        return [_read_path(files)]
    if isinstance(files, Mapping):
        return [(str(name), _read_source(source)) for name, source in files.items()]
    return [_read_path(path) for path in files]


def _read_path(path: str | os.PathLike) -> tuple[str, bytes]:
    file_path = Path(path)
    if not file_path.is_file():
        raise FileNotFoundError(f"There's no file matching path '{file_path}'.")
    return file_path.name, file_path.read_bytes()


def _read_source(source: FileSource) -> bytes:
    if isinstance(source, bytes):
        return source
    if isinstance(source, (str, os.PathLike)):
        return _read_path(source)[1]
    return source.read()
