from __future__ import annotations

import pytest
from pydantic import BaseModel

from fluent_http import ConfigurationError, Formatter, FormatterCollection, JsonFormatter, PlainTextFormatter
from fluent_http.body import BodyBuilder, RequestBody
from fluent_http.options import RequestOptions


class Point(BaseModel):
    x: int
    y: int


def test_select_defaults_to_first_formatter() -> None:
    formatters = FormatterCollection.default()

    assert isinstance(formatters.select(), JsonFormatter)
    assert isinstance(formatters.select("text/plain; charset=utf-8"), PlainTextFormatter)
    assert isinstance(formatters.select("application/vnd.api+json"), JsonFormatter)


def test_select_without_formatters_fails() -> None:
    with pytest.raises(ConfigurationError, match="No formatters"):
        FormatterCollection().select()


def test_select_unknown_content_type_fails() -> None:
    with pytest.raises(ConfigurationError, match="'image/png' content-type"):
        FormatterCollection.default().select("image/png")


def test_accept_header_lists_media_types_in_order() -> None:
    assert FormatterCollection.default().accept_header() == "application/json, text/json, text/plain"


def test_collection_can_be_reordered() -> None:
    formatters = FormatterCollection.default()
    formatters.remove(PlainTextFormatter)
    formatters.insert(0, PlainTextFormatter())

    assert [type(f) for f in formatters] == [PlainTextFormatter, JsonFormatter]


def test_json_formatter_round_trips_models() -> None:
    formatter = JsonFormatter()

    assert formatter.serialize(Point(x=1, y=2)) == b'{"x":1,"y":2}'
    assert formatter.deserialize(b'{"x": 3, "y": 4}', Point) == Point(x=3, y=4)
    assert formatter.deserialize(b"[1, 2]") == [1, 2]


def test_plain_text_formatter_only_produces_strings() -> None:
    formatter = PlainTextFormatter()

    assert formatter.deserialize("café".encode("latin-1"), encoding="latin-1") == "café"
    with pytest.raises(ConfigurationError):
        formatter.deserialize(b"1", int)


def test_form_url_encoded_body_respects_null_option() -> None:
    formatters = FormatterCollection.default()

    dropped = BodyBuilder(formatters, RequestOptions()).form_url_encoded({"a": "x y", "b": None})
    kept = BodyBuilder(formatters, RequestOptions(ignore_null_arguments=False)).form_url_encoded(
        [("a", "x y"), ("b", None)]
    )

    assert dropped.content == b"a=x+y"
    assert kept.content == b"a=x+y&b="


def test_body_factory_is_called_per_materialization() -> None:
    calls: list[int] = []

    def factory() -> bytes:
        calls.append(1)
        return b"chunk"

    body = RequestBody(factory, "application/octet-stream")

    assert body.materialize() == b"chunk"
    assert body.materialize() == b"chunk"
    assert len(calls) == 2


def test_text_body_uses_plain_text_content_type() -> None:
    body = BodyBuilder(FormatterCollection.default(), RequestOptions()).text("hello")

    assert body.content == b"hello"
    assert body.content_type == "text/plain; charset=utf-8"


def test_incomplete_formatter_cannot_be_instantiated() -> None:
    class WriteOnlyFormatter(Formatter):
        media_types = ("application/x-write-only",)

        def serialize(self, value: object) -> bytes:
            return b""

    with pytest.raises(TypeError):
        WriteOnlyFormatter()
