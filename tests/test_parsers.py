"""Tests for the raw-body-preserving parsers."""

import json

import pytest

from sigaws_middleware import (
    BadEncodingError,
    BodyParsers,
    ConfigurationError,
    JSONParser,
    ParseError,
    RequestTooLargeError,
    UnsupportedMediaTypeError,
    URLEncodedParser,
)
from sigaws_middleware.models import BodyRead, Parsed, TooLarge
from sigaws_middleware.parsers import parse_content_type


class TestParseContentType:
    """Tests for parse_content_type function."""

    def test_with_params(self):
        assert parse_content_type("Application/JSON; charset=UTF-8") == (
            "application", "json", {"charset": "UTF-8"},
        )

    def test_quoted_param(self):
        assert parse_content_type('multipart/form-data; boundary="abc"')[2] == {"boundary": "abc"}

    @pytest.mark.parametrize("value", [None, "", "json", "/json", "application/"])
    def test_invalid(self, value):
        assert parse_content_type(value) is None


class TestJSONParser:
    """Tests for JSONParser."""

    def test_requires_decoder(self):
        """Missing decoder fails at construction."""
        with pytest.raises(ConfigurationError, match="json_decoder"):
            JSONParser()

    @pytest.mark.parametrize("type_,subtype,expected", [
        ("application", "json", True),
        ("application", "vnd.api+json", True),
        ("application", "x-www-form-urlencoded", False),
        ("text", "json", False),
    ])
    def test_handles(self, type_, subtype, expected):
        assert JSONParser(json.loads).handles(type_, subtype) is expected

    def test_object(self):
        """Top-level object decodes to itself."""
        result = JSONParser(json.loads).parse(BodyRead(b'{"a": 1, "b": [2]}'))
        assert result == Parsed(params={"a": 1, "b": [2]}, raw_body=b'{"a": 1, "b": [2]}')

    def test_array_wrapped(self):
        """Top-level array is wrapped under _json."""
        result = JSONParser(json.loads).parse(BodyRead(b"[1, 2, 3]"))
        assert result.params == {"_json": [1, 2, 3]}

    def test_scalar_wrapped(self):
        result = JSONParser(json.loads).parse(BodyRead(b'"hi"'))
        assert result.params == {"_json": "hi"}

    def test_empty_body(self):
        """Empty body decodes to an empty dict without calling the decoder."""
        def decoder(body):
            raise AssertionError("decoder called")

        result = JSONParser(decoder).parse(BodyRead(b""))
        assert result == Parsed(params={}, raw_body=b"")

    def test_decode_error_wrapped(self):
        """Decoder errors become ParseError with the cause kept."""
        with pytest.raises(ParseError) as exc:
            JSONParser(json.loads).parse(BodyRead(b"{not json"))
        assert isinstance(exc.value.exception, json.JSONDecodeError)
        assert exc.value.__cause__ is exc.value.exception
        assert exc.value.status_code == 400

    def test_too_large(self):
        """Incomplete read yields TooLarge with the partial body."""
        result = JSONParser(json.loads).parse(BodyRead(b'{"a":', complete=False))
        assert result == TooLarge(partial=b'{"a":')


class TestURLEncodedParser:
    """Tests for URLEncodedParser."""

    def test_handles(self):
        parser = URLEncodedParser()
        assert parser.handles("application", "x-www-form-urlencoded")
        assert not parser.handles("application", "json")

    def test_decode(self):
        """Form fields decode to a dict."""
        body = b"name=J%C3%BCrgen+M&empty=&flag&n=1&n=2"
        result = URLEncodedParser().parse(BodyRead(body))
        assert result.params == {"name": "Jürgen M", "empty": "", "flag": "", "n": "2"}
        assert result.raw_body == body

    def test_invalid_utf8_raw(self):
        """Raw bytes that are not UTF-8 are rejected."""
        with pytest.raises(BadEncodingError):
            URLEncodedParser().parse(BodyRead(b"name=\xff\xfe"))

    def test_invalid_utf8_percent_encoded(self):
        """Percent-encoded bytes that are not UTF-8 are rejected."""
        with pytest.raises(BadEncodingError) as exc:
            URLEncodedParser().parse(BodyRead(b"name=%FF"))
        assert exc.value.status_code == 415


class TestBodyParsers:
    """Tests for the BodyParsers chain."""

    def make_chain(self, **kwargs):
        return BodyParsers([JSONParser(json.loads), URLEncodedParser()], **kwargs)

    def test_select_first_matching(self):
        chain = self.make_chain()
        assert isinstance(chain.select("POST", "application/json"), JSONParser)
        assert isinstance(
            chain.select("PUT", "application/x-www-form-urlencoded; charset=utf-8"),
            URLEncodedParser,
        )

    def test_select_skips_bodyless_methods(self):
        chain = self.make_chain()
        assert chain.select("GET", "application/json") is None
        assert chain.select("HEAD", "application/json") is None

    def test_select_without_content_type(self):
        assert self.make_chain().select("POST", None) is None

    def test_select_passes_unhandled(self):
        """Default pass pattern lets every other media type through."""
        assert self.make_chain().select("POST", "text/plain") is None

    def test_select_rejects_unhandled(self):
        chain = self.make_chain(pass_=["text/*"])
        assert chain.select("POST", "text/csv") is None
        with pytest.raises(UnsupportedMediaTypeError, match="image/png"):
            chain.select("POST", "image/png")

    def test_finish_caches_raw_body(self):
        """Raw bytes are cached and params returned."""
        annotations = {}
        params = self.make_chain().finish(JSONParser(json.loads), BodyRead(b"[1]"), annotations)
        assert params == {"_json": [1]}
        assert annotations["raw_body"] == b"[1]"

    def test_finish_keeps_existing_raw_body(self):
        """An already cached body is never overwritten."""
        annotations = {"raw_body": b"first"}
        self.make_chain().finish(URLEncodedParser(), BodyRead(b"a=1"), annotations)
        assert annotations["raw_body"] == b"first"

    def test_finish_caches_before_decoding(self):
        """Raw body is cached even when decoding fails."""
        annotations = {}
        with pytest.raises(ParseError):
            self.make_chain().finish(JSONParser(json.loads), BodyRead(b"{"), annotations)
        assert annotations["raw_body"] == b"{"

    def test_finish_too_large(self):
        annotations = {}
        with pytest.raises(RequestTooLargeError) as exc:
            self.make_chain(length=4).finish(
                JSONParser(json.loads), BodyRead(b"[1, 2", complete=False), annotations,
            )
        assert exc.value.status_code == 413
        assert "raw_body" not in annotations
