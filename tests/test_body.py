"""Tests for raw body reading and caching."""

import asyncio
from io import BytesIO

import pytest
from starlette.requests import ClientDisconnect

from sigaws_middleware import BadRequestError, BodyReadTimeout, cache_raw_body, get_raw_body
from sigaws_middleware.body import read_stream, read_wsgi_input


async def chunks(*parts, delay=0.0):
    for part in parts:
        if delay:
            await asyncio.sleep(delay)
        yield part


class TestRawBodyCache:
    """Tests for get_raw_body / cache_raw_body."""

    def test_absent(self):
        assert get_raw_body({}) is None

    def test_set_once(self):
        """Second write is ignored and returns the first value."""
        annotations = {}
        assert cache_raw_body(annotations, b"one") == b"one"
        assert cache_raw_body(annotations, b"two") == b"one"
        assert get_raw_body(annotations) == b"one"

    def test_empty_body_counts_as_cached(self):
        annotations = {}
        cache_raw_body(annotations, b"")
        assert cache_raw_body(annotations, b"late") == b""

    def test_custom_key(self):
        environ = {}
        cache_raw_body(environ, b"x", key="sigaws.raw_body")
        assert get_raw_body(environ, "sigaws.raw_body") == b"x"
        assert get_raw_body(environ) is None


class TestReadStream:
    """Tests for read_stream function."""

    @pytest.mark.asyncio
    async def test_reads_all_chunks(self):
        read = await read_stream(chunks(b"ab", b"", b"cd"))
        assert read.body == b"abcd"
        assert read.complete is True

    @pytest.mark.asyncio
    async def test_exactly_at_limit(self):
        read = await read_stream(chunks(b"ab", b"cd"), length=4)
        assert read.complete is True

    @pytest.mark.asyncio
    async def test_over_limit(self):
        """Stops reading once the limit is passed."""
        read = await read_stream(chunks(b"abc", b"def", b"ghi"), length=4)
        assert read.complete is False
        assert read.body == b"abcdef"

    @pytest.mark.asyncio
    async def test_timeout(self):
        with pytest.raises(BodyReadTimeout) as exc:
            await read_stream(chunks(b"a", b"b", delay=0.2), read_timeout=0.05)
        assert exc.value.status_code == 408

    @pytest.mark.asyncio
    async def test_client_disconnect(self):
        async def disconnected():
            yield b"partial"
            raise ClientDisconnect()

        with pytest.raises(BadRequestError, match="disconnected"):
            await read_stream(disconnected())


class TestReadWSGIInput:
    """Tests for read_wsgi_input function."""

    def test_reads_content_length(self):
        environ = {"CONTENT_LENGTH": "5", "wsgi.input": BytesIO(b"hello, extra")}
        read = read_wsgi_input(environ)
        assert read.body == b"hello"
        assert read.complete is True

    def test_rewinds_input(self):
        """wsgi.input can be read again by the app."""
        environ = {"CONTENT_LENGTH": "5", "wsgi.input": BytesIO(b"hello")}
        read_wsgi_input(environ)
        assert environ["wsgi.input"].read() == b"hello"

    def test_no_body(self):
        environ = {"wsgi.input": BytesIO(b"ignored")}
        assert read_wsgi_input(environ).body == b""

    def test_over_limit(self):
        environ = {"CONTENT_LENGTH": "10", "wsgi.input": BytesIO(b"0123456789")}
        read = read_wsgi_input(environ, length=4)
        assert read.complete is False
        assert read.body == b"0123"

    def test_invalid_content_length(self):
        with pytest.raises(BadRequestError, match="Content-Length"):
            read_wsgi_input({"CONTENT_LENGTH": "lots", "wsgi.input": BytesIO()})

    def test_truncated(self):
        environ = {"CONTENT_LENGTH": "10", "wsgi.input": BytesIO(b"short")}
        with pytest.raises(BadRequestError, match="shorter"):
            read_wsgi_input(environ)

    def test_socket_timeout(self):
        class SlowInput:
            def read(self, size):
                raise TimeoutError("timed out")

        with pytest.raises(BodyReadTimeout):
            read_wsgi_input({"CONTENT_LENGTH": "3", "wsgi.input": SlowInput()})

    def test_read_error(self):
        class BrokenInput:
            def read(self, size):
                raise ConnectionResetError("reset")

        with pytest.raises(BadRequestError, match="reset"):
            read_wsgi_input({"CONTENT_LENGTH": "3", "wsgi.input": BrokenInput()})
