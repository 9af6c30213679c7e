"""
Raw request body reading and caching.

Signature verification hashes the exact bytes the client sent, and a request
body can only be read from the transport once. Whoever reads the body first
(a body parser or the verification middleware) stores the bytes under the
``raw_body`` annotation; everybody after that uses the cached copy.

Annotations live in a plain mapping: the ASGI scope's ``state`` dict (what
Starlette exposes as ``request.state``) or the WSGI ``environ``.
"""

from __future__ import annotations

import asyncio
from io import BytesIO
from typing import Any, AsyncIterator, MutableMapping

from starlette.requests import ClientDisconnect

from .errors import BadRequestError, BodyReadTimeout
from .models import BodyRead

RAW_BODY = "raw_body"
WSGI_RAW_BODY = "sigaws.raw_body"

# Plug's read_body defaults
DEFAULT_LENGTH = 8_000_000
DEFAULT_READ_TIMEOUT = 15.0


def get_raw_body(annotations: MutableMapping[str, Any], key: str = RAW_BODY) -> bytes | None:
    """Return the cached raw body, or None if nobody has read it yet."""
    return annotations.get(key)


def cache_raw_body(
    annotations: MutableMapping[str, Any],
    body: bytes,
    key: str = RAW_BODY,
) -> bytes:
    """
    Store the raw body unless one is already cached.

    Returns the bytes that are cached after the call, which are the
    previously cached bytes if there were any.
    """
    existing = annotations.get(key)
    if existing is not None:
        return existing
    annotations[key] = body
    return body


async def read_stream(
    chunks: AsyncIterator[bytes],
    length: int = DEFAULT_LENGTH,
    read_timeout: float | None = DEFAULT_READ_TIMEOUT,
) -> BodyRead:
    """
    Read an ASGI body stream into memory.

    Args:
        chunks: Async iterator of body chunks (e.g. ``request.stream()``)
        length: Maximum number of bytes to accept
        read_timeout: Seconds allowed for the whole read, None for no limit

    Returns:
        BodyRead; ``complete`` is False if the body exceeded ``length``

    Raises:
        BodyReadTimeout: If the read does not finish within ``read_timeout``
        BadRequestError: If the client disconnects or the read fails
    """
    buffer = bytearray()

    async def _consume() -> bool:
        async for chunk in chunks:
            buffer.extend(chunk)
            if len(buffer) > length:
                return False
        return True

    try:
        complete = await asyncio.wait_for(_consume(), timeout=read_timeout)
    except asyncio.TimeoutError:
        raise BodyReadTimeout() from None
    except ClientDisconnect:
        raise BadRequestError("Client disconnected while sending body") from None
    except OSError as e:
        raise BadRequestError(f"Could not read request body: {e}") from e

    return BodyRead(body=bytes(buffer), complete=complete)


def read_wsgi_input(
    environ: MutableMapping[str, Any],
    length: int = DEFAULT_LENGTH,
) -> BodyRead:
    """
    Read ``wsgi.input`` into memory.

    Reads at most ``CONTENT_LENGTH`` bytes. When the whole body was read,
    ``wsgi.input`` is replaced with a fresh stream over the same bytes so
    the wrapped application can read it again.

    Raises:
        BodyReadTimeout: On a socket timeout
        BadRequestError: On an invalid Content-Length, a truncated body,
            or any other read error
    """
    raw_length = environ.get("CONTENT_LENGTH") or ""
    try:
        declared = int(raw_length) if raw_length.strip() else 0
    except ValueError:
        raise BadRequestError(f"Invalid Content-Length: {raw_length!r}") from None
    if declared < 0:
        raise BadRequestError(f"Invalid Content-Length: {raw_length!r}")

    stream = environ.get("wsgi.input")
    if stream is None or declared == 0:
        body = b""
    else:
        try:
            body = stream.read(min(declared, length + 1))
        except TimeoutError:
            raise BodyReadTimeout() from None
        except OSError as e:
            raise BadRequestError(f"Could not read request body: {e}") from e

    if len(body) > length:
        return BodyRead(body=body[:length], complete=False)
    if len(body) < declared:
        raise BadRequestError("Request body shorter than Content-Length")

    environ["wsgi.input"] = BytesIO(body)
    return BodyRead(body=body)
