"""
Body parsers that keep the raw body around for signature verification.

A parser decodes the request body into parameters. The parsers here also
hand back the exact bytes they read, which the caller caches as the
``raw_body`` annotation before the body is gone for good.
"""

from __future__ import annotations

import fnmatch
import logging
from typing import Any, Callable, Iterable, MutableMapping, Sequence
from urllib.parse import parse_qsl

from .body import DEFAULT_LENGTH, DEFAULT_READ_TIMEOUT, RAW_BODY, cache_raw_body
from .errors import (
    BadEncodingError,
    ConfigurationError,
    ParseError,
    RequestTooLargeError,
    UnsupportedMediaTypeError,
)
from .models import BodyRead, Parsed, TooLarge

logger = logging.getLogger(__name__)

# Methods whose body gets parsed
BODY_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def parse_content_type(value: str | None) -> tuple[str, str, dict[str, str]] | None:
    """
    Split a Content-Type header into (type, subtype, params).

    Type and subtype are lowercased. Returns None if the value is missing
    or not of the form ``type/subtype``.

    Examples:
        >>> parse_content_type("application/json; charset=UTF-8")
        ('application', 'json', {'charset': 'UTF-8'})
        >>> parse_content_type("json") is None
        True
    """
    if not value:
        return None

    media, _, rest = value.partition(";")
    type_, sep, subtype = media.strip().partition("/")
    type_, subtype = type_.strip().lower(), subtype.strip().lower()
    if not sep or not type_ or not subtype:
        return None

    params: dict[str, str] = {}
    for item in rest.split(";"):
        name, eq, val = item.partition("=")
        if eq and name.strip():
            params[name.strip().lower()] = val.strip().strip('"')
    return type_, subtype, params


class BodyParser:
    """Base class for body parsers."""

    def handles(self, type_: str, subtype: str) -> bool:
        """Whether this parser decodes the given media type."""
        raise NotImplementedError

    def decode(self, body: bytes) -> dict[str, Any]:
        raise NotImplementedError

    def parse(self, read: BodyRead, headers: Sequence[tuple[str, str]] = ()) -> Parsed | TooLarge:
        """
        Decode a body that has already been read.

        Returns TooLarge with the partial bytes if the read hit the length
        limit, otherwise Parsed with the decoded params and the raw bytes.
        """
        if not read.complete:
            return TooLarge(partial=read.body)
        return Parsed(params=self.decode(read.body), raw_body=read.body)


class JSONParser(BodyParser):
    """
    Parses JSON request bodies.

    A top-level JSON value that is not an object (an array, typically) is
    wrapped as ``{"_json": value}`` so it can be merged with other params.
    An empty body decodes to an empty dict.

    Args:
        json_decoder: Callable taking the body and returning the decoded
            value, e.g. ``json.loads``. Required.
    """

    def __init__(self, json_decoder: Callable[[bytes], Any] | None = None):
        if json_decoder is None:
            raise ConfigurationError("JSON parser expects a json_decoder option")
        self.json_decoder = json_decoder

    def handles(self, type_: str, subtype: str) -> bool:
        return type_ == "application" and (subtype == "json" or subtype.endswith("+json"))

    def decode(self, body: bytes) -> dict[str, Any]:
        if not body:
            return {}
        try:
            terms = self.json_decoder(body)
        except Exception as e:
            raise ParseError(e) from e
        if isinstance(terms, dict):
            return terms
        return {"_json": terms}


class URLEncodedParser(BodyParser):
    """Parses ``application/x-www-form-urlencoded`` bodies."""

    def handles(self, type_: str, subtype: str) -> bool:
        return type_ == "application" and subtype == "x-www-form-urlencoded"

    def decode(self, body: bytes) -> dict[str, Any]:
        try:
            text = body.decode("utf-8")
            pairs = parse_qsl(text, keep_blank_values=True, encoding="utf-8", errors="strict")
        except UnicodeDecodeError:
            raise BadEncodingError("Invalid UTF-8 in urlencoded body") from None
        return dict(pairs)


class BodyParsers:
    """
    A chain of body parsers.

    The first parser that handles the request's media type reads and
    decodes the body. Media types no parser handles are let through if
    they match one of the ``pass_`` patterns and rejected otherwise.

    Args:
        parsers: Parsers to try, in order
        pass_: Media type patterns (``"*/*"``, ``"text/*"``) to let through
            unparsed
        length: Maximum body size in bytes
        read_timeout: Seconds allowed for reading the body (ASGI only)
    """

    def __init__(
        self,
        parsers: Iterable[BodyParser],
        pass_: Iterable[str] = ("*/*",),
        length: int = DEFAULT_LENGTH,
        read_timeout: float | None = DEFAULT_READ_TIMEOUT,
    ):
        self.parsers = list(parsers)
        self.pass_ = [p.lower() for p in pass_]
        self.length = length
        self.read_timeout = read_timeout

    def select(self, method: str, content_type: str | None) -> BodyParser | None:
        """
        Pick the parser for a request, without touching its body.

        Returns None when the body should be left alone.

        Raises:
            UnsupportedMediaTypeError: No parser handles the media type and
                it does not match a pass pattern
        """
        if method.upper() not in BODY_METHODS:
            return None

        parsed = parse_content_type(content_type)
        if parsed is None:
            return None
        type_, subtype, _ = parsed

        for parser in self.parsers:
            if parser.handles(type_, subtype):
                return parser

        media = f"{type_}/{subtype}"
        if any(fnmatch.fnmatchcase(media, pattern) for pattern in self.pass_):
            return None
        raise UnsupportedMediaTypeError(f"Unsupported media type: {media}")

    def finish(
        self,
        parser: BodyParser,
        read: BodyRead,
        annotations: MutableMapping[str, Any],
        headers: Sequence[tuple[str, str]] = (),
        key: str = RAW_BODY,
    ) -> dict[str, Any]:
        """
        Cache the raw bytes of a body read for ``parser``, then decode it.

        Raises:
            RequestTooLargeError: If the read hit the length limit
            ParseError, BadEncodingError: If the body does not decode
        """
        if read.complete:
            cache_raw_body(annotations, read.body, key)
        result = parser.parse(read, headers)
        if isinstance(result, TooLarge):
            logger.info("Request body exceeds %d bytes", self.length)
            raise RequestTooLargeError(f"Request body exceeds {self.length} bytes")
        return result.params
