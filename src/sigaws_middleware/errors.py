"""
Exceptions raised by the body parsers, providers and configuration.

Parser errors are Starlette ``HTTPException`` subclasses so the hosting
framework's exception handling maps them to a response.
"""

from __future__ import annotations

from starlette.exceptions import HTTPException


class ParserError(HTTPException):
    """Base class for errors raised while reading or decoding a body."""

    status_code = 400
    default_detail = "Bad request"

    def __init__(self, detail: str | None = None):
        super().__init__(status_code=type(self).status_code, detail=detail or self.default_detail)

    def __str__(self) -> str:
        return self.detail


class RequestTooLargeError(ParserError):
    status_code = 413
    default_detail = "Request body too large"


class BodyReadTimeout(ParserError):
    status_code = 408
    default_detail = "Timed out reading request body"


class BadRequestError(ParserError):
    status_code = 400
    default_detail = "Could not read request body"


class ParseError(ParserError):
    """Body could not be decoded. The original exception is kept on ``exception``."""

    status_code = 400
    default_detail = "Malformed request body"

    def __init__(self, exception: BaseException):
        self.exception = exception
        super().__init__(f"{self.default_detail}: {exception}")


class BadEncodingError(ParserError):
    status_code = 415
    default_detail = "Invalid UTF-8 in request body"


class UnsupportedMediaTypeError(ParserError):
    status_code = 415
    default_detail = "Unsupported media type"


class ConfigurationError(ValueError):
    """Middleware or parser set up incorrectly."""


class ProviderError(Exception):
    """A provider could not resolve a credential."""
