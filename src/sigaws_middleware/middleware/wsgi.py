"""
WSGI middleware for AWS Signature V4 verification (Flask).
"""

from __future__ import annotations

import json
from io import BytesIO
from typing import Any, Callable, Iterable
from urllib.parse import parse_qsl

from ..adapter import VerificationAdapter
from ..body import DEFAULT_LENGTH, WSGI_RAW_BODY, cache_raw_body, get_raw_body, read_wsgi_input
from ..errors import ParserError, RequestTooLargeError
from ..models import BodyRead, Deny
from ..parsers import BodyParsers
from ..providers import Provider
from ..verifier import Verifier

WSGI_CTXT = "sigaws.ctxt"
WSGI_BODY_PARAMS = "sigaws.body_params"

_STATUS_TEXT = {
    400: "400 Bad Request",
    401: "401 Unauthorized",
    408: "408 Request Timeout",
    413: "413 Content Too Large",
    415: "415 Unsupported Media Type",
}


def _extract_headers(environ: dict[str, Any]) -> list[tuple[str, str]]:
    """Extract HTTP headers from WSGI environ, as (name, value) pairs."""
    headers: list[tuple[str, str]] = []
    for key, value in environ.items():
        if key.startswith("HTTP_"):
            # HTTP_X_AMZ_DATE -> x-amz-date
            headers.append((key[5:].replace("_", "-").lower(), value))
        elif key == "CONTENT_TYPE" and value:
            headers.append(("content-type", value))
        elif key == "CONTENT_LENGTH" and value:
            headers.append(("content-length", value))
    return headers


def _query_params(environ: dict[str, Any]) -> dict[str, str]:
    return dict(parse_qsl(environ.get("QUERY_STRING", ""), keep_blank_values=True))


def _request_path(environ: dict[str, Any]) -> str:
    path = environ.get("SCRIPT_NAME", "") + environ.get("PATH_INFO", "")
    return path or "/"


def _status_line(status_code: int) -> str:
    return _STATUS_TEXT.get(status_code, f"{status_code} Error")


class SigawsWSGIMiddleware:
    """
    WSGI middleware for AWS Signature V4 verification.

    On success the verification context is attached to
    `environ["sigaws.ctxt"]`. On failure the request is answered with a
    `401 Unauthorized` and a plain text reason.

    The raw body is taken from `environ["sigaws.raw_body"]` when a body
    parser has already read it. Otherwise it is read here, cached there, and
    `wsgi.input` is rewound for the wrapped app.

    Args:
        app: WSGI application
        provider: Provider instance or "module:attribute" name
        verifier: Signature verifier (default: SigV4Verifier)
        length: Maximum body size in bytes

    Example (Flask):
        >>> from flask import Flask, request
        >>> from sigaws_middleware import QuickStartProvider
        >>> from sigaws_middleware.middleware.wsgi import SigawsWSGIMiddleware
        >>>
        >>> app = Flask(__name__)
        >>> app.wsgi_app = SigawsWSGIMiddleware(
        ...     app.wsgi_app,
        ...     provider=QuickStartProvider.from_env(),
        ... )
        >>>
        >>> @app.route("/whoami")
        >>> def whoami():
        ...     return {"access_key": request.environ["sigaws.ctxt"].access_key}
    """

    def __init__(
        self,
        app: Callable[..., Iterable[bytes]],
        provider: Provider | str | None = None,
        verifier: Verifier | None = None,
        length: int = DEFAULT_LENGTH,
    ):
        self.app = app
        self.adapter = VerificationAdapter(provider=provider, verifier=verifier)
        self.length = length

    def _raw_body(self, environ: dict[str, Any]) -> bytes:
        cached = get_raw_body(environ, WSGI_RAW_BODY)
        if cached is not None:
            return cached

        read = read_wsgi_input(environ, self.length)
        if not read.complete:
            raise RequestTooLargeError(f"Request body exceeds {self.length} bytes")
        return cache_raw_body(environ, read.body, WSGI_RAW_BODY)

    def __call__(
        self,
        environ: dict[str, Any],
        start_response: Callable[..., Any],
    ) -> Iterable[bytes]:
        try:
            body = self._raw_body(environ)
            verification = self.adapter.build_request(
                method=environ.get("REQUEST_METHOD", "GET"),
                path=_request_path(environ),
                headers=_extract_headers(environ),
                query_params=_query_params(environ),
                body=body,
            )
            decision = self.adapter.decide(verification)
        except Exception as e:
            decision = self.adapter.denied(e)

        if isinstance(decision, Deny):
            return self._deny_response(start_response, decision)

        environ[WSGI_CTXT] = decision.context
        return self.app(environ, start_response)

    def _deny_response(
        self,
        start_response: Callable[..., Any],
        decision: Deny,
    ) -> Iterable[bytes]:
        """Return 401 error response."""
        body = decision.message.encode("utf-8")
        start_response(
            _status_line(decision.status_code),
            [
                ("Content-Type", "text/plain; charset=utf-8"),
                ("Content-Length", str(len(body))),
            ],
        )
        return [body]


class BodyParserWSGIMiddleware:
    """
    WSGI middleware that parses request bodies and keeps the raw bytes.

    Decoded params go to `environ["sigaws.body_params"]`, the raw body to
    `environ["sigaws.raw_body"]`. Wrap it around SigawsWSGIMiddleware so it
    runs first.

    Args:
        app: WSGI application
        parsers: Parser chain

    Example (Flask):
        >>> app.wsgi_app = BodyParserWSGIMiddleware(
        ...     SigawsWSGIMiddleware(app.wsgi_app, provider=provider),
        ...     parsers=BodyParsers([JSONParser(json.loads), URLEncodedParser()]),
        ... )
    """

    def __init__(self, app: Callable[..., Iterable[bytes]], parsers: BodyParsers):
        self.app = app
        self.parsers = parsers

    def __call__(
        self,
        environ: dict[str, Any],
        start_response: Callable[..., Any],
    ) -> Iterable[bytes]:
        try:
            parser = self.parsers.select(
                environ.get("REQUEST_METHOD", "GET"),
                environ.get("CONTENT_TYPE"),
            )
            if parser is not None:
                cached = get_raw_body(environ, WSGI_RAW_BODY)
                if cached is not None:
                    read = BodyRead(cached)
                    environ["wsgi.input"] = BytesIO(cached)
                else:
                    read = read_wsgi_input(environ, self.parsers.length)
                params = self.parsers.finish(
                    parser, read, environ, _extract_headers(environ), key=WSGI_RAW_BODY,
                )
                environ[WSGI_BODY_PARAMS] = params
        except ParserError as e:
            return self._error_response(start_response, e)

        return self.app(environ, start_response)

    def _error_response(
        self,
        start_response: Callable[..., Any],
        error: ParserError,
    ) -> Iterable[bytes]:
        body = json.dumps({"error": str(error)}).encode("utf-8")
        start_response(
            _status_line(error.status_code),
            [
                ("Content-Type", "application/json"),
                ("Content-Length", str(len(body))),
            ],
        )
        return [body]
