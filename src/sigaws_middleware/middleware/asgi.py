"""
ASGI middleware for AWS Signature V4 verification (FastAPI/Starlette).
"""

from typing import Any, Callable

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response

from ..adapter import SIGAWS_CTXT, VerificationAdapter
from ..body import DEFAULT_LENGTH, DEFAULT_READ_TIMEOUT, cache_raw_body, get_raw_body, read_stream
from ..errors import ParserError, RequestTooLargeError
from ..models import BodyRead, Deny
from ..parsers import BodyParsers
from ..providers import Provider
from ..verifier import Verifier


def _annotations(request: Request) -> dict[str, Any]:
    """The dict behind ``request.state``, shared by every Request on this scope."""
    return request.scope.setdefault("state", {})


def _replay_body(request: Request, body: bytes) -> None:
    # request.body() cannot be used after a bounded read of request.stream();
    # BaseHTTPMiddleware replays _body to the next app (starlette 0.28 to 0.x)
    request._body = body


def _request_path(request: Request) -> str:
    raw_path = request.scope.get("raw_path")
    if raw_path:
        return raw_path.split(b"?", 1)[0].decode("latin-1")
    return request.url.path


class SigawsASGIMiddleware(BaseHTTPMiddleware):
    """
    ASGI middleware for AWS Signature V4 verification.

    On success the verification context is attached to
    `request.state.sigaws_ctxt`. On failure the request is answered with a
    401 and a plain text reason, and the app is never called.

    The raw body is taken from `request.state.raw_body` when a body parser
    has already read it. Otherwise it is read here and cached there.

    Args:
        app: ASGI application
        provider: Provider instance or "module:attribute" name
        verifier: Signature verifier (default: SigV4Verifier)
        length: Maximum body size in bytes
        read_timeout: Seconds allowed for reading the body

    Example (FastAPI):
        >>> from fastapi import FastAPI, Request
        >>> from sigaws_middleware import QuickStartProvider, SigawsASGIMiddleware
        >>>
        >>> app = FastAPI()
        >>> app.add_middleware(
        ...     SigawsASGIMiddleware,
        ...     provider=QuickStartProvider.from_env(),
        ... )
        >>>
        >>> @app.get("/whoami")
        >>> async def whoami(request: Request):
        ...     return {"access_key": request.state.sigaws_ctxt.access_key}
    """

    def __init__(
        self,
        app: Any,
        provider: Provider | str | None = None,
        verifier: Verifier | None = None,
        length: int = DEFAULT_LENGTH,
        read_timeout: float | None = DEFAULT_READ_TIMEOUT,
    ):
        super().__init__(app)
        self.adapter = VerificationAdapter(provider=provider, verifier=verifier)
        self.length = length
        self.read_timeout = read_timeout

    async def _raw_body(self, request: Request) -> bytes:
        annotations = _annotations(request)
        cached = get_raw_body(annotations)
        if cached is not None:
            return cached

        read = await read_stream(request.stream(), self.length, self.read_timeout)
        if not read.complete:
            raise RequestTooLargeError(f"Request body exceeds {self.length} bytes")
        _replay_body(request, read.body)
        return cache_raw_body(annotations, read.body)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Any],
    ) -> Response:
        try:
            body = await self._raw_body(request)
            headers = [(k.decode("latin-1"), v.decode("latin-1")) for k, v in request.headers.raw]
            verification = self.adapter.build_request(
                method=request.method,
                path=_request_path(request),
                headers=headers,
                query_params=request.query_params,
                body=body,
            )
            # Providers and the verifier may block
            decision = await run_in_threadpool(self.adapter.decide, verification)
        except Exception as e:
            decision = self.adapter.denied(e)

        if isinstance(decision, Deny):
            return PlainTextResponse(decision.message, status_code=decision.status_code)

        setattr(request.state, SIGAWS_CTXT, decision.context)
        return await call_next(request)


class BodyParserASGIMiddleware(BaseHTTPMiddleware):
    """
    ASGI middleware that parses request bodies and keeps the raw bytes.

    Decoded params go to `request.state.body_params`, the raw body to
    `request.state.raw_body`. Downstream handlers can still read the body.
    Add it so that it runs before SigawsASGIMiddleware (i.e. add it last).

    Args:
        app: ASGI application
        parsers: Parser chain

    Example:
        >>> import json
        >>> from sigaws_middleware import BodyParsers, JSONParser, URLEncodedParser
        >>>
        >>> app.add_middleware(SigawsASGIMiddleware, provider=provider)
        >>> app.add_middleware(
        ...     BodyParserASGIMiddleware,
        ...     parsers=BodyParsers([JSONParser(json.loads), URLEncodedParser()]),
        ... )
    """

    def __init__(self, app: Any, parsers: BodyParsers):
        super().__init__(app)
        self.parsers = parsers

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Any],
    ) -> Response:
        try:
            parser = self.parsers.select(request.method, request.headers.get("content-type"))
            if parser is not None:
                annotations = _annotations(request)
                cached = get_raw_body(annotations)
                if cached is not None:
                    read = BodyRead(cached)
                else:
                    read = await read_stream(
                        request.stream(),
                        self.parsers.length,
                        self.parsers.read_timeout,
                    )
                headers = [(k.decode("latin-1"), v.decode("latin-1")) for k, v in request.headers.raw]
                params = self.parsers.finish(parser, read, annotations, headers)
                _replay_body(request, read.body)
                request.state.body_params = params
        except ParserError as e:
            return JSONResponse(status_code=e.status_code, content={"error": str(e)})

        return await call_next(request)
