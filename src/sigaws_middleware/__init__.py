"""
sigaws-middleware

Authenticate HTTP requests signed with AWS Signature V4 in ASGI and WSGI
apps, with body parsers that keep the raw body for verification.
"""

from .adapter import SIGAWS_CTXT, VerificationAdapter
from .body import RAW_BODY, cache_raw_body, get_raw_body
from .errors import (
    BadEncodingError,
    BadRequestError,
    BodyReadTimeout,
    ConfigurationError,
    ParseError,
    ParserError,
    ProviderError,
    RequestTooLargeError,
    UnsupportedMediaTypeError,
)
from .middleware import (
    BodyParserASGIMiddleware,
    BodyParserWSGIMiddleware,
    SigawsASGIMiddleware,
    SigawsWSGIMiddleware,
)
from .models import (
    Credential,
    VerificationContext,
    VerificationFailure,
    VerificationMessage,
    VerificationRequest,
    Verified,
)
from .parsers import BodyParsers, JSONParser, URLEncodedParser
from .providers import HTTPProvider, Provider, QuickStartProvider, resolve_provider
from .verifier import SigV4Verifier, Verifier

__version__ = "0.1.0"

__all__ = [
    "SIGAWS_CTXT",
    "RAW_BODY",
    "VerificationAdapter",
    "cache_raw_body",
    "get_raw_body",
    "BadEncodingError",
    "BadRequestError",
    "BodyReadTimeout",
    "ConfigurationError",
    "ParseError",
    "ParserError",
    "ProviderError",
    "RequestTooLargeError",
    "UnsupportedMediaTypeError",
    "BodyParserASGIMiddleware",
    "BodyParserWSGIMiddleware",
    "SigawsASGIMiddleware",
    "SigawsWSGIMiddleware",
    "Credential",
    "VerificationContext",
    "VerificationFailure",
    "VerificationMessage",
    "VerificationRequest",
    "Verified",
    "BodyParsers",
    "JSONParser",
    "URLEncodedParser",
    "HTTPProvider",
    "Provider",
    "QuickStartProvider",
    "resolve_provider",
    "SigV4Verifier",
    "Verifier",
]
