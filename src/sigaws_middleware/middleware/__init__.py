"""
Signature V4 middleware for ASGI and WSGI frameworks.

Re-exports middleware classes for convenient imports:
    from sigaws_middleware.middleware import SigawsASGIMiddleware
    from sigaws_middleware.middleware import SigawsWSGIMiddleware
"""

from .asgi import BodyParserASGIMiddleware, SigawsASGIMiddleware
from .wsgi import BodyParserWSGIMiddleware, SigawsWSGIMiddleware

__all__ = [
    "BodyParserASGIMiddleware",
    "BodyParserWSGIMiddleware",
    "SigawsASGIMiddleware",
    "SigawsWSGIMiddleware",
]
