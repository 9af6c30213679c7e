"""
Signature V4 verification, delegated to the ``awssig`` library.

The verifier resolves the signing credential through a provider, checks the
credential may sign for the request's region and service, and lets
``awssig`` recompute and compare the signature. It reports the result as a
value; it never decides what HTTP response to send.
"""

from __future__ import annotations

import logging
from typing import Protocol
from urllib.parse import quote, urlencode

from awssig import AWSSigV4Verifier, InvalidSignatureError

from .headers import ScopeError, find_scope, header_values
from .models import (
    VerificationContext,
    VerificationFailure,
    VerificationMessage,
    VerificationOutcome,
    VerificationRequest,
    Verified,
)
from .providers import Provider

logger = logging.getLogger(__name__)

# Seconds a signature timestamp may differ from the server clock
DEFAULT_TIMESTAMP_MISMATCH = 300


class Verifier(Protocol):
    def verify(
        self,
        path: str,
        request: VerificationRequest,
        provider: Provider | None,
    ) -> VerificationOutcome:
        ...


class SigV4Verifier:
    """
    Verifies AWS Signature V4 signed requests.

    Handles both Authorization header signatures and presigned URLs.

    Args:
        timestamp_mismatch: Allowed clock skew in seconds. Default: 300

    Example:
        >>> verifier = SigV4Verifier()
        >>> outcome = verifier.verify("/items", request, provider)
        >>> if isinstance(outcome, Verified):
        ...     print(outcome.context.access_key)
    """

    def __init__(self, timestamp_mismatch: int = DEFAULT_TIMESTAMP_MISMATCH):
        self.timestamp_mismatch = timestamp_mismatch

    def verify(
        self,
        path: str,
        request: VerificationRequest,
        provider: Provider | None,
    ) -> VerificationOutcome:
        """
        Verify a request.

        Args:
            path: Request path as sent by the client
            request: Method, headers, query params and raw body
            provider: Credential provider; None fails verification

        Returns:
            Verified with a VerificationContext, VerificationFailure with a
            kind and detail, or VerificationMessage

        Raises:
            ProviderError: If the provider cannot be reached
        """
        if provider is None:
            return VerificationMessage("Verification provider not configured")

        try:
            scope = find_scope(request.headers, request.query_params)
        except ScopeError as e:
            return VerificationFailure(e.kind, e.detail)

        credential = provider.lookup(scope.access_key)
        if credential is None:
            return VerificationFailure("unknown_access_key", scope.access_key)
        if not credential.permits_region(scope.region):
            return VerificationFailure("invalid_region", scope.region)
        if not credential.permits_service(scope.service):
            return VerificationFailure("invalid_service", scope.service)

        query_string = urlencode(request.query_params, safe="", quote_via=quote)
        try:
            AWSSigV4Verifier(
                request_method=request.method.upper(),
                uri_path=path,
                query_string=query_string,
                headers=header_values(request.headers),
                body=request.body,
                region=scope.region,
                service=scope.service,
                key_mapping={credential.access_key: credential.secret},
                timestamp_mismatch=self.timestamp_mismatch,
            ).verify()
        except InvalidSignatureError as e:
            # awssig's message carries the expected signature; keep it out of the response
            logger.debug("Signature mismatch for %s: %s", scope.access_key, e)
            return VerificationFailure("invalid_signature", "Signature mismatch")

        logger.debug("Verified request signed by %s", scope.access_key)
        return Verified(
            VerificationContext(
                access_key=scope.access_key,
                region=scope.region,
                service=scope.service,
                signed_at=scope.signed_at,
                signed_headers=scope.signed_headers,
                presigned=scope.presigned,
            )
        )
