"""
Framework-neutral core of the verification middleware.

Turns a verifier outcome into a decision: let the request through with the
verification context attached, or stop it with a 401. This is the only
place verification failures become responses, and no exception gets past it.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from .models import (
    Allow,
    Decision,
    Deny,
    VerificationFailure,
    VerificationMessage,
    VerificationRequest,
    Verified,
)
from .providers import Provider, resolve_provider
from .verifier import SigV4Verifier, Verifier

logger = logging.getLogger(__name__)

SIGAWS_CTXT = "sigaws_ctxt"


class VerificationAdapter:
    """
    Runs verification for one request at a time.

    Args:
        provider: Provider instance or ``"module:attribute"`` name. Names
            are resolved here, once.
        verifier: Verifier to use. Default: SigV4Verifier()
    """

    def __init__(
        self,
        provider: Provider | str | None = None,
        verifier: Verifier | None = None,
    ):
        self.provider = resolve_provider(provider)
        self.verifier = verifier if verifier is not None else SigV4Verifier()
        if self.provider is None:
            logger.warning("No sigaws verification provider configured; all requests will be rejected")

    @staticmethod
    def build_request(
        method: str,
        path: str,
        headers: Iterable[tuple[str, str]],
        query_params: Mapping[str, str],
        body: bytes,
    ) -> VerificationRequest:
        return VerificationRequest(
            method=method,
            path=path,
            headers=list(headers),
            query_params=dict(query_params),
            body=body,
        )

    def decide(self, request: VerificationRequest) -> Decision:
        """Verify ``request`` once and decide its fate."""
        if self.provider is None:
            logger.error("sigaws provider config not set")

        try:
            outcome = self.verifier.verify(request.path, request, self.provider)
        except Exception as e:
            return self.denied(e)

        if isinstance(outcome, Verified):
            return Allow(outcome.context)
        if isinstance(outcome, VerificationFailure):
            logger.info("Signature rejected for %s %s: %s", request.method, request.path, outcome.message)
            return Deny(outcome.message)
        if isinstance(outcome, VerificationMessage):
            logger.info("Signature rejected for %s %s: %s", request.method, request.path, outcome.text)
            return Deny(outcome.text)
        return self.denied(TypeError(f"Unexpected verification outcome: {outcome!r}"))

    @staticmethod
    def denied(error: Any) -> Deny:
        """Deny for an unexpected failure."""
        if isinstance(error, BaseException):
            logger.warning("Authorization failed", exc_info=error)
        return Deny(f"Authorization Failed: {error!r}")
