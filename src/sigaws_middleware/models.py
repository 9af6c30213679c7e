"""
Data models for AWS Signature V4 verification.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class Credential:
    """
    A credential resolved by a provider.

    Attributes:
        access_key: Public access key ID
        secret: Secret access key used to derive the signing key
        regions: Regions this credential may sign for (empty = any)
        services: Services this credential may sign for (empty = any)
    """
    access_key: str
    secret: str
    regions: frozenset[str] = frozenset()
    services: frozenset[str] = frozenset()

    def permits_region(self, region: str) -> bool:
        return not self.regions or region in self.regions

    def permits_service(self, service: str) -> bool:
        return not self.services or service in self.services

    def permits(self, region: str, service: str) -> bool:
        return self.permits_region(region) and self.permits_service(service)


@dataclass
class VerificationRequest:
    """
    Request data handed to the verifier.

    Attributes:
        method: HTTP method (GET, POST, etc.)
        path: Request path, without query string
        headers: Header (name, value) pairs in wire order, duplicates kept
        query_params: Decoded query parameters
        body: Raw request body, exactly as received
    """
    method: str
    path: str
    headers: list[tuple[str, str]]
    query_params: dict[str, str] = field(default_factory=dict)
    body: bytes = b""


@dataclass(frozen=True)
class VerificationContext:
    """
    Information about a successfully verified request.

    Attributes:
        access_key: Access key ID that signed the request
        region: Region from the credential scope
        service: Service from the credential scope
        signed_at: Signing timestamp (X-Amz-Date, ISO 8601 basic format)
        signed_headers: Header names covered by the signature
        presigned: True when the signature was carried in the query string
    """
    access_key: str
    region: str
    service: str
    signed_at: str
    signed_headers: tuple[str, ...] = ()
    presigned: bool = False


@dataclass(frozen=True)
class Verified:
    """Verification succeeded."""
    context: Any


@dataclass(frozen=True)
class VerificationFailure:
    """Verification failed with a machine-readable kind."""
    kind: str
    detail: Any = None

    @property
    def message(self) -> str:
        return f"{self.kind}: {self.detail}"


@dataclass(frozen=True)
class VerificationMessage:
    """Verification failed with a plain message."""
    text: str


VerificationOutcome = Union[Verified, VerificationFailure, VerificationMessage]


@dataclass(frozen=True)
class Allow:
    """Let the request through with the verification context attached."""
    context: Any


@dataclass(frozen=True)
class Deny:
    """Terminate the request with a 401."""
    message: str
    status_code: int = 401


Decision = Union[Allow, Deny]


@dataclass(frozen=True)
class BodyRead:
    """
    Result of a bounded body read.

    Attributes:
        body: Bytes read so far
        complete: False if the body exceeded the configured length
    """
    body: bytes
    complete: bool = True


@dataclass(frozen=True)
class Parsed:
    """Body decoded by a parser."""
    params: dict[str, Any]
    raw_body: bytes


@dataclass(frozen=True)
class TooLarge:
    """Body exceeded the configured length."""
    partial: bytes = b""


ParseResult = Union[Parsed, TooLarge]
