"""
Locating the SigV4 credential scope in request headers or query parameters.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

ALGORITHM = "AWS4-HMAC-SHA256"
SCOPE_TERMINATOR = "aws4_request"

# Query parameters carrying a presigned-URL signature
QUERY_ALGORITHM = "X-Amz-Algorithm"
QUERY_CREDENTIAL = "X-Amz-Credential"
QUERY_DATE = "X-Amz-Date"
QUERY_SIGNED_HEADERS = "X-Amz-SignedHeaders"


@dataclass(frozen=True)
class SignatureScope:
    """
    Where and by whom a request claims to be signed.

    Attributes:
        access_key: Access key ID from the credential
        date: Scope date (YYYYMMDD)
        region: Scope region
        service: Scope service
        signed_at: X-Amz-Date value, empty if absent
        signed_headers: Header names listed as signed
        presigned: True for query-string (presigned URL) signatures
    """
    access_key: str
    date: str
    region: str
    service: str
    signed_at: str = ""
    signed_headers: tuple[str, ...] = ()
    presigned: bool = False


class ScopeError(ValueError):
    """Signature information is missing or malformed."""

    def __init__(self, kind: str, detail: str):
        super().__init__(f"{kind}: {detail}")
        self.kind = kind
        self.detail = detail


def header_values(headers: Iterable[tuple[str, str]]) -> dict[str, list[str]]:
    """
    Group headers by lowercased name, keeping every value in wire order.

    Examples:
        >>> header_values([("Host", "a"), ("X-A", "1"), ("x-a", "2")])
        {'host': ['a'], 'x-a': ['1', '2']}
    """
    grouped: dict[str, list[str]] = {}
    for name, value in headers:
        grouped.setdefault(name.lower(), []).append(value)
    return grouped


def parse_authorization(value: str) -> dict[str, str]:
    """
    Parse a SigV4 Authorization header.

    Returns a dict with ``algorithm`` plus the lowercased component names
    (``credential``, ``signedheaders``, ``signature``).

    Examples:
        >>> parse_authorization(
        ...     "AWS4-HMAC-SHA256 Credential=AK/20170101/us-east-1/svc/aws4_request, "
        ...     "SignedHeaders=host;x-amz-date, Signature=abc")["signedheaders"]
        'host;x-amz-date'
    """
    algorithm, _, rest = value.strip().partition(" ")
    result = {"algorithm": algorithm}
    for item in rest.split(","):
        name, eq, val = item.strip().partition("=")
        if eq:
            result[name.strip().lower()] = val.strip()
    return result


def parse_credential(credential: str) -> tuple[str, str, str, str]:
    """
    Split ``AK/date/region/service/aws4_request`` into its parts.

    Raises:
        ScopeError: If the credential is not a five-part SigV4 scope
    """
    parts = credential.split("/")
    if len(parts) != 5 or parts[4] != SCOPE_TERMINATOR or not all(parts[:4]):
        raise ScopeError("invalid_credential", credential)
    access_key, date, region, service, _ = parts
    return access_key, date, region, service


def find_scope(
    headers: Iterable[tuple[str, str]],
    query_params: Mapping[str, str],
) -> SignatureScope:
    """
    Find the signature scope of a request.

    A presigned URL (``X-Amz-Credential`` query parameter) takes precedence
    over the Authorization header.

    Raises:
        ScopeError: With kind ``missing_authorization``,
            ``unsupported_algorithm`` or ``invalid_credential``
    """
    if QUERY_CREDENTIAL in query_params:
        algorithm = query_params.get(QUERY_ALGORITHM, "")
        if algorithm != ALGORITHM:
            raise ScopeError("unsupported_algorithm", algorithm)
        access_key, date, region, service = parse_credential(query_params[QUERY_CREDENTIAL])
        signed = query_params.get(QUERY_SIGNED_HEADERS, "")
        return SignatureScope(
            access_key=access_key,
            date=date,
            region=region,
            service=service,
            signed_at=query_params.get(QUERY_DATE, ""),
            signed_headers=tuple(h for h in signed.split(";") if h),
            presigned=True,
        )

    grouped = header_values(headers)
    authorization = grouped.get("authorization")
    if not authorization:
        raise ScopeError("missing_authorization", "no Authorization header or X-Amz-Credential")

    parsed = parse_authorization(authorization[0])
    if parsed["algorithm"] != ALGORITHM:
        raise ScopeError("unsupported_algorithm", parsed["algorithm"])
    if "credential" not in parsed:
        raise ScopeError("invalid_credential", "Credential missing from Authorization header")

    access_key, date, region, service = parse_credential(parsed["credential"])
    signed_at = (grouped.get("x-amz-date") or grouped.get("date") or [""])[0]
    return SignatureScope(
        access_key=access_key,
        date=date,
        region=region,
        service=service,
        signed_at=signed_at,
        signed_headers=tuple(h for h in parsed.get("signedheaders", "").split(";") if h),
    )
