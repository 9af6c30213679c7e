"""
Verification providers: resolve an access key ID to its credential.

A provider answers one question: which secret belongs to this access key,
and which regions and services may it sign for. Anything with a
``lookup(access_key)`` method works.
"""

from __future__ import annotations

import importlib
import logging
import os
from pathlib import Path
from typing import Any, Iterable, Mapping, Protocol, runtime_checkable
from urllib.parse import quote

import httpx

from .errors import ConfigurationError, ProviderError
from .models import Credential

logger = logging.getLogger(__name__)

DEFAULT_REGIONS = "us-east-1"
DEFAULT_SERVICES = "my-service"
DEFAULT_CREDS_FILE = "sigaws_quickstart.creds"


@runtime_checkable
class Provider(Protocol):
    def lookup(self, access_key: str) -> Credential | None:
        """Return the credential for ``access_key``, or None if unknown."""
        ...


def _split_list(value: str | Iterable[str]) -> frozenset[str]:
    if isinstance(value, str):
        value = value.split(",")
    return frozenset(item.strip() for item in value if item.strip())


class QuickStartProvider:
    """
    Provider backed by an in-memory table of access keys.

    Every credential shares the same allowed regions and services.

    Args:
        creds: Mapping of access key ID to secret
        regions: Allowed regions, as a list or comma separated string
        services: Allowed services, as a list or comma separated string

    Example:
        >>> provider = QuickStartProvider(
        ...     {"AKIDEXAMPLE": "secret"},
        ...     regions="us-east-1,eu-west-1",
        ...     services="my-service",
        ... )
        >>> provider.lookup("AKIDEXAMPLE").regions == {"us-east-1", "eu-west-1"}
        True
    """

    def __init__(
        self,
        creds: Mapping[str, str],
        regions: str | Iterable[str] = DEFAULT_REGIONS,
        services: str | Iterable[str] = DEFAULT_SERVICES,
    ):
        self.creds = dict(creds)
        self.regions = _split_list(regions)
        self.services = _split_list(services)

    def lookup(self, access_key: str) -> Credential | None:
        secret = self.creds.get(access_key)
        if secret is None:
            return None
        return Credential(
            access_key=access_key,
            secret=secret,
            regions=self.regions,
            services=self.services,
        )

    @staticmethod
    def read_creds_file(path: str | os.PathLike[str]) -> dict[str, str]:
        """
        Read ``access_key:secret`` lines.

        Blank lines and lines starting with ``#`` are skipped.

        Raises:
            ConfigurationError: On a line without a colon
        """
        creds: dict[str, str] = {}
        text = Path(path).read_text(encoding="utf-8")
        for lineno, line in enumerate(text.splitlines(), start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            access_key, sep, secret = line.partition(":")
            if not sep or not access_key.strip() or not secret.strip():
                raise ConfigurationError(f"{path}:{lineno}: expected access_key:secret")
            creds[access_key.strip()] = secret.strip()
        return creds

    @classmethod
    def from_file(
        cls,
        path: str | os.PathLike[str],
        regions: str | Iterable[str] = DEFAULT_REGIONS,
        services: str | Iterable[str] = DEFAULT_SERVICES,
    ) -> "QuickStartProvider":
        creds = cls.read_creds_file(path)
        logger.info("Loaded %d credentials from %s", len(creds), path)
        return cls(creds, regions=regions, services=services)

    @classmethod
    def from_env(cls) -> "QuickStartProvider":
        """
        Build a provider from environment variables.

        SIGAWS_REGIONS - comma separated regions (default: us-east-1)
        SIGAWS_SERVICES - comma separated services (default: my-service)
        SIGAWS_CREDS_FILE - credentials file (default: sigaws_quickstart.creds)
        """
        return cls.from_file(
            os.getenv("SIGAWS_CREDS_FILE", DEFAULT_CREDS_FILE),
            regions=os.getenv("SIGAWS_REGIONS", DEFAULT_REGIONS),
            services=os.getenv("SIGAWS_SERVICES", DEFAULT_SERVICES),
        )


class HTTPProvider:
    """
    Provider that asks a credential service over HTTP.

    ``GET {base_url}/{access_key}`` must answer 200 with
    ``{"secret": ..., "regions": [...], "services": [...]}`` or 404 for an
    unknown key.

    Args:
        base_url: Base URL of the credential service
        timeout_s: Request timeout in seconds. Default: 5.0
        headers: Extra headers sent with every lookup (e.g. an API token)
    """

    def __init__(
        self,
        base_url: str,
        timeout_s: float = 5.0,
        headers: Mapping[str, str] | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.headers = dict(headers or {})

    def lookup(self, access_key: str) -> Credential | None:
        url = f"{self.base_url}/{quote(access_key, safe='')}"
        try:
            with httpx.Client(timeout=self.timeout_s, headers=self.headers) as client:
                response = client.get(url)
        except httpx.HTTPError as e:
            raise ProviderError(f"Credential service unreachable: {e}") from e

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise ProviderError(f"Credential service error: {response.status_code}")

        try:
            data = response.json()
            secret = data["secret"]
        except (ValueError, KeyError, TypeError) as e:
            raise ProviderError(f"Invalid credential service response: {e}") from e

        return Credential(
            access_key=access_key,
            secret=secret,
            regions=_split_list(data.get("regions") or ()),
            services=_split_list(data.get("services") or ()),
        )


def resolve_provider(name_or_provider: Any) -> Provider | None:
    """
    Turn a provider setting into a provider.

    Accepts None, a provider instance, or a ``"module:attribute"`` string
    naming a provider instance, a provider class, or a zero-argument
    factory.

    Raises:
        ConfigurationError: If the name cannot be imported or does not
            resolve to a provider
    """
    if name_or_provider is None:
        return None

    target = _import_provider(name_or_provider) if isinstance(name_or_provider, str) else name_or_provider

    # Classes satisfy the protocol check too, so test for them first
    if isinstance(target, type) or (callable(target) and not isinstance(target, Provider)):
        try:
            target = target()
        except TypeError as e:
            raise ConfigurationError(f"Cannot instantiate provider {name_or_provider!r}: {e}") from e

    if not isinstance(target, Provider):
        raise ConfigurationError(f"Not a verification provider: {name_or_provider!r}")
    return target


def _import_provider(name: str) -> Any:
    module_name, sep, attr = name.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(f"Provider must be given as 'module:attribute', got {name!r}")
    try:
        target: Any = importlib.import_module(module_name)
        for part in attr.split("."):
            target = getattr(target, part)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Cannot import provider {name!r}: {e}") from e
    return target
