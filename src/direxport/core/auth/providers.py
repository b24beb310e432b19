"""
Bearer token providers.

A TokenProvider produces a bearer token for a named resource. Credential
problems surface as TokenAcquisitionError so they classify as
Authentication faults; transient failures propagate unchanged and are
retried like any other remote call.
"""

from __future__ import annotations

from typing import Any, Callable, Protocol

from azure.core.exceptions import ClientAuthenticationError
from azure.identity.aio import ManagedIdentityCredential

from direxport.core.fetch.errors import TokenAcquisitionError
from direxport.core.logging import get_logger

logger = get_logger("auth.providers")


class TokenProvider(Protocol):
    """Supplies bearer tokens for named resources."""

    async def get_token(self, resource: str, identity_ref: str | None = None) -> str:
        ...


class StaticTokenProvider:
    """Returns a fixed token for every resource (development and tests)."""

    def __init__(self, token: str):
        if not token:
            raise ValueError("token must be non-empty")
        self.token = token

    async def get_token(self, resource: str, identity_ref: str | None = None) -> str:
        return self.token


class ManagedIdentityTokenProvider:
    """Gets tokens for the host's managed identity through azure-identity.

    ``identity_ref`` selects a user-assigned identity by client id; without
    it the system-assigned identity is used. One credential is kept per
    identity and reused until ``close``.
    """

    def __init__(self, credential_factory: Callable[..., Any] = ManagedIdentityCredential):
        self._credential_factory = credential_factory
        self._credentials: dict[str | None, Any] = {}

    def _credential(self, identity_ref: str | None) -> Any:
        credential = self._credentials.get(identity_ref)
        if credential is None:
            if identity_ref:
                logger.info("Using user-assigned managed identity %s...", identity_ref[:8])
                credential = self._credential_factory(client_id=identity_ref)
            else:
                logger.info("Using system-assigned managed identity")
                credential = self._credential_factory()
            self._credentials[identity_ref] = credential
        return credential

    async def get_token(self, resource: str, identity_ref: str | None = None) -> str:
        scope = f"{resource.rstrip('/')}/.default"
        try:
            access = await self._credential(identity_ref).get_token(scope)
        except ClientAuthenticationError as e:
            raise TokenAcquisitionError(
                f"Managed identity could not get a token for {resource}: {e.message}",
                resource=resource,
            ) from e
        return access.token

    async def close(self) -> None:
        """Close every credential opened so far."""
        for credential in self._credentials.values():
            await credential.close()
        self._credentials.clear()
