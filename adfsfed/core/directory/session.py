"""Authenticated sessions to the directory tenant.

A session is an explicit value: it is produced or validated by
ensure_session() and handed to every DirectoryClient that needs it.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx
from azure.core.credentials import TokenCredential
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import ClientSecretCredential, UsernamePasswordCredential

from adfsfed.core.directory.client import DirectoryClient
from adfsfed.core.errors import AuthenticationError, DirectoryApiError

if TYPE_CHECKING:
    from adfsfed.core.config import DirectorySettings

logger = logging.getLogger(__name__)

# Tokens this close to expiry are treated as expired
EXPIRY_SKEW_SECONDS = 60


@dataclass
class DirectoryCredential:
    """Credential for the directory tenant.

    Either a user (username/password) or a service principal
    (client_id/client_secret).
    """

    username: str | None = None
    password: str | None = None
    client_id: str | None = None
    client_secret: str | None = None

    def __post_init__(self) -> None:
        if not (self.is_user or self.is_service_principal):
            raise ValueError(
                "Credential needs a username and password, or a client id and client secret"
            )

    @property
    def is_user(self) -> bool:
        return bool(self.username and self.password)

    @property
    def is_service_principal(self) -> bool:
        return bool(self.client_id and self.client_secret)

    @property
    def principal(self) -> str:
        """Display name of the principal, never the secret."""
        return self.username if self.is_user else f"app:{self.client_id}"

    def to_token_credential(self, tenant_id: str, settings: DirectorySettings) -> TokenCredential:
        """Build the azure-identity credential for this principal."""
        if self.is_service_principal:
            return ClientSecretCredential(
                tenant_id,
                self.client_id,
                self.client_secret,
                authority=settings.authority_host,
            )
        return UsernamePasswordCredential(
            settings.client_id,
            self.username,
            self.password,
            tenant_id=tenant_id,
            authority=settings.authority_host,
        )


@dataclass
class DirectorySession:
    """Authenticated handle to a directory tenant."""

    tenant_id: str
    access_token: str
    expires_on: int | None = None
    credential: DirectoryCredential | None = None

    @property
    def is_expired(self) -> bool:
        if self.expires_on is None:
            return False
        return time.time() >= self.expires_on - EXPIRY_SKEW_SECONDS

    @property
    def authorization_header(self) -> str:
        return f"Bearer {self.access_token}"


def authenticate(
    tenant_id: str,
    credential: DirectoryCredential,
    settings: DirectorySettings,
) -> DirectorySession:
    """Sign in to the tenant and return a new session.

    Raises:
        AuthenticationError: If the directory rejects the credential.
    """
    logger.info(f"Authenticating to tenant {tenant_id} as {credential.principal}")

    try:
        token_credential = credential.to_token_credential(tenant_id, settings)
        token = token_credential.get_token(settings.scope)
    except ClientAuthenticationError as e:
        raise AuthenticationError(f"Failed to authenticate to tenant {tenant_id}: {e.message}") from e
    except ValueError as e:
        # azure-identity validates tenant ids and authorities eagerly
        raise AuthenticationError(f"Failed to authenticate to tenant {tenant_id}: {e}") from e

    return DirectorySession(
        tenant_id=tenant_id,
        access_token=token.token,
        expires_on=token.expires_on,
        credential=credential,
    )


def _organization_matches(organization: dict, tenant_id: str) -> bool:
    wanted = tenant_id.lower()
    if str(organization.get("id", "")).lower() == wanted:
        return True
    return any(
        str(domain.get("name", "")).lower() == wanted
        for domain in organization.get("verifiedDomains") or []
    )


def check_session(
    session: DirectorySession,
    settings: DirectorySettings,
    transport: httpx.BaseTransport | None = None,
) -> bool:
    """Check that a session is usable and belongs to its tenant."""
    if session.is_expired:
        logger.debug("Existing session token has expired")
        return False

    try:
        with DirectoryClient(session, settings, transport=transport) as client:
            organization = client.get_organization()
    except DirectoryApiError as e:
        if e.status_code in (401, 403):
            logger.debug(f"Existing session rejected: {e}")
            return False
        raise

    if organization is None or not _organization_matches(organization, session.tenant_id):
        logger.debug(f"Existing session does not belong to tenant {session.tenant_id}")
        return False
    return True


def ensure_session(
    tenant_id: str,
    settings: DirectorySettings,
    session: DirectorySession | None = None,
    credential: DirectoryCredential | None = None,
    prompt: Callable[[], DirectoryCredential] | None = None,
    transport: httpx.BaseTransport | None = None,
) -> DirectorySession:
    """Guarantee an authenticated session to the tenant.

    An existing session is returned unchanged when it is still valid for the
    tenant. Otherwise the supplied credential is used, or one is requested
    from prompt(). Authentication failures are not retried.

    Args:
        tenant_id: Tenant id or initial domain name.
        settings: Directory connection settings.
        session: Session from an earlier sign-in, if any.
        credential: Credential to sign in with.
        prompt: Called to obtain a credential when none was supplied.
        transport: HTTP transport override for the session check.

    Returns:
        A valid DirectorySession.

    Raises:
        AuthenticationError: If no session can be established.
    """
    if session is not None:
        if session.tenant_id.lower() == tenant_id.lower() and check_session(session, settings, transport):
            logger.info(f"Reusing existing session for tenant {tenant_id}")
            return session
        logger.info(f"Existing session is not valid for tenant {tenant_id}")

    if credential is None:
        if prompt is None:
            raise AuthenticationError(
                f"No credential supplied and no active session for tenant {tenant_id}"
            )
        credential = prompt()

    return authenticate(tenant_id, credential, settings)
