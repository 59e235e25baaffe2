"""Cloud directory access: sessions, domain records and the Graph client."""

from adfsfed.core.directory.client import DirectoryClient
from adfsfed.core.directory.models import (
    AuthenticationType,
    DomainRecord,
    FederationConfiguration,
    TxtVerificationRecord,
    VerificationStatus,
)
from adfsfed.core.directory.session import (
    DirectoryCredential,
    DirectorySession,
    authenticate,
    ensure_session,
    check_session,
)

__all__ = [
    "AuthenticationType",
    "DirectoryClient",
    "DirectoryCredential",
    "DirectorySession",
    "DomainRecord",
    "FederationConfiguration",
    "TxtVerificationRecord",
    "VerificationStatus",
    "authenticate",
    "ensure_session",
    "check_session",
]
