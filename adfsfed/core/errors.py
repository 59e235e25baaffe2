"""Exceptions raised by the federation workflow."""

from __future__ import annotations

from typing import Any


class FederationError(Exception):
    """Base exception for adfsfed errors."""


class PreconditionError(FederationError):
    """Raised when no token-signing certificate source is available."""


class AuthenticationError(FederationError):
    """Raised when a session to the directory tenant cannot be established."""


class VerificationPendingError(FederationError):
    """Raised when domain ownership cannot be proven yet.

    Recoverable by publishing the DNS TXT record and re-running; retrying
    immediately will not help.
    """

    def __init__(self, domain: str, record_text: str | None = None, ttl: int | None = None) -> None:
        self.domain = domain
        self.record_text = record_text
        self.ttl = ttl
        if record_text:
            message = (
                f"Domain {domain} is not verified: TXT record '{record_text}' "
                f"was not found in DNS for {domain}"
            )
        else:
            message = f"Domain {domain} could not be verified"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "status": "verification_pending",
            "domain": self.domain,
            "record_type": "TXT",
            "record_text": self.record_text,
            "ttl": self.ttl,
            "error": str(self),
        }


class DirectoryApiError(FederationError):
    """Raised when the directory API returns an error response."""

    def __init__(self, status_code: int, code: str | None, message: str) -> None:
        self.status_code = status_code
        self.code = code
        self.message = message
        detail = f"{code}: {message}" if code else message
        super().__init__(f"Directory API error (HTTP {status_code}) {detail}")


class CertificateError(FederationError):
    """Base exception for certificate-related errors."""


class CertificateLoadError(CertificateError):
    """Raised when a certificate cannot be loaded or decoded."""


class CertificateExportError(CertificateError):
    """Raised when the federation server fails to export its certificate."""


class ConfigurationError(FederationError):
    """Raised when a configured value cannot be used."""
