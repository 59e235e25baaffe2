"""Core federation workflow implementations."""

from adfsfed.core.errors import (
    AuthenticationError,
    CertificateError,
    CertificateExportError,
    CertificateLoadError,
    ConfigurationError,
    DirectoryApiError,
    FederationError,
    PreconditionError,
    VerificationPendingError,
)
from adfsfed.core.logging import (
    FlowRecord,
    GraphExchange,
    LoggingClient,
    LogLevel,
    ProtocolLogger,
    configure_logging,
    get_protocol_logger,
    redact_sensitive,
    set_protocol_logger,
)

__all__ = [
    # Errors
    "AuthenticationError",
    "CertificateError",
    "CertificateExportError",
    "CertificateLoadError",
    "ConfigurationError",
    "DirectoryApiError",
    "FederationError",
    "PreconditionError",
    "VerificationPendingError",
    # Logging
    "FlowRecord",
    "GraphExchange",
    "LoggingClient",
    "LogLevel",
    "ProtocolLogger",
    "configure_logging",
    "get_protocol_logger",
    "redact_sensitive",
    "set_protocol_logger",
]
