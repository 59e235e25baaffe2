"""Directory data models.

Typed views of the Microsoft Graph domain resources that the federation
workflow reads and writes. Records are owned by the directory service;
these are transient snapshots.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

TXT_RECORD_TYPE = "#microsoft.graph.domainDnsTxtRecord"
INTERNAL_FEDERATION_TYPE = "#microsoft.graph.internalDomainFederation"


class AuthenticationType(str, Enum):
    """Domain authentication mode."""

    MANAGED = "Managed"
    FEDERATED = "Federated"


class VerificationStatus(str, Enum):
    """Domain ownership verification status."""

    VERIFIED = "Verified"
    UNVERIFIED = "Unverified"


@dataclass
class TxtVerificationRecord:
    """DNS TXT record proving control of a domain."""

    label: str
    text: str
    ttl: int | None = None

    @classmethod
    def from_graph(cls, data: dict[str, Any]) -> TxtVerificationRecord:
        """Create from a Graph domainDnsTxtRecord."""
        return cls(
            label=data.get("label", ""),
            text=data.get("text", ""),
            ttl=data.get("ttl"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"type": "TXT", "label": self.label, "text": self.text, "ttl": self.ttl}


@dataclass
class FederationConfiguration:
    """Federation trust settings of a domain (Graph internalDomainFederation)."""

    issuer_uri: str
    passive_sign_in_uri: str
    active_sign_in_uri: str
    sign_out_uri: str
    metadata_exchange_uri: str
    signing_certificate: str
    display_name: str | None = None
    preferred_authentication_protocol: str = "wsFed"
    id: str | None = None

    @classmethod
    def from_graph(cls, data: dict[str, Any]) -> FederationConfiguration:
        """Create from a Graph internalDomainFederation resource."""
        return cls(
            id=data.get("id"),
            display_name=data.get("displayName"),
            issuer_uri=data.get("issuerUri", ""),
            passive_sign_in_uri=data.get("passiveSignInUri", ""),
            active_sign_in_uri=data.get("activeSignInUri", ""),
            sign_out_uri=data.get("signOutUri", ""),
            metadata_exchange_uri=data.get("metadataExchangeUri", ""),
            signing_certificate=data.get("signingCertificate", ""),
            preferred_authentication_protocol=data.get("preferredAuthenticationProtocol", "wsFed"),
        )

    def to_graph(self) -> dict[str, Any]:
        """Convert to a Graph request body."""
        body: dict[str, Any] = {
            "@odata.type": INTERNAL_FEDERATION_TYPE,
            "issuerUri": self.issuer_uri,
            "passiveSignInUri": self.passive_sign_in_uri,
            "activeSignInUri": self.active_sign_in_uri,
            "signOutUri": self.sign_out_uri,
            "metadataExchangeUri": self.metadata_exchange_uri,
            "signingCertificate": self.signing_certificate,
            "preferredAuthenticationProtocol": self.preferred_authentication_protocol,
        }
        if self.display_name:
            body["displayName"] = self.display_name
        return body

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization (certificate omitted)."""
        return {
            "id": self.id,
            "display_name": self.display_name,
            "issuer_uri": self.issuer_uri,
            "passive_sign_in_uri": self.passive_sign_in_uri,
            "active_sign_in_uri": self.active_sign_in_uri,
            "sign_out_uri": self.sign_out_uri,
            "metadata_exchange_uri": self.metadata_exchange_uri,
            "preferred_authentication_protocol": self.preferred_authentication_protocol,
        }


@dataclass
class DomainRecord:
    """State of a domain in the tenant directory."""

    name: str
    status: VerificationStatus = VerificationStatus.UNVERIFIED
    authentication: AuthenticationType = AuthenticationType.MANAGED
    is_default: bool = False
    is_initial: bool = False
    federation: FederationConfiguration | None = None

    @property
    def is_verified(self) -> bool:
        """Whether domain ownership has been verified."""
        return self.status == VerificationStatus.VERIFIED

    @property
    def is_federated(self) -> bool:
        """Whether the domain delegates authentication to a federation server."""
        return self.authentication == AuthenticationType.FEDERATED

    @classmethod
    def from_graph(cls, data: dict[str, Any]) -> DomainRecord:
        """Create from a Graph domain resource."""
        return cls(
            name=data["id"],
            status=VerificationStatus.VERIFIED if data.get("isVerified") else VerificationStatus.UNVERIFIED,
            authentication=AuthenticationType(data.get("authenticationType") or "Managed"),
            is_default=bool(data.get("isDefault")),
            is_initial=bool(data.get("isInitial")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "status": self.status.value,
            "authentication": self.authentication.value,
            "is_default": self.is_default,
            "is_initial": self.is_initial,
            "federation": self.federation.to_dict() if self.federation else None,
        }
