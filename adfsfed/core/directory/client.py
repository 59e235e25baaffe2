"""Microsoft Graph client for tenant domain management."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from adfsfed.core.directory.models import (
    TXT_RECORD_TYPE,
    AuthenticationType,
    DomainRecord,
    FederationConfiguration,
    TxtVerificationRecord,
)
from adfsfed.core.errors import DirectoryApiError
from adfsfed.core.logging import LoggingClient, ProtocolLogger

if TYPE_CHECKING:
    from adfsfed.core.config import DirectorySettings
    from adfsfed.core.directory.session import DirectorySession

logger = logging.getLogger(__name__)


def _raise_for_status(response: httpx.Response) -> None:
    """Raise DirectoryApiError for a non-2xx Graph response."""
    if response.is_success:
        return

    code = None
    message = response.reason_phrase or "Request failed"
    try:
        error = response.json().get("error", {})
        code = error.get("code")
        message = error.get("message") or message
    except ValueError:
        if response.text:
            message = response.text[:200]
    raise DirectoryApiError(response.status_code, code, message)


class DirectoryClient:
    """Domain operations against a tenant through Microsoft Graph.

    Use as a context manager so the underlying HTTP client is closed.
    """

    def __init__(
        self,
        session: DirectorySession,
        settings: DirectorySettings,
        protocol_logger: ProtocolLogger | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.session = session
        self.settings = settings

        kwargs: dict[str, Any] = {
            "base_url": settings.graph_url.rstrip("/") + "/",
            "headers": {
                "Authorization": session.authorization_header,
                "Accept": "application/json",
            },
        }
        if settings.timeout is not None:
            kwargs["timeout"] = settings.timeout
        if transport is not None:
            kwargs["transport"] = transport

        self._http = LoggingClient(protocol_logger=protocol_logger, **kwargs)

    def __enter__(self) -> DirectoryClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> dict[str, Any] | None:
        response = self._http.request(method, path, json=json)
        _raise_for_status(response)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # Tenant

    def get_organization(self) -> dict[str, Any] | None:
        """Get the tenant's organization resource."""
        data = self._request("GET", "organization")
        values = (data or {}).get("value") or []
        return values[0] if values else None

    # Domains

    def list_domains(self) -> list[DomainRecord]:
        """List all domains registered in the tenant."""
        data = self._request("GET", "domains") or {}
        return [DomainRecord.from_graph(item) for item in data.get("value", [])]

    def get_domain(self, name: str) -> DomainRecord | None:
        """Get a domain, or None if it is not registered in the tenant."""
        try:
            data = self._request("GET", f"domains/{name}")
        except DirectoryApiError as e:
            if e.status_code == 404:
                return None
            raise
        return DomainRecord.from_graph(data or {"id": name})

    def get_default_domain(self) -> DomainRecord | None:
        """Get the tenant's current default domain."""
        for domain in self.list_domains():
            if domain.is_default:
                return domain
        return None

    def create_domain(self, name: str) -> DomainRecord:
        """Register a new domain in the tenant."""
        logger.info(f"Creating domain {name}")
        data = self._request("POST", "domains", json={"id": name})
        return DomainRecord.from_graph(data or {"id": name})

    def update_domain(
        self,
        name: str,
        authentication: AuthenticationType | None = None,
        is_default: bool | None = None,
    ) -> None:
        """Change a domain's authentication mode or default flag."""
        body: dict[str, Any] = {}
        if authentication is not None:
            body["authenticationType"] = authentication.value
        if is_default is not None:
            body["isDefault"] = is_default
        if not body:
            return
        logger.debug(f"Updating domain {name}: {body}")
        self._request("PATCH", f"domains/{name}", json=body)

    def verify_domain(self, name: str) -> DomainRecord:
        """Ask the directory to verify domain ownership.

        Raises:
            DirectoryApiError: If the directory cannot verify the domain.
        """
        data = self._request("POST", f"domains/{name}/verify")
        return DomainRecord.from_graph(data or {"id": name})

    def get_verification_records(self, name: str) -> list[TxtVerificationRecord]:
        """Get the TXT records that prove ownership of a domain."""
        data = self._request("GET", f"domains/{name}/verificationDnsRecords") or {}
        return [
            TxtVerificationRecord.from_graph(item)
            for item in data.get("value", [])
            if item.get("recordType") == "Txt" or item.get("@odata.type") == TXT_RECORD_TYPE
        ]

    # Federation

    def get_federation_configuration(self, name: str) -> FederationConfiguration | None:
        """Get the domain's federation configuration, if any."""
        data = self._request("GET", f"domains/{name}/federationConfiguration") or {}
        values = data.get("value", [])
        return FederationConfiguration.from_graph(values[0]) if values else None

    def create_federation_configuration(
        self, name: str, configuration: FederationConfiguration
    ) -> FederationConfiguration:
        """Federate a domain with the given trust settings."""
        logger.info(f"Creating federation configuration for {name}")
        data = self._request(
            "POST", f"domains/{name}/federationConfiguration", json=configuration.to_graph()
        )
        return FederationConfiguration.from_graph(data) if data else configuration

    def update_federation_configuration(
        self, name: str, configuration_id: str, configuration: FederationConfiguration
    ) -> FederationConfiguration:
        """Replace the trust settings of an existing federation configuration."""
        logger.info(f"Updating federation configuration for {name}")
        data = self._request(
            "PATCH",
            f"domains/{name}/federationConfiguration/{configuration_id}",
            json=configuration.to_graph(),
        )
        if data:
            return FederationConfiguration.from_graph(data)
        configuration.id = configuration_id
        return configuration
