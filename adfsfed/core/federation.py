"""Domain federation workflow.

Federating a domain runs four phases in order:

1. obtain the token-signing certificate (supplied or exported from AD FS),
2. ensure an authenticated session to the tenant,
3. register the domain, checking the DNS TXT proof for new domains,
4. confirm verification and apply the federation trust settings.

Each phase fails fast. Nothing is retried or rolled back: a domain created
in phase 3 stays unverified until the TXT record is published and the run
is repeated.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from fnmatch import fnmatch
from functools import partial
from typing import TYPE_CHECKING, Any

import httpx

from adfsfed.core.config import DEFAULT_DOMAIN_PATTERN
from adfsfed.core.crypto import AdfsCertificateStore, obtain_signing_certificate
from adfsfed.core.directory import (
    AuthenticationType,
    DirectoryClient,
    DirectoryCredential,
    DirectorySession,
    DomainRecord,
    FederationConfiguration,
    ensure_session,
)
from adfsfed.core.dns import resolve_txt_records
from adfsfed.core.errors import DirectoryApiError, VerificationPendingError
from adfsfed.core.logging import get_protocol_logger

if TYPE_CHECKING:
    from adfsfed.core.config import AppConfig

logger = logging.getLogger(__name__)

# Resolves a domain to its published TXT values
TxtResolver = Callable[[str], list[str]]

# Decides from (current default domain, federated domain) whether to make
# the federated domain the tenant default
DefaultDomainPredicate = Callable[[DomainRecord | None, DomainRecord], bool]


def _bare_host(value: str) -> str:
    """Strip scheme, path and trailing dots from a host name."""
    host = value.strip()
    for scheme in ("https://", "http://"):
        if host.lower().startswith(scheme):
            host = host[len(scheme):]
    return host.split("/", 1)[0].rstrip(".").lower()


@dataclass(frozen=True)
class FederationEndpoints:
    """Federation server endpoints registered with the directory."""

    active_logon: str
    passive_logon: str
    logoff: str
    metadata_exchange: str
    issuer: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for serialization."""
        return {
            "active_logon": self.active_logon,
            "passive_logon": self.passive_logon,
            "logoff": self.logoff,
            "metadata_exchange": self.metadata_exchange,
            "issuer": self.issuer,
        }


def build_federation_endpoints(server_host: str, domain: str) -> FederationEndpoints:
    """Derive the AD FS endpoints for a federated domain.

    Args:
        server_host: Public host name of the federation server (e.g. fs.example.org).
        domain: Domain being federated (e.g. example.org).

    Returns:
        FederationEndpoints for the trust.
    """
    host = _bare_host(server_host)
    base = f"https://{host}/adfs"
    return FederationEndpoints(
        active_logon=f"{base}/services/trust/2005/usernamemixed",
        passive_logon=f"{base}/ls/",
        logoff=f"{base}/ls/",
        metadata_exchange=f"{base}/services/trust/mex",
        # Issuer is per domain, not per server
        issuer=f"http://{_bare_host(domain)}/adfs/services/trust/",
    )


@dataclass
class DefaultDomainSelector:
    """Selects the federated domain as tenant default by pattern.

    The federated domain becomes the default when the tenant's current
    default domain name matches ``pattern`` (fnmatch, case-insensitive).
    The stock pattern targets tenants still defaulting to their initial
    ``*.onmicrosoft.com`` domain. A pattern of None never selects.
    """

    pattern: str | None = DEFAULT_DOMAIN_PATTERN

    def __call__(self, current_default: DomainRecord | None, domain: DomainRecord) -> bool:
        if not self.pattern or current_default is None or domain.is_default:
            return False
        return fnmatch(current_default.name.lower(), self.pattern.lower())


@dataclass
class FederationRequest:
    """A request to federate one domain."""

    tenant_id: str
    domain: str
    server_host: str
    certificate: str | None = None
    credential: DirectoryCredential | None = None

    def __post_init__(self) -> None:
        self.domain = _bare_host(self.domain)
        self.server_host = _bare_host(self.server_host)
        if not self.tenant_id or not self.tenant_id.strip():
            raise ValueError("Tenant identifier is required")
        if not self.domain:
            raise ValueError("Domain is required")
        if not self.server_host:
            raise ValueError("Federation server host is required")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization (secrets omitted)."""
        return {
            "tenant_id": self.tenant_id,
            "domain": self.domain,
            "server_host": self.server_host,
            "certificate_supplied": self.certificate is not None,
            "principal": self.credential.principal if self.credential else None,
        }


def register_domain(client: DirectoryClient, domain: str, resolve_txt: TxtResolver) -> DomainRecord:
    """Ensure the domain is registered in the tenant.

    An already registered domain is returned as is. A new domain is created
    and its TXT verification record is checked against public DNS once.

    Raises:
        VerificationPendingError: If the new domain's TXT record is not published.
    """
    existing = client.get_domain(domain)
    if existing is not None:
        logger.info(f"Domain {domain} is already registered ({existing.status.value})")
        return existing

    record = client.create_domain(domain)

    txt_records = client.get_verification_records(domain)
    if not txt_records:
        raise VerificationPendingError(domain)
    expected = txt_records[0]

    logger.info(f"Checking DNS for TXT record {expected.text}")
    if expected.text not in resolve_txt(domain):
        raise VerificationPendingError(domain, expected.text, expected.ttl)

    return record


def _confirm_verification(client: DirectoryClient, record: DomainRecord) -> DomainRecord:
    """Ask the directory to verify a domain; a refusal leaves it unverified."""
    try:
        return client.verify_domain(record.name)
    except DirectoryApiError as e:
        # Graph answers 400 when the proof is not found
        if e.status_code != 400:
            raise
        logger.warning(f"Domain {record.name} could not be verified yet: {e.message}")
        return client.get_domain(record.name) or record


def _verification_error(client: DirectoryClient, domain: str) -> VerificationPendingError:
    records = client.get_verification_records(domain)
    if records:
        return VerificationPendingError(domain, records[0].text, records[0].ttl)
    return VerificationPendingError(domain)


def configure_federation(
    client: DirectoryClient,
    record: DomainRecord,
    endpoints: FederationEndpoints,
    signing_certificate: str,
    select_default: DefaultDomainPredicate | None = None,
    display_name: str | None = None,
    preferred_protocol: str = "wsFed",
) -> DomainRecord:
    """Confirm verification and apply the federation trust settings.

    Args:
        client: Directory client for the tenant.
        record: Domain as registered.
        endpoints: Federation server endpoints.
        signing_certificate: Base64 DER token-signing certificate.
        select_default: Predicate deciding whether the domain becomes default.
        display_name: Display name of the federation configuration.
        preferred_protocol: Federation protocol (wsFed or saml).

    Returns:
        The final domain record, with its federation configuration.

    Raises:
        VerificationPendingError: If the domain cannot be verified.
    """
    name = record.name

    if not record.is_verified:
        record = _confirm_verification(client, record)

        if not record.is_verified and record.is_federated:
            # A federated domain may need to pass through Managed to verify
            logger.warning(f"Domain {name} is unverified but Federated; switching to Managed")
            client.update_domain(name, authentication=AuthenticationType.MANAGED)
            record = _confirm_verification(client, record)

        if not record.is_verified:
            raise _verification_error(client, name)

        logger.info(f"Domain {name} is verified")

    if select_default is not None:
        current_default = client.get_default_domain()
        if select_default(current_default, record):
            logger.info(f"Making {name} the default domain")
            client.update_domain(name, is_default=True)

    configuration = FederationConfiguration(
        display_name=display_name or name,
        issuer_uri=endpoints.issuer,
        passive_sign_in_uri=endpoints.passive_logon,
        active_sign_in_uri=endpoints.active_logon,
        sign_out_uri=endpoints.logoff,
        metadata_exchange_uri=endpoints.metadata_exchange,
        signing_certificate=signing_certificate,
        preferred_authentication_protocol=preferred_protocol,
    )

    existing = client.get_federation_configuration(name)
    if existing is not None and existing.id:
        applied = client.update_federation_configuration(name, existing.id, configuration)
    else:
        applied = client.create_federation_configuration(name, configuration)

    final = client.get_domain(name) or record
    final.federation = applied
    logger.info(
        f"Domain {final.name}: {final.status.value}, {final.authentication.value}, "
        f"issuer {applied.issuer_uri}"
    )
    return final


def federate_domain(
    request: FederationRequest,
    config: AppConfig,
    session: DirectorySession | None = None,
    prompt: Callable[[], DirectoryCredential] | None = None,
    store: AdfsCertificateStore | None = None,
    resolve_txt: TxtResolver | None = None,
    select_default: DefaultDomainPredicate | None = None,
    transport: httpx.BaseTransport | None = None,
) -> DomainRecord:
    """Federate a domain with the federation server.

    Args:
        request: What to federate and how to authenticate.
        config: Application configuration.
        session: Existing directory session to reuse if still valid.
        prompt: Called for a credential when neither session nor credential works.
        store: AD FS certificate store; a default one is used if not given.
        resolve_txt: TXT resolver; public DNS by default.
        select_default: Default-domain predicate; built from config if not given.
        transport: HTTP transport override for the directory client.

    Returns:
        The final domain record.

    Raises:
        PreconditionError: If no certificate source is available.
        ConfigurationError: If the federation display name template is invalid.
        AuthenticationError: If the tenant session cannot be established.
        VerificationPendingError: If domain ownership is not yet provable.
        DirectoryApiError: If the directory rejects a call.
    """
    display_name = config.federation.display_name_for(request.domain)
    endpoints = build_federation_endpoints(request.server_host, request.domain)

    if resolve_txt is None:
        resolve_txt = partial(resolve_txt_records, nameservers=config.dns.nameservers)

    if select_default is None:
        select_default = DefaultDomainSelector(config.federation.default_domain_pattern)

    if request.certificate is None and store is None:
        store = AdfsCertificateStore(config.federation.powershell)
    certificate = obtain_signing_certificate(request.certificate, store)

    with get_protocol_logger().flow(f"federate_domain {request.domain}"):
        session = ensure_session(
            request.tenant_id,
            config.directory,
            session=session,
            credential=request.credential,
            prompt=prompt,
            transport=transport,
        )

        with DirectoryClient(session, config.directory, transport=transport) as client:
            record = register_domain(client, request.domain, resolve_txt)
            return configure_federation(
                client,
                record,
                endpoints,
                certificate.base64,
                select_default=select_default,
                display_name=display_name,
                preferred_protocol=config.federation.preferred_protocol,
            )
