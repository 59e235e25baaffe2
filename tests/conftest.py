"""Pytest configuration and fixtures."""

from __future__ import annotations

import base64
import json
import logging
from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from adfsfed.core.config import AppConfig
from adfsfed.core.directory import DirectorySession
from adfsfed.core.logging import ProtocolLogger, package_logger, set_protocol_logger

TENANT_ID = "T1"
INITIAL_DOMAIN = "t1.onmicrosoft.com"
VALID_TOKEN = "token-1"
GRAPH_PREFIX = "/v1.0/"


def make_certificate(
    common_name: str = "ADFS Signing - fs.example.org",
    days_valid: int = 365,
    not_before: datetime | None = None,
) -> x509.Certificate:
    """Generate a self-signed token-signing certificate."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    start = not_before or datetime.now(UTC) - timedelta(days=1)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(start)
        .not_valid_after(start + timedelta(days=days_valid))
        .sign(private_key, hashes.SHA256())
    )


def _error(status: int, code: str, message: str) -> httpx.Response:
    return httpx.Response(status, json={"error": {"code": code, "message": message}})


class GraphStub:
    """In-memory Microsoft Graph tenant served through httpx.MockTransport.

    Domains whose TXT record is "published" can be verified; the same set
    backs resolve_txt() so DNS and directory agree.
    """

    def __init__(self, tenant_id: str = TENANT_ID, txt_text: str = "MS=ms12345") -> None:
        self.tenant_id = tenant_id
        self.txt_text = txt_text
        self.domains: dict[str, dict[str, Any]] = {
            INITIAL_DOMAIN: {
                "id": INITIAL_DOMAIN,
                "isVerified": True,
                "authenticationType": "Managed",
                "isDefault": True,
                "isInitial": True,
            }
        }
        self.federation: dict[str, dict[str, Any]] = {}
        self.issued_txt: dict[str, str] = {}
        self.published: set[str] = set()
        # Federated domains refuse verification until switched to Managed
        self.federated_blocks_verify = False
        self.valid_tokens = {VALID_TOKEN}
        self.requests: list[tuple[str, str, dict[str, Any] | None]] = []

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def add_domain(
        self,
        name: str,
        verified: bool = False,
        authentication: str = "Managed",
        is_default: bool = False,
    ) -> None:
        self.domains[name] = {
            "id": name,
            "isVerified": verified,
            "authenticationType": authentication,
            "isDefault": is_default,
            "isInitial": False,
        }
        self.issued_txt.setdefault(name, self.txt_text)

    def publish(self, name: str) -> None:
        self.published.add(name)

    def resolve_txt(self, name: str) -> list[str]:
        if name in self.published:
            return ["v=spf1 -all", self.issued_txt.get(name, self.txt_text)]
        return ["v=spf1 -all"]

    def calls(self, method: str, suffix: str = "") -> list[tuple[str, str, dict[str, Any] | None]]:
        return [r for r in self.requests if r[0] == method and r[1].endswith(suffix)]

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        assert path.startswith(GRAPH_PREFIX), path
        parts = path[len(GRAPH_PREFIX):].strip("/").split("/")
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, "/".join(parts), body))

        token = request.headers.get("Authorization", "").removeprefix("Bearer ")
        if token not in self.valid_tokens:
            return _error(401, "InvalidAuthenticationToken", "Access token is invalid")

        if parts == ["organization"]:
            return httpx.Response(200, json={"value": [{
                "id": self.tenant_id,
                "verifiedDomains": [{"name": INITIAL_DOMAIN}],
            }]})

        if parts[0] != "domains":
            return _error(404, "Request_ResourceNotFound", "Unknown resource")

        if len(parts) == 1:
            if request.method == "GET":
                return httpx.Response(200, json={"value": list(self.domains.values())})
            name = body["id"]
            self.add_domain(name)
            return httpx.Response(201, json=self.domains[name])

        name = parts[1]
        domain = self.domains.get(name)
        if domain is None:
            return _error(404, "Request_ResourceNotFound", f"Domain {name} not found")

        if len(parts) == 2:
            if request.method == "PATCH":
                return self._patch_domain(domain, body)
            return httpx.Response(200, json=domain)

        action = parts[2]
        if action == "verify":
            blocked = self.federated_blocks_verify and domain["authenticationType"] == "Federated"
            if name in self.published and not blocked:
                domain["isVerified"] = True
                return httpx.Response(200, json=domain)
            return _error(400, "Request_BadRequest", "Domain verification failed")

        if action == "verificationDnsRecords":
            return httpx.Response(200, json={"value": [
                {
                    "@odata.type": "#microsoft.graph.domainDnsMxRecord",
                    "recordType": "Mx",
                    "label": name,
                    "mailExchange": "ms12345.msv1.invalid",
                    "ttl": 3600,
                },
                {
                    "@odata.type": "#microsoft.graph.domainDnsTxtRecord",
                    "recordType": "Txt",
                    "label": name,
                    "text": self.issued_txt.get(name, self.txt_text),
                    "ttl": 3600,
                },
            ]})

        if action == "federationConfiguration":
            return self._federation(request.method, domain, parts, body)

        return _error(404, "Request_ResourceNotFound", "Unknown action")

    def _patch_domain(self, domain: dict[str, Any], body: dict[str, Any]) -> httpx.Response:
        if body.get("isDefault"):
            if not domain["isVerified"]:
                return _error(400, "Request_BadRequest", "Unverified domain cannot be default")
            for other in self.domains.values():
                other["isDefault"] = False
            domain["isDefault"] = True
        if body.get("authenticationType") == "Managed":
            domain["authenticationType"] = "Managed"
            self.federation.pop(domain["id"], None)
        return httpx.Response(204)

    def _federation(
        self,
        method: str,
        domain: dict[str, Any],
        parts: list[str],
        body: dict[str, Any] | None,
    ) -> httpx.Response:
        name = domain["id"]
        existing = self.federation.get(name)

        if method == "GET":
            return httpx.Response(200, json={"value": [existing] if existing else []})

        assert body is not None
        if not domain["isVerified"]:
            return _error(400, "Request_BadRequest", "Domain must be verified")

        if method == "POST":
            if existing:
                return _error(409, "Request_Conflict", "Federation configuration exists")
            self.federation[name] = {**body, "id": f"fed-{name}"}
            domain["authenticationType"] = "Federated"
            return httpx.Response(201, json=self.federation[name])

        if existing is None or parts[3] != existing["id"]:
            return _error(404, "Request_ResourceNotFound", "Federation configuration not found")
        existing.update(body)
        return httpx.Response(200, json=existing)


@pytest.fixture(autouse=True)
def protocol_logger() -> Generator[ProtocolLogger, None, None]:
    """Give each test a fresh global protocol logger."""
    logger = ProtocolLogger()
    set_protocol_logger(logger)
    yield logger
    # Drop handlers configure_logging() bound to captured streams
    package_logger.handlers.clear()
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def graph() -> GraphStub:
    """In-memory Graph tenant."""
    return GraphStub()


@pytest.fixture
def app_config() -> AppConfig:
    """Default configuration."""
    return AppConfig()


@pytest.fixture
def session() -> DirectorySession:
    """A valid session for the stub tenant."""
    return DirectorySession(tenant_id=TENANT_ID, access_token=VALID_TOKEN)


@pytest.fixture
def certificate() -> x509.Certificate:
    """A valid token-signing certificate."""
    return make_certificate()


@pytest.fixture
def certificate_b64(certificate: x509.Certificate) -> str:
    """Base64 DER of the token-signing certificate."""
    return base64.b64encode(certificate.public_bytes(serialization.Encoding.DER)).decode("ascii")
