"""Tests for the Graph directory client and sessions."""

import time

import httpx
import pytest
from azure.core.credentials import AccessToken
from azure.core.exceptions import ClientAuthenticationError

from adfsfed.core.config import AppConfig
from adfsfed.core.directory import (
    AuthenticationType,
    DirectoryClient,
    DirectoryCredential,
    DirectorySession,
    DomainRecord,
    FederationConfiguration,
    VerificationStatus,
    ensure_session,
    check_session,
)
from adfsfed.core.directory import session as session_module
from adfsfed.core.errors import AuthenticationError, DirectoryApiError
from tests.conftest import INITIAL_DOMAIN, TENANT_ID, GraphStub


class FakeTokenCredential:
    """Stands in for an azure-identity credential."""

    instances: list["FakeTokenCredential"] = []

    def __init__(self, *args, **kwargs) -> None:
        self.args = args
        self.kwargs = kwargs
        self.scopes: tuple[str, ...] = ()
        FakeTokenCredential.instances.append(self)

    def get_token(self, *scopes: str, **kwargs) -> AccessToken:
        self.scopes = scopes
        return AccessToken("token-1", int(time.time()) + 3600)


class RejectingTokenCredential(FakeTokenCredential):
    def get_token(self, *scopes: str, **kwargs) -> AccessToken:
        raise ClientAuthenticationError(message="AADSTS50126: Invalid username or password")


@pytest.fixture
def fake_credentials(monkeypatch: pytest.MonkeyPatch) -> type[FakeTokenCredential]:
    FakeTokenCredential.instances = []
    monkeypatch.setattr(session_module, "ClientSecretCredential", FakeTokenCredential)
    monkeypatch.setattr(session_module, "UsernamePasswordCredential", FakeTokenCredential)
    return FakeTokenCredential


class TestDomainRecord:
    """Tests for DomainRecord."""

    def test_from_graph(self) -> None:
        record = DomainRecord.from_graph({
            "id": "example.org",
            "isVerified": True,
            "authenticationType": "Federated",
            "isDefault": False,
        })

        assert record.status == VerificationStatus.VERIFIED
        assert record.authentication == AuthenticationType.FEDERATED
        assert record.is_federated

    def test_from_graph_defaults_to_managed(self) -> None:
        record = DomainRecord.from_graph({"id": "example.org"})

        assert record.status == VerificationStatus.UNVERIFIED
        assert record.authentication == AuthenticationType.MANAGED

    def test_to_dict(self) -> None:
        data = DomainRecord(name="example.org").to_dict()

        assert data["status"] == "Unverified"
        assert data["authentication"] == "Managed"
        assert data["federation"] is None


class TestFederationConfiguration:
    """Tests for FederationConfiguration."""

    def test_to_dict_omits_certificate(self) -> None:
        configuration = FederationConfiguration(
            issuer_uri="http://example.org/adfs/services/trust/",
            passive_sign_in_uri="https://fs.example.org/adfs/ls/",
            active_sign_in_uri="https://fs.example.org/adfs/services/trust/2005/usernamemixed",
            sign_out_uri="https://fs.example.org/adfs/ls/",
            metadata_exchange_uri="https://fs.example.org/adfs/services/trust/mex",
            signing_certificate="MIIBsecret",
        )

        assert "MIIBsecret" not in str(configuration.to_dict())
        assert configuration.to_graph()["signingCertificate"] == "MIIBsecret"


class TestDirectoryClient:
    """Tests for DirectoryClient against the Graph stub."""

    def test_get_domain_not_found(self, graph: GraphStub, app_config: AppConfig, session: DirectorySession) -> None:
        with DirectoryClient(session, app_config.directory, transport=graph.transport) as client:
            assert client.get_domain("missing.example") is None

    def test_list_domains(self, graph: GraphStub, app_config: AppConfig, session: DirectorySession) -> None:
        graph.add_domain("example.org")

        with DirectoryClient(session, app_config.directory, transport=graph.transport) as client:
            names = [d.name for d in client.list_domains()]
            default = client.get_default_domain()

        assert names == [INITIAL_DOMAIN, "example.org"]
        assert default is not None
        assert default.name == INITIAL_DOMAIN

    def test_verification_records_filtered_to_txt(
        self, graph: GraphStub, app_config: AppConfig, session: DirectorySession
    ) -> None:
        graph.add_domain("example.org")

        with DirectoryClient(session, app_config.directory, transport=graph.transport) as client:
            records = client.get_verification_records("example.org")

        assert len(records) == 1
        assert records[0].text == "MS=ms12345"
        assert records[0].ttl == 3600

    def test_error_response_raises(self, graph: GraphStub, app_config: AppConfig) -> None:
        bad_session = DirectorySession(tenant_id=TENANT_ID, access_token="wrong")

        with DirectoryClient(bad_session, app_config.directory, transport=graph.transport) as client:
            with pytest.raises(DirectoryApiError) as exc_info:
                client.list_domains()

        assert exc_info.value.status_code == 401
        assert exc_info.value.code == "InvalidAuthenticationToken"

    def test_non_json_error(self, app_config: AppConfig, session: DirectorySession) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(502, text="Bad gateway"))

        with DirectoryClient(session, app_config.directory, transport=transport) as client:
            with pytest.raises(DirectoryApiError, match="Bad gateway"):
                client.list_domains()

    def test_update_domain_without_changes_sends_nothing(
        self, graph: GraphStub, app_config: AppConfig, session: DirectorySession
    ) -> None:
        graph.add_domain("example.org")

        with DirectoryClient(session, app_config.directory, transport=graph.transport) as client:
            client.update_domain("example.org")

        assert graph.calls("PATCH") == []

    def test_authorization_header(self, app_config: AppConfig, session: DirectorySession) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["authorization"] = request.headers["Authorization"]
            seen["url"] = str(request.url)
            return httpx.Response(200, json={"value": []})

        with DirectoryClient(session, app_config.directory, transport=httpx.MockTransport(handler)) as client:
            client.list_domains()

        assert seen["authorization"] == "Bearer token-1"
        assert seen["url"] == "https://graph.microsoft.com/v1.0/domains"


class TestDirectoryCredential:
    """Tests for DirectoryCredential."""

    def test_requires_complete_credential(self) -> None:
        with pytest.raises(ValueError):
            DirectoryCredential(username="admin@example.org")

    def test_principal_never_shows_secret(self) -> None:
        credential = DirectoryCredential(client_id="app-1", client_secret="s3cret")

        assert credential.principal == "app:app-1"
        assert credential.is_service_principal


class TestEnsureSession:
    """Tests for session establishment."""

    def test_valid_session_is_reused(
        self, graph: GraphStub, app_config: AppConfig, session: DirectorySession, fake_credentials
    ) -> None:
        def prompt() -> DirectoryCredential:
            raise AssertionError("must not prompt")

        result = ensure_session(TENANT_ID, app_config.directory, session=session, prompt=prompt, transport=graph.transport)

        assert result is session
        assert fake_credentials.instances == []

    def test_session_for_other_tenant_is_not_reused(
        self, graph: GraphStub, app_config: AppConfig, fake_credentials
    ) -> None:
        other = DirectorySession(tenant_id="T2", access_token="token-1")
        credential = DirectoryCredential(username="admin@example.org", password="pw")

        result = ensure_session(TENANT_ID, app_config.directory, session=other, credential=credential, transport=graph.transport)

        assert result is not other
        assert result.tenant_id == TENANT_ID

    def test_tenant_matched_by_initial_domain(self, graph: GraphStub, app_config: AppConfig) -> None:
        session = DirectorySession(tenant_id=INITIAL_DOMAIN, access_token="token-1")

        assert check_session(session, app_config.directory, transport=graph.transport) is True

    def test_expired_session_is_not_checked(self, graph: GraphStub, app_config: AppConfig) -> None:
        session = DirectorySession(tenant_id=TENANT_ID, access_token="token-1", expires_on=int(time.time()) - 10)

        assert check_session(session, app_config.directory, transport=graph.transport) is False
        assert graph.requests == []

    def test_invalid_session_falls_back_to_prompt(
        self, graph: GraphStub, app_config: AppConfig, fake_credentials
    ) -> None:
        stale = DirectorySession(tenant_id=TENANT_ID, access_token="stale")
        prompted = []

        def prompt() -> DirectoryCredential:
            prompted.append(True)
            return DirectoryCredential(username="admin@example.org", password="pw")

        result = ensure_session(TENANT_ID, app_config.directory, session=stale, prompt=prompt, transport=graph.transport)

        assert prompted == [True]
        assert result.access_token == "token-1"
        assert result.credential is not None
        assert result.credential.username == "admin@example.org"

    def test_user_credential_uses_public_client(self, app_config: AppConfig, fake_credentials) -> None:
        credential = DirectoryCredential(username="admin@example.org", password="pw")

        ensure_session(TENANT_ID, app_config.directory, credential=credential)

        created = fake_credentials.instances[0]
        assert created.args[0] == app_config.directory.client_id
        assert created.kwargs["tenant_id"] == TENANT_ID
        assert created.scopes == (app_config.directory.scope,)

    def test_service_principal_credential(self, app_config: AppConfig, fake_credentials) -> None:
        credential = DirectoryCredential(client_id="app-1", client_secret="s3cret")

        result = ensure_session(TENANT_ID, app_config.directory, credential=credential)

        created = fake_credentials.instances[0]
        assert created.args == (TENANT_ID, "app-1", "s3cret")
        assert result.expires_on is not None

    def test_rejected_credential_raises(self, app_config: AppConfig, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(session_module, "UsernamePasswordCredential", RejectingTokenCredential)
        credential = DirectoryCredential(username="admin@example.org", password="wrong")

        with pytest.raises(AuthenticationError, match="AADSTS50126"):
            ensure_session(TENANT_ID, app_config.directory, credential=credential)

    def test_no_credential_and_no_prompt_raises(self, app_config: AppConfig) -> None:
        with pytest.raises(AuthenticationError, match="No credential supplied"):
            ensure_session(TENANT_ID, app_config.directory)
