"""Tests for Google OAuth2 token acquisition."""

import json
from urllib.parse import parse_qs

import google.auth
import google.auth.jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from google.auth.exceptions import DefaultCredentialsError

from scc.google_auth import GoogleAuth
from shared.constants import CLOUD_PLATFORM_SCOPE
from shared.exceptions import AuthenticationError

CLIENT_EMAIL = "scanner@project.iam.gserviceaccount.com"
TOKEN_URI = "https://oauth2.googleapis.com/token"
STS_TOKEN_URL = "https://sts.googleapis.com/v1/token"


class FakeResponse:
    def __init__(self, status: int, body: dict):
        self.status = status
        self.headers = {"content-type": "application/json"}
        self.data = json.dumps(body).encode("utf-8")


class FakeTokenEndpoint:
    """google-auth transport answering token requests with a canned body."""

    def __init__(self, status: int = 200, body: dict | None = None):
        self.status = status
        self.body = body if body is not None else {"access_token": "minted-token", "expires_in": 3600}
        self.requests: list[dict] = []

    def __call__(self, url, method="GET", body=None, headers=None, timeout=None, **kwargs):
        if isinstance(body, bytes):
            body = body.decode("utf-8")
        self.requests.append({"url": url, "method": method, "body": body})
        return FakeResponse(self.status, self.body)

    def form(self, index: int = 0) -> dict[str, list[str]]:
        return parse_qs(self.requests[index]["body"])


@pytest.fixture(scope="module")
def private_key_pem():
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


def write_credentials(tmp_path, monkeypatch, info: dict):
    path = tmp_path / "credentials.json"
    path.write_text(json.dumps(info))
    monkeypatch.setenv("GOOGLE_APPLICATION_CREDENTIALS", str(path))
    return path


@pytest.fixture
def service_account_file(tmp_path, monkeypatch, private_key_pem):
    """Service account key file referenced by the environment."""
    return write_credentials(
        tmp_path,
        monkeypatch,
        {
            "type": "service_account",
            "project_id": "project",
            "client_email": CLIENT_EMAIL,
            "client_id": "1234567890",
            "private_key_id": "key-id",
            "private_key": private_key_pem,
            "token_uri": TOKEN_URI,
        },
    )


@pytest.fixture
def external_account_file(tmp_path, monkeypatch):
    """Workload identity federation config, as written by a keyless auth step."""
    subject_token = tmp_path / "oidc-token"
    subject_token.write_text("github-oidc-token")
    return write_credentials(
        tmp_path,
        monkeypatch,
        {
            "type": "external_account",
            "audience": (
                "//iam.googleapis.com/locations/global/workloadIdentityPools/github/providers/actions"
            ),
            "subject_token_type": "urn:ietf:params:oauth:token-type:jwt",
            "token_url": STS_TOKEN_URL,
            "credential_source": {"file": str(subject_token)},
        },
    )


class TestGoogleAuth:
    """Tests for GoogleAuth.get_access_token."""

    @pytest.mark.asyncio
    async def test_service_account(self, service_account_file):
        """Should exchange a signed service account assertion for a token."""
        endpoint = FakeTokenEndpoint()

        token = await GoogleAuth(request=endpoint).get_access_token()

        assert token == "minted-token"
        (request,) = endpoint.requests
        assert request["url"] == TOKEN_URI
        assert request["method"] == "POST"

        assertion = endpoint.form()["assertion"][0]
        claims = google.auth.jwt.decode(assertion, verify=False)
        assert claims["iss"] == CLIENT_EMAIL
        assert claims["scope"] == CLOUD_PLATFORM_SCOPE
        assert claims["aud"] == TOKEN_URI

    @pytest.mark.asyncio
    async def test_external_account(self, external_account_file):
        """Should exchange a federated subject token through STS."""
        endpoint = FakeTokenEndpoint(
            body={
                "access_token": "federated-token",
                "issued_token_type": "urn:ietf:params:oauth:token-type:access_token",
                "token_type": "Bearer",
                "expires_in": 3600,
            }
        )

        token = await GoogleAuth(request=endpoint).get_access_token()

        assert token == "federated-token"
        sts_requests = [r for r in endpoint.requests if r["url"] == STS_TOKEN_URL]
        assert len(sts_requests) == 1
        form = parse_qs(sts_requests[0]["body"])
        assert form["subject_token"] == ["github-oidc-token"]
        assert form["grant_type"] == ["urn:ietf:params:oauth:grant-type:token-exchange"]
        assert CLOUD_PLATFORM_SCOPE in form["scope"][0]

    @pytest.mark.asyncio
    async def test_caches_token(self, service_account_file):
        """Should reuse a token that is not close to expiry."""
        endpoint = FakeTokenEndpoint()
        auth = GoogleAuth(request=endpoint)

        first = await auth.get_access_token()
        second = await auth.get_access_token()

        assert first == second == "minted-token"
        assert len(endpoint.requests) == 1

    @pytest.mark.asyncio
    async def test_refreshes_token_near_expiry(self, service_account_file):
        """Should request a new token once the cached one is about to expire."""
        endpoint = FakeTokenEndpoint(body={"access_token": "short-lived", "expires_in": 60})
        auth = GoogleAuth(request=endpoint)

        await auth.get_access_token()
        await auth.get_access_token()

        assert len(endpoint.requests) == 2

    @pytest.mark.asyncio
    async def test_prefers_access_token_from_environment(self, monkeypatch, service_account_file):
        """Should use a pre-minted token without calling the token endpoint."""
        monkeypatch.setenv("CLOUDSDK_AUTH_ACCESS_TOKEN", "env-token")
        endpoint = FakeTokenEndpoint()

        token = await GoogleAuth(request=endpoint).get_access_token()

        assert token == "env-token"
        assert endpoint.requests == []

    @pytest.mark.asyncio
    async def test_missing_credentials(self, monkeypatch):
        """Should raise when no credential source is found."""

        def no_credentials(**kwargs):
            raise DefaultCredentialsError("Your default credentials were not found.")

        monkeypatch.setattr(google.auth, "default", no_credentials)

        with pytest.raises(AuthenticationError, match="default credentials were not found"):
            await GoogleAuth(request=FakeTokenEndpoint()).get_access_token()

    @pytest.mark.asyncio
    async def test_missing_credentials_file(self, tmp_path, monkeypatch):
        """Should raise when the configured credentials file does not exist."""
        monkeypatch.setenv("GOOGLE_APPLICATION_CREDENTIALS", str(tmp_path / "missing.json"))

        with pytest.raises(AuthenticationError, match="Failed to obtain access token"):
            await GoogleAuth(request=FakeTokenEndpoint()).get_access_token()

    @pytest.mark.asyncio
    async def test_unknown_credential_type(self, tmp_path, monkeypatch):
        """Should raise for credential files google-auth does not understand."""
        write_credentials(tmp_path, monkeypatch, {"type": "made_up_account"})

        with pytest.raises(AuthenticationError, match="Failed to obtain access token"):
            await GoogleAuth(request=FakeTokenEndpoint()).get_access_token()

    @pytest.mark.asyncio
    async def test_token_endpoint_error(self, service_account_file):
        """Should raise when the token endpoint rejects the assertion."""
        endpoint = FakeTokenEndpoint(status=401, body={"error": "invalid_grant"})

        with pytest.raises(AuthenticationError, match="invalid_grant"):
            await GoogleAuth(request=endpoint).get_access_token()

    @pytest.mark.asyncio
    async def test_response_without_token(self, service_account_file):
        """Should raise when the token endpoint omits the access token."""
        endpoint = FakeTokenEndpoint(body={"token_type": "Bearer"})

        with pytest.raises(AuthenticationError, match="Failed to obtain access token"):
            await GoogleAuth(request=endpoint).get_access_token()
