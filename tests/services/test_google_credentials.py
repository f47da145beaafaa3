"""Tests for Google sign-in and Gmail credential refresh."""

from datetime import datetime
from unittest.mock import MagicMock

import pytest
from google.auth.exceptions import RefreshError

from mcp_gateway.auth.storage import StoredGoogleAccount, StoredUser
from mcp_gateway.core.exceptions import ConfigurationError, GoogleAuthError
from mcp_gateway.services import google_auth
from mcp_gateway.services.gmail import client as gmail_client
from mcp_gateway.services.gmail.client import GmailClientFactory
from mcp_gateway.services.google_auth import GoogleSignIn, credentials_expiry_timestamp

from ..conftest import FakeClock

REDIRECT = "http://testserver/auth/google/callback"


async def link_account(store, access_token="at", refresh_token="rt", expires_at=1_800_000_000.0):
    await store.upsert_user(StoredUser(id="u1", email="alice@example.com"))
    await store.save_google_account(
        StoredGoogleAccount(
            user_id="u1", access_token=access_token, refresh_token=refresh_token, expires_at=expires_at
        )
    )


@pytest.fixture
def factory(store):
    return GmailClientFactory(store, "client-id", "client-secret", clock=FakeClock(1_700_000_000.0))


class TestGmailCredentials:
    @pytest.mark.asyncio
    async def test_no_linked_account(self, factory):
        with pytest.raises(GoogleAuthError, match="Google access token not found for user."):
            await factory.get_credentials("u1")

    @pytest.mark.asyncio
    async def test_valid_token_is_used_as_is(self, factory, store, monkeypatch):
        await link_account(store)
        refresh = MagicMock()
        monkeypatch.setattr(gmail_client.Credentials, "refresh", refresh)

        credentials = await factory.get_credentials("u1")

        assert credentials.token == "at"
        assert credentials.refresh_token == "rt"
        refresh.assert_not_called()

    @pytest.mark.asyncio
    async def test_expired_without_refresh_token(self, factory, store):
        await link_account(store, refresh_token=None, expires_at=1_600_000_000.0)

        with pytest.raises(GoogleAuthError, match="Google refresh token not found for user."):
            await factory.get_credentials("u1")

    @pytest.mark.asyncio
    async def test_expired_token_is_refreshed_and_persisted(self, factory, store, monkeypatch):
        await link_account(store, expires_at=1_600_000_000.0)

        def fake_refresh(self, request):
            self.token = "fresh"
            self.expiry = datetime(2030, 1, 1)

        monkeypatch.setattr(gmail_client.Credentials, "refresh", fake_refresh)

        credentials = await factory.get_credentials("u1")

        assert credentials.token == "fresh"
        account = await store.get_google_account("u1")
        assert account.access_token == "fresh"
        assert account.expires_at == credentials_expiry_timestamp(credentials)
        assert account.refresh_token == "rt"

    @pytest.mark.asyncio
    async def test_refresh_failure(self, factory, store, monkeypatch):
        await link_account(store, expires_at=1_600_000_000.0)

        def failing_refresh(self, request):
            raise RefreshError("invalid_grant")

        monkeypatch.setattr(gmail_client.Credentials, "refresh", failing_refresh)

        with pytest.raises(GoogleAuthError, match="Failed to refresh Google access token."):
            await factory.get_credentials("u1")
        assert (await store.get_google_account("u1")).access_token == "at"

    @pytest.mark.asyncio
    async def test_get_service_builds_gmail_client(self, factory, store, monkeypatch):
        await link_account(store)
        build = MagicMock(return_value="gmail-service")
        monkeypatch.setattr(gmail_client, "build", build)

        assert await factory.get_service("u1") == "gmail-service"
        assert build.call_args.args == ("gmail", "v1")
        assert build.call_args.kwargs["credentials"].token == "at"


class FakeFlow:
    """Replacement for google_auth_oauthlib Flow."""

    instances = []

    def __init__(self, state, code_verifier):
        self.state = state
        self.code_verifier = code_verifier
        self.redirect_uri = None
        self.fetched = None
        self.credentials = MagicMock(
            token="google-at",
            refresh_token="google-rt",
            expiry=datetime(2030, 1, 1),
            scopes=["openid", "https://mail.google.com/"],
        )

    @classmethod
    def from_client_config(cls, config, scopes, state=None, code_verifier=None, autogenerate_code_verifier=True):
        flow = cls(state, code_verifier)
        cls.instances.append(flow)
        return flow

    def fetch_token(self, code):
        if code == "bad":
            raise ValueError("invalid_grant")
        self.fetched = code


class TestGoogleSignIn:
    def test_authorization_url(self, store):
        sign_in = GoogleSignIn(store, "client-id", "client-secret", ["openid", "email"], REDIRECT)

        url, state, verifier = sign_in.authorization_url()

        assert url.startswith("https://accounts.google.com/o/oauth2/auth?")
        assert "access_type=offline" in url
        assert "prompt=consent" in url
        assert "code_challenge_method=S256" in url
        assert state and verifier

    def test_unconfigured(self, store):
        sign_in = GoogleSignIn(store, None, None, ["openid"], REDIRECT)

        assert not sign_in.configured
        with pytest.raises(ConfigurationError):
            sign_in.authorization_url()

    @pytest.mark.asyncio
    async def test_complete_sign_in_links_account(self, store, monkeypatch):
        FakeFlow.instances.clear()
        monkeypatch.setattr(google_auth, "Flow", FakeFlow)
        userinfo = MagicMock()
        userinfo.userinfo().get().execute.return_value = {"email": "alice@example.com", "name": "Alice"}
        monkeypatch.setattr(google_auth, "build", MagicMock(return_value=userinfo))
        sign_in = GoogleSignIn(store, "client-id", "client-secret", ["openid"], REDIRECT)

        user = await sign_in.complete_sign_in("auth-code", "state-1", "verifier-1")

        flow = FakeFlow.instances[-1]
        assert (flow.state, flow.code_verifier, flow.fetched) == ("state-1", "verifier-1", "auth-code")
        assert flow.redirect_uri == REDIRECT
        assert user.email == "alice@example.com"
        account = await store.get_google_account(user.id)
        assert account.access_token == "google-at"
        assert account.refresh_token == "google-rt"
        assert account.scope == "openid https://mail.google.com/"

    @pytest.mark.asyncio
    async def test_exchange_failure(self, store, monkeypatch):
        monkeypatch.setattr(google_auth, "Flow", FakeFlow)
        sign_in = GoogleSignIn(store, "client-id", "client-secret", ["openid"], REDIRECT)

        with pytest.raises(GoogleAuthError):
            await sign_in.complete_sign_in("bad", "state-1", "verifier-1")
