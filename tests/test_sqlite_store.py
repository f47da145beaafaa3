"""Tests for the SQLite client registry and token store."""

import sqlite3
import uuid

import pytest

from mcp_gateway.auth.storage import (
    StoredAccessToken,
    StoredAuthCode,
    StoredClient,
    StoredGoogleAccount,
    StoredUser,
)
from mcp_gateway.core.exceptions import IntegrityError, StoreUnavailableError
from mcp_gateway.database import SQLiteStore


def make_client(**overrides):
    fields = {
        "id": uuid.uuid4().hex,
        "client_id": f"mcp_{uuid.uuid4().hex[:8]}",
        "client_secret_hash": "hash",
        "name": "Test",
        "redirect_uris": ["https://app/cb", "http://localhost:8080/cb"],
    }
    fields.update(overrides)
    return StoredClient(**fields)


def make_code(client, code="code-1", expires_at=2_000_000_000.0):
    return StoredAuthCode(
        id=uuid.uuid4().hex,
        code=code,
        client_id=client.id,
        user_id="user-1",
        redirect_uri="https://app/cb",
        code_challenge="challenge",
        code_challenge_method="S256",
        expires_at=expires_at,
    )


def make_token(client, token="t" * 64, expires_at=2_000_000_000.0):
    return StoredAccessToken(
        id=uuid.uuid4().hex, token=token, client_id=client.id, user_id="user-1", expires_at=expires_at
    )


class TestClients:
    @pytest.mark.asyncio
    async def test_round_trip_preserves_redirect_uris(self, store):
        client = await store.create_client(make_client())

        loaded = await store.get_client_by_client_id(client.client_id)

        assert loaded == client
        assert loaded.redirect_uris == ["https://app/cb", "http://localhost:8080/cb"]
        assert not loaded.is_public

    @pytest.mark.asyncio
    async def test_public_client(self, store):
        client = await store.create_client(make_client(client_secret_hash=None))
        loaded = await store.get_client_by_client_id(client.client_id)
        assert loaded.is_public

    @pytest.mark.asyncio
    async def test_unknown_client(self, store):
        assert await store.get_client_by_client_id("missing") is None

    @pytest.mark.asyncio
    async def test_duplicate_client_id(self, store):
        client = await store.create_client(make_client())
        with pytest.raises(IntegrityError):
            await store.create_client(make_client(client_id=client.client_id))


class TestRedemption:
    @pytest.mark.asyncio
    async def test_redeem_deletes_code_and_stores_token(self, store):
        client = await store.create_client(make_client())
        auth_code = await store.create_auth_code(make_code(client))

        assert await store.redeem_auth_code(auth_code.id, make_token(client)) is True

        assert await store.get_auth_code("code-1") is None
        assert (await store.get_access_token("t" * 64)).user_id == "user-1"

    @pytest.mark.asyncio
    async def test_second_redeem_returns_false(self, store):
        client = await store.create_client(make_client())
        auth_code = await store.create_auth_code(make_code(client))

        assert await store.redeem_auth_code(auth_code.id, make_token(client, "a" * 64))
        assert await store.redeem_auth_code(auth_code.id, make_token(client, "b" * 64)) is False
        assert await store.get_access_token("b" * 64) is None


class TestPurge:
    @pytest.mark.asyncio
    async def test_purge_expired(self, store):
        client = await store.create_client(make_client())
        await store.create_auth_code(make_code(client, "old", expires_at=100.0))
        await store.create_auth_code(make_code(client, "new", expires_at=300.0))
        seed = await store.create_auth_code(make_code(client, "seed", expires_at=300.0))
        assert await store.redeem_auth_code(seed.id, make_token(client, "old-token", expires_at=100.0))

        counts = await store.purge_expired(now=200.0)

        assert counts == {"auth_codes": 1, "access_tokens": 1}
        assert await store.get_auth_code("old") is None
        assert await store.get_auth_code("new") is not None


class TestUsersAndGoogleAccounts:
    @pytest.mark.asyncio
    async def test_upsert_keeps_id_for_same_email(self, store):
        first = await store.upsert_user(StoredUser(id="u1", email="a@example.com", name="A"))
        second = await store.upsert_user(StoredUser(id="u2", email="a@example.com", name="Alice"))

        assert first.id == second.id == "u1"
        assert (await store.get_user("u1")).name == "Alice"

    @pytest.mark.asyncio
    async def test_save_keeps_refresh_token_when_missing(self, store):
        await store.upsert_user(StoredUser(id="u1", email="a@example.com"))
        await store.save_google_account(
            StoredGoogleAccount(user_id="u1", access_token="at1", refresh_token="rt1", expires_at=10.0)
        )
        await store.save_google_account(
            StoredGoogleAccount(user_id="u1", access_token="at2", refresh_token=None, expires_at=20.0)
        )

        account = await store.get_google_account("u1")
        assert account.access_token == "at2"
        assert account.refresh_token == "rt1"
        assert account.expires_at == 20.0

    @pytest.mark.asyncio
    async def test_update_access_token(self, store):
        await store.upsert_user(StoredUser(id="u1", email="a@example.com"))
        await store.save_google_account(
            StoredGoogleAccount(user_id="u1", access_token="old", refresh_token="rt", expires_at=1.0)
        )

        await store.update_google_access_token("u1", "new", 99.0)

        account = await store.get_google_account("u1")
        assert (account.access_token, account.expires_at, account.refresh_token) == ("new", 99.0, "rt")


class TestFailures:
    @pytest.mark.asyncio
    async def test_unreachable_database(self, tmp_path):
        broken = SQLiteStore(tmp_path / "missing-dir" / "gateway.db")
        with pytest.raises(StoreUnavailableError):
            await broken.get_client_by_client_id("x")

    def test_schema_is_idempotent(self, store):
        store._initialize()
        with sqlite3.connect(store.database_path) as conn:
            tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        assert {"clients", "auth_codes", "access_tokens", "users", "google_accounts"} <= tables
