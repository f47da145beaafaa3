"""
Shared pytest fixtures and configuration for all tests.

Every test gets its own on-disk SQLite store under tmp_path and a controllable
clock, so expiry can be exercised without sleeping.
"""

import base64
import hashlib
import os
import uuid

import pytest

# Keep a developer's .env from leaking into tests
os.environ.setdefault("DEV_MODE", "false")

from mcp_gateway.auth.oauth2_server import OAuth2Server
from mcp_gateway.auth.storage import StoredClient
from mcp_gateway.config import reset_settings
from mcp_gateway.database import SQLiteStore

ISSUER = "https://gateway.test"
REDIRECT_URI = "https://app/cb"


class FakeClock:
    """Callable clock returning a settable epoch time."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def s256(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode()).digest()
    return base64.urlsafe_b64encode(digest).decode().rstrip("=")


@pytest.fixture(autouse=True)
def _reset_settings():
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    """Initialized SQLite store in a temporary directory."""
    sqlite_store = SQLiteStore(tmp_path / "gateway.db")
    sqlite_store._initialize()
    return sqlite_store


@pytest.fixture
def oauth2_server(store, clock):
    return OAuth2Server(
        store=store,
        issuer=ISSUER,
        resource_url=f"{ISSUER}/mcp",
        clock=clock,
    )


@pytest.fixture
def public_client(store):
    """Client registered without a secret; must use PKCE."""

    async def _create(redirect_uris=None) -> StoredClient:
        client = StoredClient(
            id=uuid.uuid4().hex,
            client_id=f"public_{uuid.uuid4().hex[:8]}",
            client_secret_hash=None,
            name="Public App",
            redirect_uris=redirect_uris or [REDIRECT_URI],
        )
        return await store.create_client(client)

    return _create
