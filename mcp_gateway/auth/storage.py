"""Pydantic models for OAuth entity storage.

These models define the rows persisted by the relational store: registered
clients, authorization codes, access tokens, and the users and Google
accounts behind them. Timestamps are epoch seconds.
"""

import time

from pydantic import BaseModel, Field


class StoredClient(BaseModel):
    """OAuth client stored in persistent storage."""

    id: str
    client_id: str
    client_secret_hash: str | None = None
    name: str
    redirect_uris: list[str] = Field(default_factory=list)
    user_id: str | None = None
    created_at: float = Field(default_factory=time.time)

    @property
    def is_public(self) -> bool:
        """A client without a registered secret must use PKCE."""
        return self.client_secret_hash is None


class StoredAuthCode(BaseModel):
    """Authorization code stored in persistent storage."""

    id: str
    code: str
    client_id: str  # internal id of the owning client
    user_id: str
    redirect_uri: str
    scope: str | None = None
    code_challenge: str | None = None
    code_challenge_method: str | None = None
    expires_at: float


class StoredAccessToken(BaseModel):
    """Access token stored in persistent storage."""

    id: str
    token: str
    client_id: str  # internal id of the owning client
    user_id: str
    expires_at: float


class StoredUser(BaseModel):
    """Resource owner, created on first Google sign-in."""

    id: str
    email: str
    name: str | None = None


class StoredGoogleAccount(BaseModel):
    """Upstream Google credentials for a user."""

    user_id: str
    access_token: str
    refresh_token: str | None = None
    expires_at: float | None = None  # None = unknown expiry
    scope: str | None = None
