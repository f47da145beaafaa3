"""
SQLite-backed Client Registry and Token Store.

The store is the system of record for registered clients, authorization
codes, access tokens, users and their linked Google accounts. Each operation
opens its own connection; blocking sqlite3 calls are pushed to a worker thread
so the event loop serving MCP requests stays responsive.

Code redemption is a single ``BEGIN IMMEDIATE`` transaction: the code row is
deleted by id and the access token is inserted only if exactly one row was
removed. Two concurrent redemptions of the same code therefore yield one
token and one miss. If the insert fails the deletion is still committed, so
a code can never be replayed.
"""

import asyncio
import json
import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from mcp_gateway.auth.storage import (
    StoredAccessToken,
    StoredAuthCode,
    StoredClient,
    StoredGoogleAccount,
    StoredUser,
)
from mcp_gateway.core.exceptions import (
    IntegrityError,
    StoreUnavailableError,
    TokenIssuanceError,
)

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS clients (
    id TEXT PRIMARY KEY,
    client_id TEXT NOT NULL UNIQUE,
    client_secret_hash TEXT,
    name TEXT NOT NULL,
    redirect_uris TEXT NOT NULL,
    user_id TEXT,
    created_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    name TEXT
);

CREATE TABLE IF NOT EXISTS auth_codes (
    id TEXT PRIMARY KEY,
    code TEXT NOT NULL UNIQUE,
    client_id TEXT NOT NULL REFERENCES clients(id) ON DELETE CASCADE,
    user_id TEXT NOT NULL,
    redirect_uri TEXT NOT NULL,
    scope TEXT,
    code_challenge TEXT,
    code_challenge_method TEXT,
    expires_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS access_tokens (
    id TEXT PRIMARY KEY,
    token TEXT NOT NULL UNIQUE,
    client_id TEXT NOT NULL REFERENCES clients(id) ON DELETE CASCADE,
    user_id TEXT NOT NULL,
    expires_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS google_accounts (
    user_id TEXT PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
    access_token TEXT NOT NULL,
    refresh_token TEXT,
    expires_at REAL,
    scope TEXT
);
"""


class SQLiteStore:
    """Relational store for OAuth state and Google accounts."""

    def __init__(self, database_path: str | Path, timeout: float = 30.0) -> None:
        self.database_path = str(database_path)
        self.timeout = timeout

    # ========== Connection Management ==========

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection in autocommit mode; callers manage transactions."""
        try:
            conn = sqlite3.connect(
                self.database_path,
                timeout=self.timeout,
                isolation_level=None,
                check_same_thread=False,
            )
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Cannot open database: {e}") from e

        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
        except sqlite3.IntegrityError as e:
            raise IntegrityError(str(e)) from e
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Database operation failed: {e}") from e
        finally:
            conn.close()

    def _execute(self, sql: str, params: tuple = ()) -> int:
        with self._connect() as conn:
            return conn.execute(sql, params).rowcount

    def _fetch_one(self, sql: str, params: tuple = ()) -> sqlite3.Row | None:
        with self._connect() as conn:
            return conn.execute(sql, params).fetchone()

    async def _run(self, func: Any, *args: Any) -> Any:
        return await asyncio.to_thread(func, *args)

    def _initialize(self) -> None:
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(SCHEMA)

    async def initialize(self) -> None:
        """Create tables if they do not exist."""
        await self._run(self._initialize)
        logger.info("Initialized SQLite store at %s", self.database_path)

    # ========== Client Registry ==========

    def _insert_client(self, client: StoredClient) -> None:
        self._execute(
            """
            INSERT INTO clients
                (id, client_id, client_secret_hash, name, redirect_uris, user_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                client.id,
                client.client_id,
                client.client_secret_hash,
                client.name,
                json.dumps(client.redirect_uris),
                client.user_id,
                client.created_at,
            ),
        )

    async def create_client(self, client: StoredClient) -> StoredClient:
        await self._run(self._insert_client, client)
        return client

    @staticmethod
    def _row_to_client(row: sqlite3.Row) -> StoredClient:
        data = dict(row)
        data["redirect_uris"] = json.loads(data["redirect_uris"])
        return StoredClient(**data)

    async def get_client_by_client_id(self, client_id: str) -> StoredClient | None:
        """Look up a client by its public identifier."""
        row = await self._run(
            self._fetch_one, "SELECT * FROM clients WHERE client_id = ?", (client_id,)
        )
        return self._row_to_client(row) if row else None

    # ========== Authorization Codes ==========

    def _insert_auth_code(self, auth_code: StoredAuthCode) -> None:
        self._execute(
            """
            INSERT INTO auth_codes
                (id, code, client_id, user_id, redirect_uri, scope,
                 code_challenge, code_challenge_method, expires_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                auth_code.id,
                auth_code.code,
                auth_code.client_id,
                auth_code.user_id,
                auth_code.redirect_uri,
                auth_code.scope,
                auth_code.code_challenge,
                auth_code.code_challenge_method,
                auth_code.expires_at,
            ),
        )

    async def create_auth_code(self, auth_code: StoredAuthCode) -> StoredAuthCode:
        await self._run(self._insert_auth_code, auth_code)
        return auth_code

    async def get_auth_code(self, code: str) -> StoredAuthCode | None:
        row = await self._run(
            self._fetch_one, "SELECT * FROM auth_codes WHERE code = ?", (code,)
        )
        return StoredAuthCode(**dict(row)) if row else None

    def _redeem_auth_code(self, auth_code_id: str, token: StoredAccessToken) -> bool:
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                deleted = conn.execute(
                    "DELETE FROM auth_codes WHERE id = ?", (auth_code_id,)
                ).rowcount
                if deleted != 1:
                    conn.execute("ROLLBACK")
                    return False
            except sqlite3.Error:
                conn.execute("ROLLBACK")
                raise

            try:
                conn.execute(
                    """
                    INSERT INTO access_tokens (id, token, client_id, user_id, expires_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (token.id, token.token, token.client_id, token.user_id, token.expires_at),
                )
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                # The claim stands: a code is never redeemable twice
                conn.execute("COMMIT")
                raise TokenIssuanceError(
                    f"Access token insert failed after claiming code {auth_code_id}: {e}"
                ) from e
            return True

    async def redeem_auth_code(self, auth_code_id: str, token: StoredAccessToken) -> bool:
        """Atomically delete an authorization code and store its access token.

        Returns:
            True if the code was claimed and the token stored, False if the
            code no longer existed (already redeemed).

        Raises:
            TokenIssuanceError: The token insert failed. The code stays consumed.
            StoreUnavailableError: The store could not be reached.
        """
        return await self._run(self._redeem_auth_code, auth_code_id, token)

    # ========== Access Tokens ==========

    async def get_access_token(self, token: str) -> StoredAccessToken | None:
        row = await self._run(
            self._fetch_one, "SELECT * FROM access_tokens WHERE token = ?", (token,)
        )
        return StoredAccessToken(**dict(row)) if row else None

    async def purge_expired(self, now: float | None = None) -> dict[str, int]:
        """Delete expired authorization codes and access tokens."""
        now = time.time() if now is None else now

        def _purge() -> dict[str, int]:
            with self._connect() as conn:
                conn.execute("BEGIN IMMEDIATE")
                codes = conn.execute(
                    "DELETE FROM auth_codes WHERE expires_at <= ?", (now,)
                ).rowcount
                tokens = conn.execute(
                    "DELETE FROM access_tokens WHERE expires_at <= ?", (now,)
                ).rowcount
                conn.execute("COMMIT")
            return {"auth_codes": codes, "access_tokens": tokens}

        counts = await self._run(_purge)
        logger.info(
            "Purged %d expired codes and %d expired tokens",
            counts["auth_codes"],
            counts["access_tokens"],
        )
        return counts

    # ========== Users and Google Accounts ==========

    def _upsert_user(self, user: StoredUser) -> StoredUser:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO users (id, email, name) VALUES (?, ?, ?)
                ON CONFLICT(email) DO UPDATE SET name = excluded.name
                """,
                (user.id, user.email, user.name),
            )
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?", (user.email,)
            ).fetchone()
        return StoredUser(**dict(row))

    async def upsert_user(self, user: StoredUser) -> StoredUser:
        """Insert a user or update the name of the existing user with that email.

        Returns the stored row, whose id is the existing one on conflict.
        """
        return await self._run(self._upsert_user, user)

    async def get_user(self, user_id: str) -> StoredUser | None:
        row = await self._run(
            self._fetch_one, "SELECT * FROM users WHERE id = ?", (user_id,)
        )
        return StoredUser(**dict(row)) if row else None

    async def save_google_account(self, account: StoredGoogleAccount) -> None:
        """Insert or replace a user's Google credentials.

        A missing refresh token keeps the previously stored one, since Google
        only returns it on the first consent.
        """
        await self._run(
            self._execute,
            """
            INSERT INTO google_accounts (user_id, access_token, refresh_token, expires_at, scope)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                access_token = excluded.access_token,
                refresh_token = COALESCE(excluded.refresh_token, google_accounts.refresh_token),
                expires_at = excluded.expires_at,
                scope = COALESCE(excluded.scope, google_accounts.scope)
            """,
            (
                account.user_id,
                account.access_token,
                account.refresh_token,
                account.expires_at,
                account.scope,
            ),
        )

    async def get_google_account(self, user_id: str) -> StoredGoogleAccount | None:
        row = await self._run(
            self._fetch_one,
            "SELECT * FROM google_accounts WHERE user_id = ?",
            (user_id,),
        )
        return StoredGoogleAccount(**dict(row)) if row else None

    async def update_google_access_token(
        self, user_id: str, access_token: str, expires_at: float | None
    ) -> None:
        """Persist a refreshed Google access token."""
        await self._run(
            self._execute,
            "UPDATE google_accounts SET access_token = ?, expires_at = ? WHERE user_id = ?",
            (access_token, expires_at, user_id),
        )
