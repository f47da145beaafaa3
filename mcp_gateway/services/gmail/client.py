"""
Google credential management for Gmail tools.

Loads a user's stored Google account, refreshes the access token through
google-auth when it has expired (persisting the new token), and builds the
Gmail API client.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Optional

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from mcp_gateway.core.constants import GOOGLE_TOKEN_URI
from mcp_gateway.core.exceptions import GoogleAuthError
from mcp_gateway.database import SQLiteStore
from mcp_gateway.services.google_auth import credentials_expiry_timestamp

logger = logging.getLogger(__name__)


class GmailClientFactory:
    """Builds authenticated Gmail API clients for gateway users."""

    def __init__(
        self,
        store: SQLiteStore,
        client_id: Optional[str],
        client_secret: Optional[str],
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.client_id = client_id
        self.client_secret = client_secret
        self.clock = clock

    async def get_credentials(self, user_id: str) -> Credentials:
        """
        Return valid Google credentials for a user, refreshing if expired.

        Raises:
            GoogleAuthError: No linked account, no refresh token, or refresh failed
        """
        account = await self.store.get_google_account(user_id)
        if not account or not account.access_token:
            raise GoogleAuthError("Google access token not found for user.")

        credentials = Credentials(
            token=account.access_token,
            refresh_token=account.refresh_token,
            token_uri=GOOGLE_TOKEN_URI,
            client_id=self.client_id,
            client_secret=self.client_secret,
        )

        if account.expires_at is not None and account.expires_at < self.clock():
            if not account.refresh_token:
                raise GoogleAuthError("Google refresh token not found for user.")

            logger.info("Refreshing expired Google access token for user %s", user_id)
            try:
                await asyncio.to_thread(credentials.refresh, Request())
            except RefreshError as e:
                logger.error("Google token refresh failed for user %s: %s", user_id, e)
                raise GoogleAuthError("Failed to refresh Google access token.") from e

            await self.store.update_google_access_token(
                user_id,
                credentials.token,
                credentials_expiry_timestamp(credentials),
            )

        return credentials

    async def get_service(self, user_id: str) -> Any:
        """Build a Gmail v1 API client for a user."""
        credentials = await self.get_credentials(user_id)
        return await asyncio.to_thread(
            build, "gmail", "v1", credentials=credentials, cache_discovery=False
        )
