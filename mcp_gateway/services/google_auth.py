"""
Google sign-in for resource owners.

Drives the Google OAuth consent flow used on the gateway's sign-in page:
building the consent URL, exchanging the callback code for credentials, and
recording the user and their Google account in the store. The stored refresh
token is what later lets Gmail tools act on the user's behalf.
"""

import asyncio
import logging
import uuid
from datetime import timezone
from typing import Optional

from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from mcp_gateway.auth.storage import StoredGoogleAccount, StoredUser
from mcp_gateway.core.constants import GOOGLE_TOKEN_URI
from mcp_gateway.core.exceptions import ConfigurationError, GoogleAuthError
from mcp_gateway.database import SQLiteStore

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"


def credentials_expiry_timestamp(credentials: Credentials) -> Optional[float]:
    """Convert google-auth's naive UTC expiry to epoch seconds."""
    if credentials.expiry is None:
        return None
    return credentials.expiry.replace(tzinfo=timezone.utc).timestamp()


class GoogleSignIn:
    """Google OAuth consent flow for signing users in to the gateway."""

    def __init__(
        self,
        store: SQLiteStore,
        client_id: Optional[str],
        client_secret: Optional[str],
        scopes: list[str],
        redirect_uri: str,
    ):
        self.store = store
        self.client_id = client_id
        self.client_secret = client_secret
        self.scopes = scopes
        self.redirect_uri = redirect_uri

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _client_config(self) -> dict:
        if not self.configured:
            raise ConfigurationError("GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET must be set")
        return {
            "web": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": GOOGLE_AUTH_URI,
                "token_uri": GOOGLE_TOKEN_URI,
                "redirect_uris": [self.redirect_uri],
            }
        }

    def _flow(self, state: Optional[str] = None, code_verifier: Optional[str] = None) -> Flow:
        flow = Flow.from_client_config(
            self._client_config(),
            scopes=self.scopes,
            state=state,
            code_verifier=code_verifier,
            autogenerate_code_verifier=code_verifier is None,
        )
        flow.redirect_uri = self.redirect_uri
        return flow

    def authorization_url(self) -> tuple[str, str, Optional[str]]:
        """
        Build the Google consent URL.

        Returns:
            (url, state, code_verifier); state and verifier must be kept in the
            session for the callback.
        """
        flow = self._flow()
        url, state = flow.authorization_url(
            access_type="offline",
            prompt="consent",
            include_granted_scopes="true",
        )
        return url, state, flow.code_verifier

    async def complete_sign_in(
        self,
        code: str,
        state: Optional[str],
        code_verifier: Optional[str],
    ) -> StoredUser:
        """
        Exchange the callback code, then upsert the user and Google account.

        Raises:
            GoogleAuthError: If the exchange or the profile lookup fails
        """
        flow = self._flow(state=state, code_verifier=code_verifier)

        try:
            await asyncio.to_thread(flow.fetch_token, code=code)
        except Exception as e:  # oauthlib raises a family of unrelated errors
            logger.error("Google code exchange failed: %s", e)
            raise GoogleAuthError(f"Google code exchange failed: {e}") from e

        credentials = flow.credentials
        profile = await self._fetch_profile(credentials)
        email = profile.get("email")
        if not email:
            raise GoogleAuthError("Google profile did not include an email address")

        user = await self.store.upsert_user(
            StoredUser(id=uuid.uuid4().hex, email=email, name=profile.get("name"))
        )
        await self.store.save_google_account(
            StoredGoogleAccount(
                user_id=user.id,
                access_token=credentials.token,
                refresh_token=credentials.refresh_token,
                expires_at=credentials_expiry_timestamp(credentials),
                scope=" ".join(credentials.scopes or self.scopes),
            )
        )
        logger.info("Google sign-in completed for %s", email)
        return user

    async def _fetch_profile(self, credentials: Credentials) -> dict:
        def _get() -> dict:
            service = build("oauth2", "v2", credentials=credentials, cache_discovery=False)
            return service.userinfo().get().execute()

        try:
            return await asyncio.to_thread(_get)
        except HttpError as e:
            raise GoogleAuthError(f"Failed to fetch Google profile: {e}") from e
