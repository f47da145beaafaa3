"""
OAuth2 Authorization Server for the MCP gateway.

Implements the authorization-code grant with PKCE (plain and S256) and
confidential-client secrets, Dynamic Client Registration (RFC 7591) and the
discovery documents (RFC 8414, RFC 9728). All state lives in the relational
store; the server itself is stateless and safe to share across requests.
"""

import base64
import hashlib
import hmac
import logging
import secrets
import time
import uuid
from dataclasses import asdict, dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, List, Mapping, Optional

from passlib.context import CryptContext

from mcp_gateway.auth.storage import StoredAccessToken, StoredAuthCode, StoredClient
from mcp_gateway.core.constants import (
    ACCESS_TOKEN_BYTES,
    ACCESS_TOKEN_LIFETIME_SECONDS,
    AUTHORIZATION_CODE_EXPIRE_MINUTES_DEFAULT,
    CLIENT_SECRET_BYTES,
    DEV_USER_ID,
    GRANT_TYPE_AUTHORIZATION_CODE,
    HTTP_BAD_REQUEST,
    HTTP_SERVER_ERROR,
    HTTP_UNAUTHORIZED,
    OAUTH2_SCOPES_DEFAULT,
    PKCE_METHOD_PLAIN,
    PKCE_METHOD_S256,
    PKCE_METHODS_SUPPORTED,
    TOKEN_TYPE_BEARER,
)
from mcp_gateway.core.exceptions import DatabaseError, TokenIssuanceError

if TYPE_CHECKING:
    from mcp_gateway.database import SQLiteStore

logger = logging.getLogger(__name__)

# Client secrets are stored hashed; the plaintext is only returned at registration
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class TokenErrorReason(str, Enum):
    """Internal cause of a token endpoint failure."""

    UNSUPPORTED_GRANT_TYPE = "unsupported_grant_type"
    MISSING_PARAMETERS = "missing_parameters"
    UNKNOWN_CLIENT = "unknown_client"
    CLIENT_SECRET_MISMATCH = "client_secret_mismatch"
    CODE_NOT_FOUND = "code_not_found"
    CODE_CLIENT_MISMATCH = "code_client_mismatch"
    REDIRECT_URI_MISMATCH = "redirect_uri_mismatch"
    CODE_ALREADY_REDEEMED = "code_already_redeemed"
    CODE_EXPIRED = "code_expired"
    MISSING_CODE_VERIFIER = "missing_code_verifier"
    CODE_VERIFIER_MISMATCH = "code_verifier_mismatch"
    STORE_FAILURE = "store_failure"
    TOKEN_ISSUANCE_FAILED = "token_issuance_failed"


# Several causes share one external message so callers cannot probe which check failed
_TOKEN_ERROR_RESPONSES: Dict[TokenErrorReason, tuple[int, str]] = {
    TokenErrorReason.UNSUPPORTED_GRANT_TYPE: (HTTP_BAD_REQUEST, "Unsupported grant type"),
    TokenErrorReason.MISSING_PARAMETERS: (HTTP_BAD_REQUEST, "Invalid request"),
    TokenErrorReason.UNKNOWN_CLIENT: (HTTP_UNAUTHORIZED, "Invalid client"),
    TokenErrorReason.CLIENT_SECRET_MISMATCH: (HTTP_UNAUTHORIZED, "Invalid client"),
    TokenErrorReason.CODE_NOT_FOUND: (HTTP_BAD_REQUEST, "Invalid code"),
    TokenErrorReason.CODE_CLIENT_MISMATCH: (HTTP_BAD_REQUEST, "Invalid code"),
    TokenErrorReason.REDIRECT_URI_MISMATCH: (HTTP_BAD_REQUEST, "Invalid code"),
    TokenErrorReason.CODE_ALREADY_REDEEMED: (HTTP_BAD_REQUEST, "Invalid code"),
    TokenErrorReason.CODE_EXPIRED: (HTTP_BAD_REQUEST, "Code expired"),
    TokenErrorReason.MISSING_CODE_VERIFIER: (
        HTTP_BAD_REQUEST,
        "Missing code_verifier for PKCE",
    ),
    TokenErrorReason.CODE_VERIFIER_MISMATCH: (
        HTTP_BAD_REQUEST,
        "Invalid code_verifier for PKCE",
    ),
    TokenErrorReason.STORE_FAILURE: (HTTP_SERVER_ERROR, "Server error"),
    TokenErrorReason.TOKEN_ISSUANCE_FAILED: (HTTP_SERVER_ERROR, "Server error"),
}


class TokenEndpointError(Exception):
    """Token endpoint failure with a precise internal reason."""

    def __init__(self, reason: TokenErrorReason):
        self.reason = reason
        self.status_code, self.message = _TOKEN_ERROR_RESPONSES[reason]
        super().__init__(f"{self.message} ({reason.value})")

    def to_dict(self) -> dict:
        return {"error": self.message}


class RegistrationError(Exception):
    """Client registration failure."""

    def __init__(self, message: str, status_code: int = HTTP_BAD_REQUEST):
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.message}


class AuthorizationRequestError(Exception):
    """Invalid authorization request (bad client, redirect URI or parameters)."""

    def __init__(self, error: str, description: str):
        self.error = error
        self.description = description
        super().__init__(f"{error}: {description}")

    def to_dict(self) -> dict:
        return {"error": self.error, "error_description": self.description}


@dataclass(frozen=True)
class TokenRequest:
    """Form fields of a token endpoint request."""

    grant_type: Optional[str]
    code: Optional[str]
    redirect_uri: Optional[str]
    client_id: Optional[str]
    client_secret: Optional[str] = None
    code_verifier: Optional[str] = None

    @classmethod
    def from_form(cls, form: Mapping) -> "TokenRequest":
        return cls(
            grant_type=form.get("grant_type"),
            code=form.get("code"),
            redirect_uri=form.get("redirect_uri"),
            client_id=form.get("client_id"),
            client_secret=form.get("client_secret"),
            code_verifier=form.get("code_verifier"),
        )


@dataclass(frozen=True)
class TokenResponse:
    """Successful token endpoint response."""

    access_token: str
    token_type: str = TOKEN_TYPE_BEARER
    expires_in: int = ACCESS_TOKEN_LIFETIME_SECONDS

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class RegisteredClient:
    """Registration result; the only place the plaintext secret appears."""

    client_id: str
    client_secret: str
    redirect_uris: List[str]

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class AuthenticatedIdentity:
    """Caller identity resolved from a bearer token."""

    user_id: str
    client_id: Optional[str]
    auth_type: str  # "oauth2" or "dev_token"


def compute_s256_challenge(code_verifier: str) -> str:
    """base64url(SHA-256(verifier)) without padding."""
    digest = hashlib.sha256(code_verifier.encode()).digest()
    return base64.urlsafe_b64encode(digest).decode().rstrip("=")


def verify_code_verifier(
    code_verifier: str,
    code_challenge: str,
    code_challenge_method: Optional[str],
) -> bool:
    """
    Verify a PKCE code verifier against the stored challenge.

    Args:
        code_verifier: Verifier presented at the token endpoint
        code_challenge: Challenge recorded when the code was issued
        code_challenge_method: "S256", "plain" or None (treated as plain)

    Returns:
        True if the verifier matches
    """
    if code_challenge_method == PKCE_METHOD_S256:
        expected = compute_s256_challenge(code_verifier)
    elif code_challenge_method in (PKCE_METHOD_PLAIN, None, ""):
        expected = code_verifier
    else:
        return False
    return hmac.compare_digest(expected.encode(), code_challenge.encode())


class OAuth2Server:
    """
    OAuth2 Authorization Server for the MCP gateway.

    Features:
    - Authorization code grant with PKCE (plain and S256)
    - Confidential clients authenticated by client_secret_post
    - Dynamic Client Registration (RFC 7591)
    - Authorization Server Metadata (RFC 8414)
    - Protected Resource Metadata (RFC 9728)
    - Opaque bearer tokens with a one hour lifetime
    """

    def __init__(
        self,
        store: "SQLiteStore",
        issuer: str,
        resource_url: str,
        scopes: Optional[List[str]] = None,
        authorization_code_expire_minutes: int = AUTHORIZATION_CODE_EXPIRE_MINUTES_DEFAULT,
        dev_bearer_token: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize OAuth2 server.

        Args:
            store: Relational store holding clients, codes and tokens
            issuer: Issuer / public base URL (e.g., "https://gateway.example.com")
            resource_url: URL of the protected MCP endpoint
            scopes: Scopes advertised in discovery metadata
            authorization_code_expire_minutes: Auth code lifetime (default: 10 minutes)
            dev_bearer_token: Static token accepted as a development bypass, or None
            clock: Returns the current time in epoch seconds
        """
        self.store = store
        self.issuer = issuer.rstrip("/")
        self.resource_url = resource_url
        self.scopes = scopes or list(OAUTH2_SCOPES_DEFAULT)
        self.authorization_code_expire_minutes = authorization_code_expire_minutes
        self.dev_bearer_token = dev_bearer_token
        self.clock = clock

    # ========== Discovery ==========

    def get_authorization_server_metadata(self) -> dict:
        """
        Get OAuth 2.0 Authorization Server Metadata (RFC 8414).

        Returns:
            Authorization server metadata
        """
        return {
            "issuer": self.issuer,
            "authorization_endpoint": f"{self.issuer}/oauth/authorize",
            "token_endpoint": f"{self.issuer}/api/oauth/token",
            "registration_endpoint": f"{self.issuer}/api/oauth/register",
            "scopes_supported": self.scopes,
            "response_types_supported": ["code"],
            "grant_types_supported": [GRANT_TYPE_AUTHORIZATION_CODE],
            "token_endpoint_auth_methods_supported": ["none", "client_secret_post"],
            "code_challenge_methods_supported": list(PKCE_METHODS_SUPPORTED),
        }

    def get_protected_resource_metadata(self) -> dict:
        """
        Get Protected Resource Metadata (RFC 9728).

        Returns:
            Protected resource metadata
        """
        return {
            "resource": self.resource_url,
            "authorization_servers": [self.issuer],
            "scopes_supported": self.scopes,
            "bearer_methods_supported": ["header"],
            "resource_documentation": f"{self.issuer}/docs",
        }

    # ========== Client Registration ==========

    async def register_client(
        self,
        client_name: Optional[str],
        redirect_uris: Optional[List[str]],
    ) -> RegisteredClient:
        """
        Register a new OAuth2 client (Dynamic Client Registration - RFC 7591).

        Every registration yields a fresh client_id/client_secret pair, even
        for a name that was registered before.

        Args:
            client_name: Client application name
            redirect_uris: List of allowed redirect URIs

        Returns:
            Registered client with the plaintext secret

        Raises:
            RegistrationError: Missing fields (400) or store failure (500)
        """
        if (
            not client_name
            or not isinstance(client_name, str)
            or not redirect_uris
            or not isinstance(redirect_uris, list)
            or not all(isinstance(uri, str) and uri for uri in redirect_uris)
        ):
            raise RegistrationError("Missing required fields")

        client_secret = secrets.token_hex(CLIENT_SECRET_BYTES)
        client = StoredClient(
            id=uuid.uuid4().hex,
            client_id=f"mcp_{secrets.token_urlsafe(16)}",
            client_secret_hash=pwd_context.hash(client_secret),
            name=client_name,
            redirect_uris=redirect_uris,
            user_id=None,  # unauthenticated registration is allowed
            created_at=self.clock(),
        )

        try:
            await self.store.create_client(client)
        except DatabaseError as e:
            logger.error("Failed to persist client %r: %s", client_name, e)
            raise RegistrationError("Error creating client", status_code=HTTP_SERVER_ERROR) from e

        logger.info("Registered client %s (%s)", client.client_id, client_name)
        return RegisteredClient(
            client_id=client.client_id,
            client_secret=client_secret,
            redirect_uris=redirect_uris,
        )

    # ========== Authorization ==========

    async def validate_authorization_request(
        self,
        client_id: Optional[str],
        redirect_uri: Optional[str],
        response_type: Optional[str],
        code_challenge_method: Optional[str] = None,
    ) -> StoredClient:
        """
        Check an authorization request before asking the user to approve it.

        Returns:
            The requesting client

        Raises:
            AuthorizationRequestError: If any parameter is unacceptable
        """
        if response_type != "code":
            raise AuthorizationRequestError(
                "unsupported_response_type", "response_type must be 'code'"
            )
        if not client_id or not redirect_uri:
            raise AuthorizationRequestError(
                "invalid_request", "client_id and redirect_uri are required"
            )
        if code_challenge_method and code_challenge_method not in PKCE_METHODS_SUPPORTED:
            raise AuthorizationRequestError(
                "invalid_request",
                f"code_challenge_method must be one of {PKCE_METHODS_SUPPORTED}",
            )

        client = await self.store.get_client_by_client_id(client_id)
        if not client:
            raise AuthorizationRequestError("invalid_client", "Unknown client_id")
        if redirect_uri not in client.redirect_uris:
            raise AuthorizationRequestError(
                "invalid_redirect_uri", "redirect_uri is not registered for this client"
            )
        return client

    async def create_authorization_code(
        self,
        client: StoredClient,
        user_id: str,
        redirect_uri: str,
        code_challenge: Optional[str] = None,
        code_challenge_method: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> str:
        """
        Create an authorization code after the resource owner approved the client.

        Args:
            client: Approved client
            user_id: Approving user
            redirect_uri: Redirect URI the code is bound to
            code_challenge: Optional PKCE code challenge
            code_challenge_method: "plain", "S256" or None (plain)
            scope: Requested scope

        Returns:
            Authorization code
        """
        if code_challenge_method and code_challenge_method not in PKCE_METHODS_SUPPORTED:
            raise ValueError(f"Unsupported code challenge method: {code_challenge_method}")

        code = secrets.token_urlsafe(32)
        expires_at = self.clock() + self.authorization_code_expire_minutes * 60

        await self.store.create_auth_code(
            StoredAuthCode(
                id=uuid.uuid4().hex,
                code=code,
                client_id=client.id,
                user_id=user_id,
                redirect_uri=redirect_uri,
                scope=scope,
                code_challenge=code_challenge or None,
                code_challenge_method=(code_challenge_method or None) if code_challenge else None,
                expires_at=expires_at,
            )
        )
        logger.info("Issued authorization code for client %s, user %s", client.client_id, user_id)
        return code

    # ========== Token Exchange ==========

    def _reject(self, reason: TokenErrorReason, client_id: Optional[str]) -> TokenEndpointError:
        logger.warning("Token request rejected for client %s: %s", client_id, reason.value)
        return TokenEndpointError(reason)

    async def redeem_authorization_code(self, request: TokenRequest) -> TokenResponse:
        """
        Exchange an authorization code for an access token.

        No code or token state is touched until every check has passed; the
        code is then deleted and the token created in one transaction.

        Args:
            request: Token endpoint form fields

        Returns:
            Bearer token response

        Raises:
            TokenEndpointError: With the precise failure reason
        """
        if request.grant_type != GRANT_TYPE_AUTHORIZATION_CODE:
            raise self._reject(TokenErrorReason.UNSUPPORTED_GRANT_TYPE, request.client_id)

        if not request.code or not request.redirect_uri or not request.client_id:
            raise self._reject(TokenErrorReason.MISSING_PARAMETERS, request.client_id)

        try:
            client = await self.store.get_client_by_client_id(request.client_id)
            if not client:
                raise self._reject(TokenErrorReason.UNKNOWN_CLIENT, request.client_id)

            auth_code = await self.store.get_auth_code(request.code)
        except DatabaseError as e:
            logger.error("Store failure while redeeming code: %s", e)
            raise TokenEndpointError(TokenErrorReason.STORE_FAILURE) from e

        if not auth_code:
            raise self._reject(TokenErrorReason.CODE_NOT_FOUND, request.client_id)
        if auth_code.client_id != client.id:
            raise self._reject(TokenErrorReason.CODE_CLIENT_MISMATCH, request.client_id)
        if auth_code.redirect_uri != request.redirect_uri:
            raise self._reject(TokenErrorReason.REDIRECT_URI_MISMATCH, request.client_id)

        now = self.clock()
        if not auth_code.expires_at > now:
            raise self._reject(TokenErrorReason.CODE_EXPIRED, request.client_id)

        if auth_code.code_challenge:
            if not request.code_verifier:
                raise self._reject(TokenErrorReason.MISSING_CODE_VERIFIER, request.client_id)
            if not verify_code_verifier(
                request.code_verifier,
                auth_code.code_challenge,
                auth_code.code_challenge_method,
            ):
                raise self._reject(TokenErrorReason.CODE_VERIFIER_MISMATCH, request.client_id)
        elif client.client_secret_hash is not None:
            if not request.client_secret or not pwd_context.verify(
                request.client_secret, client.client_secret_hash
            ):
                raise self._reject(TokenErrorReason.CLIENT_SECRET_MISMATCH, request.client_id)

        token = StoredAccessToken(
            id=uuid.uuid4().hex,
            token=secrets.token_hex(ACCESS_TOKEN_BYTES),
            client_id=client.id,
            user_id=auth_code.user_id,
            expires_at=now + ACCESS_TOKEN_LIFETIME_SECONDS,
        )

        try:
            redeemed = await self.store.redeem_auth_code(auth_code.id, token)
        except TokenIssuanceError as e:
            logger.error(
                "Token issuance failed for client %s, user %s; authorization code consumed: %s",
                request.client_id,
                auth_code.user_id,
                e,
            )
            raise TokenEndpointError(TokenErrorReason.TOKEN_ISSUANCE_FAILED) from e
        except DatabaseError as e:
            logger.error("Store failure while redeeming code: %s", e)
            raise TokenEndpointError(TokenErrorReason.STORE_FAILURE) from e

        if not redeemed:
            raise self._reject(TokenErrorReason.CODE_ALREADY_REDEEMED, request.client_id)

        logger.info("Issued access token for client %s, user %s", request.client_id, auth_code.user_id)
        return TokenResponse(access_token=token.token)

    # ========== Token Validation ==========

    async def authenticate_bearer(self, token: Optional[str]) -> Optional[AuthenticatedIdentity]:
        """
        Resolve a bearer token to the caller's identity.

        The development token, when configured, is checked before the store.

        Args:
            token: Bearer token from the Authorization header

        Returns:
            Identity if the token is valid and unexpired, None otherwise
        """
        if not token:
            return None

        if self.dev_bearer_token and hmac.compare_digest(
            token.encode(), self.dev_bearer_token.encode()
        ):
            logger.debug("Development bearer token accepted")
            return AuthenticatedIdentity(user_id=DEV_USER_ID, client_id=None, auth_type="dev_token")

        try:
            stored = await self.store.get_access_token(token)
        except DatabaseError as e:
            logger.error("Error validating token: %s", e)
            return None

        if not stored:
            logger.debug("No access token found")
            return None

        if not stored.expires_at > self.clock():
            logger.debug("Access token expired at %s", stored.expires_at)
            return None

        return AuthenticatedIdentity(
            user_id=stored.user_id,
            client_id=stored.client_id,
            auth_type="oauth2",
        )
