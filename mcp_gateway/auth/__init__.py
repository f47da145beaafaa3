"""OAuth2 authorization server, bearer authentication and sign-in routes."""

from mcp_gateway.auth.oauth2_server import (
    AuthenticatedIdentity,
    OAuth2Server,
    RegistrationError,
    TokenEndpointError,
    TokenErrorReason,
    TokenRequest,
    TokenResponse,
)

__all__ = [
    "AuthenticatedIdentity",
    "OAuth2Server",
    "RegistrationError",
    "TokenEndpointError",
    "TokenErrorReason",
    "TokenRequest",
    "TokenResponse",
]
