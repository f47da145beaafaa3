"""
OAuth2 and sign-in route registration for the FastMCP server.

Creates closure adapters around the handlers in ``mcp_gateway.auth.routes``,
injecting the authorization server and Google sign-in dependencies.
"""

from typing import TYPE_CHECKING

from mcp_gateway.core import logger

if TYPE_CHECKING:
    from fastmcp import FastMCP

    from mcp_gateway.auth.oauth2_server import OAuth2Server
    from mcp_gateway.services.google_auth import GoogleSignIn


def setup_oauth2_routes(
    mcp: "FastMCP",
    oauth2_server: "OAuth2Server",
    google_sign_in: "GoogleSignIn",
) -> None:
    """
    Register OAuth2 and sign-in endpoints with FastMCP server.

    Registers:
    - /.well-known/oauth-authorization-server (RFC 8414)
    - /.well-known/oauth-protected-resource (RFC 9728)
    - /api/oauth/register (RFC 7591 - Dynamic Client Registration)
    - /api/oauth/token (Token exchange)
    - /oauth/authorize (Authorization flow)
    - /auth/google/login, /auth/google/callback, /auth/signout, /

    Args:
        mcp: FastMCP server instance
        oauth2_server: Authorization server shared by all handlers
        google_sign_in: Google consent flow used by the authorize endpoint

    Example:
        >>> mcp = FastMCP("My Server")
        >>> context = create_gateway_context(get_settings())
        >>> setup_oauth2_routes(mcp, context.oauth2_server, context.google_sign_in)
    """
    from mcp_gateway.auth.routes import (
        authorization_server_metadata,
        authorize_get,
        google_callback,
        google_login,
        home,
        protected_resource_metadata,
        register_client,
        signout,
        token_endpoint,
    )

    # Register metadata endpoints
    @mcp.custom_route("/.well-known/oauth-authorization-server", methods=["GET", "OPTIONS"])
    async def _authorization_server_metadata(request):
        """OAuth 2.0 Authorization Server Metadata (RFC 8414)."""
        return await authorization_server_metadata(request, oauth2_server)

    @mcp.custom_route("/.well-known/oauth-protected-resource", methods=["GET", "OPTIONS"])
    async def _protected_resource_metadata(request):
        """Protected Resource Metadata (RFC 9728)."""
        return await protected_resource_metadata(request, oauth2_server)

    # Register OAuth2 flow endpoints
    @mcp.custom_route("/api/oauth/register", methods=["POST", "OPTIONS"])
    async def _register_client(request):
        """Dynamic Client Registration (RFC 7591)."""
        return await register_client(request, oauth2_server)

    @mcp.custom_route("/api/oauth/token", methods=["POST", "OPTIONS"])
    async def _token_endpoint(request):
        """Token endpoint - exchanges authorization code for access token."""
        return await token_endpoint(request, oauth2_server)

    @mcp.custom_route("/oauth/authorize", methods=["GET"])
    async def _authorize_get(request):
        """Authorization endpoint - issues a code or starts Google sign-in."""
        return await authorize_get(request, oauth2_server)

    # Register Google sign-in endpoints
    @mcp.custom_route("/auth/google/login", methods=["GET"])
    async def _google_login(request):
        return await google_login(request, google_sign_in)

    @mcp.custom_route("/auth/google/callback", methods=["GET"])
    async def _google_callback(request):
        return await google_callback(request, google_sign_in, oauth2_server)

    @mcp.custom_route("/auth/signout", methods=["GET"])
    async def _signout(request):
        return await signout(request)

    @mcp.custom_route("/", methods=["GET"])
    async def _home(request):
        return await home(request, oauth2_server.issuer)

    logger.info("✓ OAuth2 endpoints registered (9 routes)")
