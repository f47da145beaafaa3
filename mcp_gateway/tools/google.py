"""
Google account tools for MCP server.

- google_auth_link: Link to sign in with Google
- check_google_auth: Report which Google account the caller is linked to
"""

import logging
from typing import TYPE_CHECKING

from mcp_gateway.core import DatabaseError, MCPToolError, track_request
from mcp_gateway.core.context import GatewayContext
from mcp_gateway.tools.common import get_current_user_id, require_context

if TYPE_CHECKING:
    from fastmcp import FastMCP

logger = logging.getLogger(__name__)


def google_sign_in_link(app_ctx: GatewayContext) -> str:
    return f"Sign in with Google: {app_ctx.settings.base_url}/auth/google/login"


async def describe_google_auth(app_ctx: GatewayContext, user_id: str) -> str:
    """Report the Google sign-in status for a gateway user."""
    try:
        user = await app_ctx.store.get_user(user_id)
        account = await app_ctx.store.get_google_account(user_id) if user else None
    except DatabaseError as e:
        logger.error("Error checking Google auth for %s: %s", user_id, e)
        raise MCPToolError("Error checking authentication status.") from e

    if user and account:
        return f"User is logged in as {user.email}"
    return "User is not logged in with Google."


def register_google_tools(mcp: "FastMCP") -> None:
    """
    Register Google account MCP tools.

    Args:
        mcp: FastMCP instance to register tools with
    """

    @mcp.tool()
    @track_request("google_auth_link")
    async def google_auth_link() -> str:
        """
        Get a link to sign in with Google.

        Signing in links a Google account so the email tools can act on it.

        Returns:
            Sign-in URL
        """
        return google_sign_in_link(require_context())

    @mcp.tool()
    @track_request("check_google_auth")
    async def check_google_auth() -> str:
        """
        Check whether the caller is signed in with Google.

        Returns:
            The linked Google email, or a not-logged-in message
        """
        return await describe_google_auth(require_context(), get_current_user_id())
