"""
Middleware configuration for the FastMCP server.

Builds the Starlette middleware list for the HTTP app: a signed session
cookie for the browser sign-in flow, then bearer authentication for the
MCP endpoint.
"""

from typing import TYPE_CHECKING, List, Optional

from starlette.middleware import Middleware
from starlette.middleware.sessions import SessionMiddleware

from mcp_gateway.config import Settings, get_settings
from mcp_gateway.core import logger

if TYPE_CHECKING:
    from mcp_gateway.auth import OAuth2Server


def setup_middleware(
    oauth2_server: "OAuth2Server",
    settings: Optional[Settings] = None,
) -> List[Middleware]:
    """
    Configure session and authentication middleware.

    Args:
        oauth2_server: Authorization server used to resolve bearer tokens
        settings: Settings to use; defaults to the cached instance

    Returns:
        List of configured Middleware instances

    Example:
        >>> middleware = setup_middleware(context.oauth2_server, context.settings)
        >>> await mcp.run_async(transport="streamable-http", middleware=middleware)
    """
    settings = settings or get_settings()

    # Import here to avoid circular imports
    from mcp_gateway.auth.middleware import BearerAuthMiddleware

    middleware = [
        Middleware(
            SessionMiddleware,
            secret_key=settings.session_secret_key,
            https_only=settings.base_url.startswith("https://"),
        ),
    ]
    logger.info("✓ Session middleware enabled")

    middleware.append(
        Middleware(
            BearerAuthMiddleware,
            oauth2_server=oauth2_server,
            protected_path=settings.mcp_path,
        )
    )
    logger.info("✓ Bearer authentication enabled for %s", settings.mcp_path)

    if oauth2_server.dev_bearer_token:
        logger.warning("⚠ Development bearer token is accepted (DEV_MODE=true)")

    return middleware
