"""Application context and lifecycle management for the MCP Gmail gateway."""

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from mcp_gateway.config import Settings

from .logging import logger

if TYPE_CHECKING:
    from mcp_gateway.auth.oauth2_server import OAuth2Server
    from mcp_gateway.database import SQLiteStore
    from mcp_gateway.services.gmail import GmailClientFactory
    from mcp_gateway.services.google_auth import GoogleSignIn

# Global context storage
_app_context: Optional["GatewayContext"] = None
_context_lock: asyncio.Lock | None = None  # Created lazily inside the running loop


@dataclass
class GatewayContext:
    """Shared services for request handlers and tools."""

    settings: Settings
    store: "SQLiteStore"
    oauth2_server: "OAuth2Server"
    google_sign_in: "GoogleSignIn"
    gmail: "GmailClientFactory"
    initialized: bool = False


def set_app_context(context: Optional[GatewayContext]) -> None:
    """Store the application context globally."""
    global _app_context
    _app_context = context


def get_app_context() -> Optional[GatewayContext]:
    """Get the stored application context."""
    return _app_context


def create_gateway_context(settings: Settings) -> GatewayContext:
    """Build the store, authorization server and Google clients from settings."""
    from mcp_gateway.auth.oauth2_server import OAuth2Server
    from mcp_gateway.database import SQLiteStore
    from mcp_gateway.services.gmail import GmailClientFactory
    from mcp_gateway.services.google_auth import GoogleSignIn

    store = SQLiteStore(settings.database_path)
    oauth2_server = OAuth2Server(
        store=store,
        issuer=settings.base_url,
        resource_url=f"{settings.base_url}{settings.mcp_path}",
        scopes=settings.get_oauth2_scopes_list(),
        authorization_code_expire_minutes=settings.authorization_code_expire_minutes,
        dev_bearer_token=settings.get_dev_bearer_token(),
    )
    google_sign_in = GoogleSignIn(
        store=store,
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        scopes=settings.get_google_scopes_list(),
        redirect_uri=f"{settings.base_url}/auth/google/callback",
    )
    gmail = GmailClientFactory(
        store=store,
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
    )
    return GatewayContext(
        settings=settings,
        store=store,
        oauth2_server=oauth2_server,
        google_sign_in=google_sign_in,
        gmail=gmail,
    )


async def initialize_global_context(settings: Settings | None = None) -> GatewayContext:
    """Initialize the global application context once.

    Creates the context if none was set, then creates the schema and purges
    expired codes and tokens.

    Returns:
        GatewayContext: The initialized context
    """
    global _app_context, _context_lock

    if _context_lock is None:
        _context_lock = asyncio.Lock()

    async with _context_lock:
        if _app_context is None:
            if settings is None:
                from mcp_gateway.config import get_settings

                settings = get_settings()
            _app_context = create_gateway_context(settings)

        if _app_context.initialized:
            logger.info("Using existing application context (singleton)")
            return _app_context

        logger.info("Initializing global application context...")
        await _app_context.store.initialize()
        await _app_context.store.purge_expired()

        _app_context.initialized = True
        logger.info("✓ Global application context initialized successfully")
        return _app_context


async def cleanup_global_context() -> None:
    """Clean up the global application context.

    This should be called at application shutdown.
    """
    global _app_context

    if _app_context is None:
        logger.info("No global context to clean up")
        return

    _app_context = None
    logger.info("✓ Global application context cleanup completed")
