"""
Main entry point for the MCP Gmail gateway.

Builds the FastMCP server, registers the OAuth2/sign-in routes and the tools,
and serves them over streamable HTTP behind bearer authentication.
"""

import asyncio
import sys
import traceback

from fastmcp import FastMCP

from mcp_gateway.auth.setup import setup_oauth2_routes
from mcp_gateway.config import get_settings
from mcp_gateway.core import logger
from mcp_gateway.core.context import (
    cleanup_global_context,
    create_gateway_context,
    initialize_global_context,
    set_app_context,
)
from mcp_gateway.middleware import setup_middleware
from mcp_gateway.tools import register_tools

# Get settings instance
settings = get_settings()

# Initialize FastMCP server and shared services
try:
    logger.info("Initializing FastMCP server...")
    logger.info("Host: %s, Port: %s, Base URL: %s", settings.host, settings.port, settings.base_url)

    context = create_gateway_context(settings)
    set_app_context(context)

    mcp = FastMCP("MCP Gmail Gateway")
    logger.info("FastMCP server initialized successfully")

except Exception as e:
    logger.error(f"Failed to initialize FastMCP server: {e}")
    logger.error(f"Traceback: {traceback.format_exc()}")
    sys.exit(1)


# Register OAuth2 routes and MCP tools
setup_oauth2_routes(mcp, context.oauth2_server, context.google_sign_in)
register_tools(mcp)


async def main() -> None:
    """
    Main async function to run the MCP server.
    """
    try:
        logger.info("Main function started")

        # Create the schema and purge expired rows before serving
        await initialize_global_context(settings)
        logger.info("✓ Global context initialized")

        transport_map = {
            "http": "streamable-http",
            "streamable-http": "streamable-http",
            "sse": "sse",
        }
        transport = transport_map.get(settings.transport.lower(), "streamable-http")

        # Flush output before starting server
        sys.stdout.flush()
        sys.stderr.flush()

        logger.info(
            "Setting up %s server on %s:%s (MCP endpoint %s)...",
            transport,
            settings.host,
            settings.port,
            settings.mcp_path,
        )
        await mcp.run_async(
            transport=transport,  # type: ignore[arg-type]
            host=settings.host,
            port=settings.port,
            path=settings.mcp_path,
            middleware=setup_middleware(context.oauth2_server, settings),
        )

    except Exception as e:
        logger.error(f"Error in main function: {e}")
        logger.error(f"Traceback: {traceback.format_exc()}")
        raise
    finally:
        logger.info("Shutting down - cleaning up global context...")
        await cleanup_global_context()


def run() -> None:
    """Console script entry point."""
    try:
        logger.info("Starting main function...")
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Server stopped")


if __name__ == "__main__":
    run()
