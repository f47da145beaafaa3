"""
MCP Tools Package.

This package contains all MCP tool definitions organized by category:
- basic: add_numbers and owner validation
- google: Google sign-in link and status
- messages: Gmail send/draft/read/search/modify/delete and batch operations
- labels: Gmail label management

Each module provides a register_*_tools() function to register tools with FastMCP.
"""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fastmcp import FastMCP

from mcp_gateway.tools.basic import register_basic_tools
from mcp_gateway.tools.google import register_google_tools
from mcp_gateway.tools.labels import register_label_tools
from mcp_gateway.tools.messages import register_email_tools

logger = logging.getLogger(__name__)


def register_tools(mcp: "FastMCP") -> None:
    """
    Register all MCP tools with the FastMCP instance.

    Args:
        mcp: FastMCP instance to register tools with
    """
    logger.info("Registering all MCP tools...")

    register_basic_tools(mcp)
    register_google_tools(mcp)
    register_email_tools(mcp)
    register_label_tools(mcp)

    logger.info("All MCP tools registered successfully")


__all__ = [
    "register_basic_tools",
    "register_email_tools",
    "register_google_tools",
    "register_label_tools",
    "register_tools",
]
