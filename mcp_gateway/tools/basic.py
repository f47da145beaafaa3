"""
Basic MCP tools.

- add_numbers: Add two numbers
- validate: Return the server owner's configured phone number
"""

import logging
from typing import TYPE_CHECKING

from mcp_gateway.core import track_request
from mcp_gateway.tools.common import require_context

if TYPE_CHECKING:
    from fastmcp import FastMCP

logger = logging.getLogger(__name__)


def format_sum(a: float, b: float) -> str:
    return f"The sum of {a} and {b} is {a + b}"


def register_basic_tools(mcp: "FastMCP") -> None:
    """
    Register basic MCP tools.

    Args:
        mcp: FastMCP instance to register tools with
    """

    @mcp.tool()
    @track_request("add_numbers")
    async def add_numbers(a: float, b: float) -> str:
        """
        Add two numbers together.

        Args:
            a: First number
            b: Second number

        Returns:
            Sentence stating the sum
        """
        return format_sum(a, b)

    @mcp.tool()
    @track_request("validate")
    async def validate() -> str:
        """
        Return the phone number of the server owner.

        Returns:
            The configured number, or "not_set"
        """
        return require_context().settings.dev_phone_number or "not_set"
