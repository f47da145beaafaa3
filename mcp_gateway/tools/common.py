"""Shared helpers for gateway tools: caller identity and Gmail access."""

import asyncio
import logging
from typing import Any, Callable, TypeVar

from fastmcp.server.dependencies import get_http_request

from mcp_gateway.core import MCPToolError
from mcp_gateway.core.context import GatewayContext, get_app_context

logger = logging.getLogger(__name__)

T = TypeVar("T")


def require_context() -> GatewayContext:
    """Return the application context or fail the tool call."""
    app_ctx = get_app_context()
    if app_ctx is None:
        raise MCPToolError("Gateway context not initialized")
    return app_ctx


def get_current_user_id() -> str:
    """
    Resolve the caller from the authenticated HTTP request.

    The bearer middleware stores the identity on ``request.state``.
    """
    try:
        request = get_http_request()
    except RuntimeError as e:
        raise MCPToolError("No authenticated HTTP request for this tool call") from e

    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise MCPToolError("Unauthorized")
    return user_id


async def call_gmail(
    app_ctx: GatewayContext,
    user_id: str,
    func: Callable[..., T],
    *args: Any,
    **kwargs: Any,
) -> T:
    """Build the user's Gmail service and run a blocking Gmail helper in a thread."""
    service = await app_ctx.gmail.get_service(user_id)
    return await asyncio.to_thread(func, service, *args, **kwargs)
