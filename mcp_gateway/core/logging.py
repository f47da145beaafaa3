"""
Logging configuration for the MCP Gmail gateway.

Records carry a request prefix built from context variables: the tool request
id and, on the HTTP transport, the authenticated user and OAuth client.
"""

import logging
import os
import sys
from contextvars import ContextVar, Token
from typing import NamedTuple

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
user_id_ctx: ContextVar[str | None] = ContextVar("user_id", default=None)
client_id_ctx: ContextVar[str | None] = ContextVar("client_id", default=None)

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(request_context)s%(message)s"


class RequestTokens(NamedTuple):
    request_id: Token
    user_id: Token
    client_id: Token


def bind_request_context(
    request_id: str,
    user_id: str | None = None,
    client_id: str | None = None,
) -> RequestTokens:
    """Bind the identifiers of the current tool call to the logging context."""
    return RequestTokens(
        request_id=request_id_ctx.set(request_id),
        user_id=user_id_ctx.set(user_id),
        client_id=client_id_ctx.set(client_id),
    )


def reset_request_context(tokens: RequestTokens) -> None:
    request_id_ctx.reset(tokens.request_id)
    user_id_ctx.reset(tokens.user_id)
    client_id_ctx.reset(tokens.client_id)


def format_request_context() -> str:
    """Render the bound identifiers as ``[id user=... client=...] `` or ``""``."""
    parts = []
    request_id = request_id_ctx.get()
    if request_id:
        parts.append(request_id)
    user_id = user_id_ctx.get()
    if user_id:
        parts.append(f"user={user_id}")
    client_id = client_id_ctx.get()
    if client_id:
        parts.append(f"client={client_id}")
    return f"[{' '.join(parts)}] " if parts else ""


class RequestContextFilter(logging.Filter):
    """Logging filter that stamps the request context onto each record."""

    def filter(self, record):
        record.request_id = request_id_ctx.get()
        record.user_id = user_id_ctx.get()
        record.client_id = client_id_ctx.get()
        record.request_context = format_request_context()
        return True


def configure_logging() -> logging.Logger:
    """Configure stderr logging and return the gateway logger."""
    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    # Module loggers propagate to root, so the filter lives on the root handlers
    request_filter = RequestContextFilter()
    for handler in logging.root.handlers:
        handler.addFilter(request_filter)

    logger = logging.getLogger("mcp-gateway")
    if os.getenv("MCP_DEBUG", "").lower() in ("true", "1", "yes"):
        logger.setLevel(logging.DEBUG)
        logger.debug("Debug mode enabled")

    return logger


logger = configure_logging()
