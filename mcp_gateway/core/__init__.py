"""Core functionality for the MCP Gmail gateway."""

from .constants import (
    ACCESS_TOKEN_LIFETIME_SECONDS,
    DEV_USER_ID,
    GMAIL_BATCH_SIZE_DEFAULT,
    TOKEN_TYPE_BEARER,
)
from .decorators import track_request
from .exceptions import (
    DatabaseError,
    GatewayError,
    GmailAPIError,
    GoogleAuthError,
    MCPToolError,
    StoreUnavailableError,
)
from .logging import bind_request_context, configure_logging, logger, request_id_ctx, reset_request_context

__all__ = [
    # Core
    "DatabaseError",
    "GatewayError",
    "GmailAPIError",
    "GoogleAuthError",
    "MCPToolError",
    "StoreUnavailableError",
    "bind_request_context",
    "configure_logging",
    "logger",
    "request_id_ctx",
    "reset_request_context",
    "track_request",
    # Constants - most commonly used
    "ACCESS_TOKEN_LIFETIME_SECONDS",
    "DEV_USER_ID",
    "GMAIL_BATCH_SIZE_DEFAULT",
    "TOKEN_TYPE_BEARER",
]
