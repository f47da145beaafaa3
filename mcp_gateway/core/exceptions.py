"""Custom exceptions for the MCP Gmail gateway."""


class MCPToolError(Exception):
    """Custom exception for MCP tool errors that should be returned as JSON-RPC errors."""

    def __init__(self, message: str, code: int = -32000):
        self.message = message
        self.code = code
        super().__init__(message)


# ========================================
# Base Exceptions
# ========================================


class GatewayError(Exception):
    """Base exception for all gateway errors."""


# ========================================
# Database Exceptions
# ========================================


class DatabaseError(GatewayError):
    """Base exception for relational store errors."""


class StoreUnavailableError(DatabaseError):
    """The store could not be opened or queried."""


class IntegrityError(DatabaseError):
    """A write violated a uniqueness or foreign key constraint."""


# ========================================
# Validation Exceptions
# ========================================


class ValidationError(GatewayError):
    """Base exception for validation errors."""


class ConfigurationError(ValidationError):
    """Configuration validation failed."""


class InputValidationError(ValidationError):
    """Input parameter validation failed."""


# ========================================
# External Service Exceptions
# ========================================


class ExternalServiceError(GatewayError):
    """Base exception for upstream service errors."""


class GoogleAuthError(ExternalServiceError):
    """Google credentials are missing, revoked or could not be refreshed."""


class GmailAPIError(ExternalServiceError):
    """A Gmail API call failed."""

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)


class TokenIssuanceError(DatabaseError):
    """An authorization code was claimed but the access token could not be written."""
