"""Configuration settings for the MCP Gmail gateway using Pydantic Settings.

This module provides type-safe configuration management with automatic validation,
environment variable loading, and documentation generation.
"""

import logging
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mcp_gateway.core.constants import (
    AUTHORIZATION_CODE_EXPIRE_MINUTES_DEFAULT,
    GMAIL_BATCH_SIZE_DEFAULT,
    GOOGLE_SCOPES_DEFAULT,
    OAUTH2_SCOPES_DEFAULT,
)

logger = logging.getLogger(__name__)

DEFAULT_SESSION_SECRET_KEY = "change-me-in-production"


class Settings(BaseSettings):
    """Central configuration management with Pydantic validation.

    All settings are loaded from environment variables with automatic type conversion
    and validation. Default values are provided for non-critical settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
        populate_by_name=True,
    )

    # ========================================
    # Debug Settings
    # ========================================
    debug: bool = Field(
        default=False,
        alias="MCP_DEBUG",
        description="Enable debug mode with verbose logging",
    )

    # ========================================
    # Server Settings
    # ========================================
    host: str = Field(
        default="0.0.0.0",
        description="Server host address",
    )

    port: int = Field(
        default=3000,
        ge=1024,
        le=65535,
        description="Server port number",
    )

    transport: str = Field(
        default="http",
        description="Transport mode (http, streamable-http or sse)",
    )

    mcp_path: str = Field(
        default="/mcp",
        description="Path the MCP endpoint is mounted on",
    )

    base_url: str | None = Field(
        default=None,
        description="Public base URL used in discovery documents and sign-in links",
    )

    # ========================================
    # Database Settings
    # ========================================
    database_path: str = Field(
        default="mcp_gateway.db",
        description="SQLite database file for clients, codes, tokens and accounts",
    )

    # ========================================
    # OAuth2 Settings
    # ========================================
    session_secret_key: str = Field(
        default=DEFAULT_SESSION_SECRET_KEY,
        description="Secret used to sign the browser session cookie",
    )

    oauth2_scopes: str = Field(
        default=",".join(OAUTH2_SCOPES_DEFAULT),
        description="Comma-separated list of scopes advertised in discovery metadata",
    )

    authorization_code_expire_minutes: int = Field(
        default=AUTHORIZATION_CODE_EXPIRE_MINUTES_DEFAULT,
        ge=1,
        le=60,
        description="Lifetime of issued authorization codes",
    )

    dev_mode: bool = Field(
        default=False,
        description="Accept SIMPLE_BEARER_TOKEN as a development bypass",
    )

    simple_bearer_token: str | None = Field(
        default=None,
        description="Static bearer token accepted only when dev_mode is enabled",
    )

    # ========================================
    # Google Settings
    # ========================================
    google_client_id: str | None = Field(
        default=None,
        description="Google OAuth client id used for sign-in and token refresh",
    )

    google_client_secret: str | None = Field(
        default=None,
        description="Google OAuth client secret",
    )

    google_scopes: str = Field(
        default=" ".join(GOOGLE_SCOPES_DEFAULT),
        description="Space-separated Google scopes requested at sign-in",
    )

    gmail_batch_size: int = Field(
        default=GMAIL_BATCH_SIZE_DEFAULT,
        ge=1,
        le=1000,
        description="Default number of messages per Gmail batch request",
    )

    # ========================================
    # Tool Settings
    # ========================================
    dev_phone_number: str | None = Field(
        default=None,
        alias="DEV_PHNO",
        description="Server owner's number returned by the validate tool",
    )

    # ========================================
    # Validators
    # ========================================
    @field_validator("base_url", mode="before")
    @classmethod
    def set_base_url(cls, v: str | None, info: Any) -> str:
        """Set base URL default from host and port if not provided."""
        if v:
            return v.rstrip("/")
        host = info.data.get("host", "0.0.0.0")
        port = info.data.get("port", 3000)
        if host == "0.0.0.0":
            host = "localhost"
        return f"http://{host}:{port}"

    @field_validator("mcp_path")
    @classmethod
    def normalize_mcp_path(cls, v: str) -> str:
        """Ensure the MCP path starts with a slash and has no trailing slash."""
        v = "/" + v.strip("/")
        return v

    # ========================================
    # Helper Methods
    # ========================================
    def has_google_config(self) -> bool:
        """Check if Google OAuth client credentials are configured."""
        return all([self.google_client_id, self.google_client_secret])

    def get_oauth2_scopes_list(self) -> list[str]:
        """Get OAuth2 scopes as a list."""
        return [s.strip() for s in self.oauth2_scopes.split(",") if s.strip()]

    def get_google_scopes_list(self) -> list[str]:
        """Get Google scopes as a list."""
        return self.google_scopes.split()

    def get_dev_bearer_token(self) -> str | None:
        """Return the bypass token only when development mode is on."""
        if self.dev_mode and self.simple_bearer_token:
            return self.simple_bearer_token
        return None

    def uses_default_session_secret(self) -> bool:
        return self.session_secret_key == DEFAULT_SESSION_SECRET_KEY

    def to_dict(self) -> dict[str, Any]:
        """Export settings as a dictionary (safe version without secrets)."""
        return {
            "debug": self.debug,
            "host": self.host,
            "port": self.port,
            "transport": self.transport,
            "mcp_path": self.mcp_path,
            "base_url": self.base_url,
            "database_path": self.database_path,
            "dev_mode": self.dev_mode,
            "has_dev_token": bool(self.simple_bearer_token),
            "has_google": self.has_google_config(),
            "authorization_code_expire_minutes": self.authorization_code_expire_minutes,
            "gmail_batch_size": self.gmail_batch_size,
        }


_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance (singleton pattern)."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
        logger.info("Settings initialized from environment")
        logger.debug("Database path: %s", _settings_instance.database_path)
        if not _settings_instance.has_google_config():
            logger.warning(
                "GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET are missing. Google sign-in and Gmail tools will be unavailable.",
            )
        if _settings_instance.simple_bearer_token and not _settings_instance.dev_mode:
            logger.warning("SIMPLE_BEARER_TOKEN is set but DEV_MODE is off; it will be ignored.")
        if _settings_instance.uses_default_session_secret() and _settings_instance.base_url.startswith("https://"):
            logger.warning(
                "SESSION_SECRET_KEY is the built-in default while serving %s; set a random secret.",
                _settings_instance.base_url,
            )
    return _settings_instance


def reset_settings() -> None:
    """Reset settings instance (useful for testing)."""
    global _settings_instance
    _settings_instance = None
