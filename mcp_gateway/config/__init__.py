"""Configuration package for the MCP Gmail gateway."""

from mcp_gateway.config.settings import Settings, get_settings, reset_settings

__all__ = ["Settings", "get_settings", "reset_settings"]
