"""MCP Gmail gateway: OAuth2-protected MCP server exposing Gmail tools."""

__version__ = "0.1.0"
