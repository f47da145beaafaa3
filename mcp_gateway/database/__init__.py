"""Relational store for the MCP Gmail gateway."""

from mcp_gateway.database.sqlite_store import SQLiteStore

__all__ = ["SQLiteStore"]
