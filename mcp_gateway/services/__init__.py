"""Upstream Google services used by the gateway."""
