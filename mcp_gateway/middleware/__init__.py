"""HTTP middleware configuration."""

from .setup import setup_middleware

__all__ = ["setup_middleware"]
