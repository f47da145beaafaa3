"""
Tests for mcp_gateway.middleware.setup.

Tests middleware configuration for the HTTP app.
"""

from unittest.mock import Mock

from starlette.middleware.sessions import SessionMiddleware

from mcp_gateway.auth.middleware import BearerAuthMiddleware
from mcp_gateway.config import Settings
from mcp_gateway.middleware import setup_middleware


def make_settings(**overrides):
    return Settings(_env_file=None, session_secret_key="session-secret", **overrides)


class TestSetupMiddleware:
    def test_returns_session_then_bearer(self):
        middleware = setup_middleware(Mock(dev_bearer_token=None), make_settings())

        assert [m.cls for m in middleware] == [SessionMiddleware, BearerAuthMiddleware]

    def test_session_uses_secret_key(self):
        middleware = setup_middleware(Mock(dev_bearer_token=None), make_settings())

        assert middleware[0].kwargs["secret_key"] == "session-secret"

    def test_https_base_url_marks_cookie_secure(self):
        middleware = setup_middleware(
            Mock(dev_bearer_token=None), make_settings(base_url="https://gw.example.com")
        )
        assert middleware[0].kwargs["https_only"] is True

    def test_bearer_protects_configured_path(self):
        oauth2_server = Mock(dev_bearer_token=None)
        middleware = setup_middleware(oauth2_server, make_settings(mcp_path="/gateway/mcp"))

        assert middleware[1].kwargs == {"oauth2_server": oauth2_server, "protected_path": "/gateway/mcp"}


class TestBearerAuthMiddlewarePaths:
    def test_is_protected(self):
        middleware = BearerAuthMiddleware(Mock(), oauth2_server=Mock(), protected_path="/mcp")

        assert middleware.is_protected("/mcp")
        assert middleware.is_protected("/mcp/")
        assert middleware.is_protected("/mcp/messages")
        assert not middleware.is_protected("/mcpx")
        assert not middleware.is_protected("/api/oauth/token")
