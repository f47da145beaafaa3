"""
Bearer authentication middleware for the MCP endpoint.

Only the MCP endpoint is protected; OAuth, discovery and sign-in routes are
served without a token.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse

from mcp_gateway.auth.oauth2_server import OAuth2Server
from mcp_gateway.core.constants import CORS_ALLOW_HEADERS, HTTP_UNAUTHORIZED

MCP_METHODS = "GET, POST, DELETE, OPTIONS"


class BearerAuthMiddleware(BaseHTTPMiddleware):
    """
    Middleware requiring a valid bearer token on the MCP endpoint.

    On success the caller's identity is placed on ``request.state``
    (``user_id``, ``client_id``, ``auth_type``) for tools to read.
    Otherwise returns 401 Unauthorized.
    """

    def __init__(self, app, oauth2_server: OAuth2Server, protected_path: str = "/mcp"):
        """
        Initialize middleware.

        Args:
            app: ASGI application
            oauth2_server: Authorization server used to resolve tokens
            protected_path: Path of the MCP endpoint
        """
        super().__init__(app)
        self.oauth2_server = oauth2_server
        self.protected_path = protected_path.rstrip("/") or "/"

    def is_protected(self, path: str) -> bool:
        return path == self.protected_path or path.startswith(self.protected_path + "/")

    async def dispatch(self, request: Request, call_next):
        """Authenticate requests to the MCP endpoint."""
        if not self.is_protected(request.url.path):
            return await call_next(request)

        if request.method == "OPTIONS":
            return PlainTextResponse(
                "OK",
                headers={
                    "Access-Control-Allow-Origin": "*",
                    "Access-Control-Allow-Methods": MCP_METHODS,
                    "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
                },
            )

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return self._unauthorized_response()

        identity = await self.oauth2_server.authenticate_bearer(auth_header[7:].strip())
        if identity is None:
            return self._unauthorized_response()

        request.state.user_id = identity.user_id
        request.state.client_id = identity.client_id
        request.state.auth_type = identity.auth_type
        return await call_next(request)

    def _unauthorized_response(self) -> JSONResponse:
        """Create 401 Unauthorized response with WWW-Authenticate header."""
        # Include resource metadata URL for OAuth2 discovery
        resource_metadata_url = (
            f"{self.oauth2_server.issuer}/.well-known/oauth-protected-resource"
        )

        return JSONResponse(
            {"error": "Unauthorized"},
            status_code=HTTP_UNAUTHORIZED,
            headers={
                "Access-Control-Allow-Origin": "*",
                "WWW-Authenticate": f'Bearer resource_metadata="{resource_metadata_url}"',
            },
        )
