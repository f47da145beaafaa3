"""
OAuth2 and sign-in endpoints for the MCP gateway using Starlette.

Implements:
- Authorization Server Metadata (RFC 8414)
- Protected Resource Metadata (RFC 9728)
- Dynamic Client Registration (RFC 7591)
- Token endpoint (authorization_code grant with PKCE)
- Authorization endpoint backed by Google sign-in, with Jinja2 templates

Every OAuth/discovery response carries permissive CORS headers.
"""

import logging
import secrets
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from jinja2 import Environment, FileSystemLoader, select_autoescape
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse, Response

from mcp_gateway.auth.oauth2_server import (
    AuthorizationRequestError,
    OAuth2Server,
    RegistrationError,
    TokenEndpointError,
    TokenRequest,
)
from mcp_gateway.core.constants import CORS_ALLOW_HEADERS, HTTP_BAD_REQUEST, HTTP_SERVER_ERROR
from mcp_gateway.core.exceptions import ConfigurationError, DatabaseError, GoogleAuthError
from mcp_gateway.services.google_auth import GoogleSignIn

logger = logging.getLogger(__name__)

# Initialize Jinja2 templates
template_dir = Path(__file__).parent / "templates"
jinja_env = Environment(
    loader=FileSystemLoader(str(template_dir)),
    autoescape=select_autoescape(["html"]),
)

# Session keys
SESSION_USER_ID = "user_id"
SESSION_EMAIL = "email"
SESSION_PENDING_AUTHORIZATION = "pending_authorization"
SESSION_GOOGLE_STATE = "google_oauth_state"
SESSION_GOOGLE_VERIFIER = "google_code_verifier"

AUTHORIZATION_PARAMS = (
    "client_id",
    "redirect_uri",
    "response_type",
    "scope",
    "state",
    "code_challenge",
    "code_challenge_method",
)


def cors_headers(methods: str) -> Dict[str, str]:
    return {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": methods,
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
    }


def preflight_response(methods: str) -> Response:
    """Answer a CORS preflight request."""
    return PlainTextResponse("OK", headers=cors_headers(methods))


def render_template(template_name: str, context: dict, status_code: int = 200) -> HTMLResponse:
    """Render Jinja2 template."""
    template = jinja_env.get_template(template_name)
    return HTMLResponse(content=template.render(**context), status_code=status_code)


def render_error(title: str, message: str, status_code: int = HTTP_BAD_REQUEST) -> HTMLResponse:
    return render_template("error.html", {"title": title, "message": message}, status_code)


def build_redirect_url(redirect_uri: str, code: str, state: Optional[str]) -> str:
    """Append code (and state, when present) to the client's redirect URI."""
    params = {"code": code}
    if state:
        params["state"] = state
    separator = "&" if "?" in redirect_uri else "?"
    return f"{redirect_uri}{separator}{urlencode(params)}"


# ========== Discovery ==========

DISCOVERY_METHODS = "GET, OPTIONS"


async def authorization_server_metadata(request: Request, oauth2_server: OAuth2Server) -> Response:
    """OAuth 2.0 Authorization Server Metadata (RFC 8414)."""
    if request.method == "OPTIONS":
        return preflight_response(DISCOVERY_METHODS)
    return JSONResponse(
        oauth2_server.get_authorization_server_metadata(),
        headers=cors_headers(DISCOVERY_METHODS),
    )


async def protected_resource_metadata(request: Request, oauth2_server: OAuth2Server) -> Response:
    """Protected Resource Metadata (RFC 9728)."""
    if request.method == "OPTIONS":
        return preflight_response(DISCOVERY_METHODS)
    return JSONResponse(
        oauth2_server.get_protected_resource_metadata(),
        headers=cors_headers(DISCOVERY_METHODS),
    )


# ========== Registration and Token ==========

OAUTH_METHODS = "POST, OPTIONS"


async def register_client(request: Request, oauth2_server: OAuth2Server) -> Response:
    """Dynamic Client Registration (RFC 7591)."""
    if request.method == "OPTIONS":
        return preflight_response(OAUTH_METHODS)

    headers = cors_headers(OAUTH_METHODS)
    try:
        body = await request.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        return JSONResponse({"error": "Missing required fields"}, status_code=HTTP_BAD_REQUEST, headers=headers)

    try:
        client = await oauth2_server.register_client(
            client_name=body.get("client_name"),
            redirect_uris=body.get("redirect_uris"),
        )
    except RegistrationError as e:
        return JSONResponse(e.to_dict(), status_code=e.status_code, headers=headers)
    except Exception as e:
        logger.error("Unexpected error registering client: %s", e, exc_info=True)
        return JSONResponse({"error": "Error creating client"}, status_code=HTTP_SERVER_ERROR, headers=headers)

    return JSONResponse(client.to_dict(), headers=headers)


async def token_endpoint(request: Request, oauth2_server: OAuth2Server) -> Response:
    """Token endpoint - exchanges authorization code for access token."""
    if request.method == "OPTIONS":
        return preflight_response(OAUTH_METHODS)

    headers = cors_headers(OAUTH_METHODS)
    try:
        form = await request.form()
        token = await oauth2_server.redeem_authorization_code(TokenRequest.from_form(form))
    except TokenEndpointError as e:
        return JSONResponse(e.to_dict(), status_code=e.status_code, headers=headers)
    except Exception as e:
        logger.error("Unexpected error in token endpoint: %s", e, exc_info=True)
        return JSONResponse({"error": "Server error"}, status_code=HTTP_SERVER_ERROR, headers=headers)

    return JSONResponse(token.to_dict(), headers=headers)


# ========== Authorization ==========


async def _issue_code_and_redirect(
    oauth2_server: OAuth2Server,
    params: Dict[str, Any],
    user_id: str,
) -> Response:
    client = await oauth2_server.validate_authorization_request(
        client_id=params.get("client_id"),
        redirect_uri=params.get("redirect_uri"),
        response_type=params.get("response_type"),
        code_challenge_method=params.get("code_challenge_method"),
    )
    code = await oauth2_server.create_authorization_code(
        client=client,
        user_id=user_id,
        redirect_uri=params["redirect_uri"],
        code_challenge=params.get("code_challenge"),
        code_challenge_method=params.get("code_challenge_method"),
        scope=params.get("scope"),
    )
    return RedirectResponse(
        url=build_redirect_url(params["redirect_uri"], code, params.get("state")),
        status_code=302,
    )


async def authorize_get(request: Request, oauth2_server: OAuth2Server) -> Response:
    """Authorization endpoint (GET) - issues a code or asks the user to sign in."""
    params = {name: request.query_params.get(name) for name in AUTHORIZATION_PARAMS}

    try:
        client = await oauth2_server.validate_authorization_request(
            client_id=params["client_id"],
            redirect_uri=params["redirect_uri"],
            response_type=params["response_type"],
            code_challenge_method=params["code_challenge_method"],
        )

        user_id = request.session.get(SESSION_USER_ID)
        if user_id:
            return await _issue_code_and_redirect(oauth2_server, params, user_id)
    except AuthorizationRequestError as e:
        logger.warning("Rejected authorization request: %s", e)
        return JSONResponse(e.to_dict(), status_code=HTTP_BAD_REQUEST)
    except DatabaseError as e:
        logger.error("Store failure during authorization: %s", e)
        return JSONResponse({"error": "server_error"}, status_code=HTTP_SERVER_ERROR)

    # Resume after Google sign-in
    request.session[SESSION_PENDING_AUTHORIZATION] = params
    return render_template(
        "authorize.html",
        {
            "client_name": client.name,
            "scopes": params["scope"].split() if params["scope"] else [],
            "login_url": "/auth/google/login",
        },
    )


# ========== Google Sign-In ==========


async def google_login(request: Request, google_sign_in: GoogleSignIn) -> Response:
    """Redirect the browser to Google's consent screen."""
    try:
        url, state, code_verifier = google_sign_in.authorization_url()
    except ConfigurationError as e:
        logger.error("Google sign-in unavailable: %s", e)
        return render_error("Sign-in unavailable", "Google sign-in is not configured on this server.", 503)

    request.session[SESSION_GOOGLE_STATE] = state
    request.session[SESSION_GOOGLE_VERIFIER] = code_verifier
    return RedirectResponse(url=url, status_code=302)


async def google_callback(
    request: Request,
    google_sign_in: GoogleSignIn,
    oauth2_server: OAuth2Server,
) -> Response:
    """Complete Google sign-in and resume any pending authorization."""
    error = request.query_params.get("error")
    if error:
        return render_error("Sign-in cancelled", f"Google returned: {error}")

    code = request.query_params.get("code")
    state = request.query_params.get("state")
    expected_state = request.session.pop(SESSION_GOOGLE_STATE, None)
    code_verifier = request.session.pop(SESSION_GOOGLE_VERIFIER, None)

    if not code:
        return render_error("Sign-in failed", "Missing authorization code from Google.")
    if not expected_state or not state or not secrets.compare_digest(state, expected_state):
        return render_error("Sign-in failed", "Sign-in state did not match. Please try again.")

    try:
        user = await google_sign_in.complete_sign_in(code, state, code_verifier)
    except (GoogleAuthError, DatabaseError) as e:
        logger.error("Google sign-in failed: %s", e)
        return render_error("Sign-in failed", "Could not complete Google sign-in.", HTTP_SERVER_ERROR)

    request.session[SESSION_USER_ID] = user.id
    request.session[SESSION_EMAIL] = user.email

    pending = request.session.pop(SESSION_PENDING_AUTHORIZATION, None)
    if pending:
        try:
            return await _issue_code_and_redirect(oauth2_server, pending, user.id)
        except AuthorizationRequestError as e:
            logger.warning("Pending authorization no longer valid: %s", e)
            return JSONResponse(e.to_dict(), status_code=HTTP_BAD_REQUEST)
        except DatabaseError as e:
            logger.error("Store failure resuming authorization: %s", e)
            return JSONResponse({"error": "server_error"}, status_code=HTTP_SERVER_ERROR)

    return RedirectResponse(url="/", status_code=302)


async def signout(request: Request) -> Response:
    request.session.clear()
    return RedirectResponse(url="/", status_code=302)


async def home(request: Request, base_url: str) -> Response:
    """Landing page showing the signed-in account."""
    return render_template(
        "home.html",
        {
            "email": request.session.get(SESSION_EMAIL),
            "login_url": "/auth/google/login",
            "signout_url": "/auth/signout",
            "base_url": base_url,
        },
    )
