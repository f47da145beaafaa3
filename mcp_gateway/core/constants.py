"""Application-wide constants for the MCP Gmail gateway."""

# ========================================
# OAuth2 Constants
# ========================================

ACCESS_TOKEN_LIFETIME_SECONDS = 3600  # Fixed bearer token lifetime (1 hour)
ACCESS_TOKEN_BYTES = 32  # 64 hex characters
CLIENT_SECRET_BYTES = 32  # 64 hex characters
AUTHORIZATION_CODE_EXPIRE_MINUTES_DEFAULT = 10

GRANT_TYPE_AUTHORIZATION_CODE = "authorization_code"
TOKEN_TYPE_BEARER = "Bearer"

PKCE_METHOD_PLAIN = "plain"
PKCE_METHOD_S256 = "S256"
PKCE_METHODS_SUPPORTED = [PKCE_METHOD_PLAIN, PKCE_METHOD_S256]

OAUTH2_SCOPES_DEFAULT = ["api:read", "api:write"]

# Identity returned for the development bypass token
DEV_USER_ID = "dev-user"

# ========================================
# HTTP Constants
# ========================================

HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401
HTTP_SERVER_ERROR = 500

CORS_ALLOW_HEADERS = "Content-Type, Authorization"

# ========================================
# Google / Gmail Constants
# ========================================

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
GOOGLE_SCOPES_DEFAULT = [
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/gmail.send",
    "https://mail.google.com/",
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/gmail.compose",
]

GMAIL_USER_ID = "me"
GMAIL_BATCH_SIZE_DEFAULT = 50
GMAIL_MIME_TYPES = ["text/plain", "text/html", "multipart/alternative"]
LABEL_MESSAGE_LIST_VISIBILITY = ["show", "hide"]
LABEL_LIST_VISIBILITY = ["labelShow", "labelShowIfUnread", "labelHide"]
