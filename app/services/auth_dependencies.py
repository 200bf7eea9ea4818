"""Admin authentication dependencies shared by the API and the web pages."""

import hmac
from urllib.parse import quote

from fastapi import Request

from app.config import settings

SESSION_COOKIE = "session_token"


class AuthenticationRequired(Exception):
    """Raised when authentication is required but not provided."""

    def __init__(self, redirect_url: str = "/admin/login"):
        self.redirect_url = redirect_url
        super().__init__("Authentication required")


def get_session_token(request: Request) -> str | None:
    """Extract session token from cookie or Authorization header."""
    cookie_token = request.cookies.get(SESSION_COOKIE)
    if cookie_token:
        return cookie_token

    auth_header = request.headers.get("authorization")
    if auth_header:
        parts = auth_header.split(" ", 1)
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1].strip()

    return None


def token_is_valid(token: str | None, expected: str | None = None) -> bool:
    expected = settings.admin_session_token if expected is None else expected
    if not expected:
        return True
    if not token:
        return False
    return hmac.compare_digest(token.encode(), expected.encode())


def require_web_auth(request: Request) -> dict:
    """Require authentication for admin routes.

    With no ADMIN_SESSION_TOKEN configured every request is let through.
    """
    if not settings.admin_session_token:
        auth_info = {"authenticated": False, "actor": "anonymous"}
    elif token_is_valid(get_session_token(request)):
        auth_info = {"authenticated": True, "actor": "admin"}
    else:
        next_url = str(request.url.path)
        if request.url.query:
            next_url += f"?{request.url.query}"
        raise AuthenticationRequired(f"/admin/login?next={quote(next_url, safe='')}")

    request.state.auth = auth_info
    request.state.actor_id = auth_info["actor"]
    return auth_info
