"""Per-browser view sessions for admin table state.

Records are shared by every admin; sort, filters, selection and pending
confirmations belong to one browser. The browser is identified by a cookie
(or, for API clients, a ``view_session`` query parameter).
"""

import re
import secrets

from fastapi import Request
from starlette.responses import Response

from app.config import settings
from app.services.resource_catalog import DEFAULT_VIEW_SESSION

VIEW_SESSION_COOKIE = "admin_view"
VIEW_SESSION_PARAM = "view_session"
VIEW_SESSION_TOKEN_LENGTH = 16

_VALID_SESSION = re.compile(r"^[A-Za-z0-9_-]{8,64}$")


def generate_view_session() -> str:
    return secrets.token_urlsafe(VIEW_SESSION_TOKEN_LENGTH)


def _clean(value: str | None) -> str | None:
    if value and _VALID_SESSION.match(value):
        return value
    return None


def _is_https_request(request: Request) -> bool:
    forwarded_proto = request.headers.get("x-forwarded-proto", "")
    if forwarded_proto:
        return forwarded_proto.split(",")[0].strip().lower() == "https"
    return request.url.scheme == "https"


def read_view_session(request: Request) -> str | None:
    """Return the session named by the query string or cookie, if valid."""
    return _clean(request.query_params.get(VIEW_SESSION_PARAM)) or _clean(
        request.cookies.get(VIEW_SESSION_COOKIE)
    )


def set_view_session_cookie(response: Response, session: str, request: Request) -> None:
    response.set_cookie(
        key=VIEW_SESSION_COOKIE,
        value=session,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies and _is_https_request(request),
        max_age=3600 * 12,
    )


def get_view_session(request: Request) -> str:
    """Dependency: the view session that scopes this request's table state."""
    session = getattr(request.state, "view_session", None)
    if session:
        return session
    return read_view_session(request) or DEFAULT_VIEW_SESSION
