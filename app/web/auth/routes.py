"""Admin login and logout routes for the shared session token."""

import logging

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from app.config import settings
from app.services.auth_dependencies import SESSION_COOKIE, token_is_valid

logger = logging.getLogger(__name__)
templates = Jinja2Templates(directory="templates")
router = APIRouter(prefix="/admin", tags=["web-auth"])


def _is_https_request(request: Request) -> bool:
    forwarded_proto = request.headers.get("x-forwarded-proto", "")
    if forwarded_proto:
        return forwarded_proto.split(",")[0].strip().lower() == "https"
    return request.url.scheme == "https"


def _safe_next(next_url: str | None) -> str:
    if next_url and next_url.startswith("/") and not next_url.startswith("//"):
        return next_url
    return "/admin/resources"


@router.get("/login", response_class=HTMLResponse)
def login_page(request: Request, error: str | None = None, next: str | None = None):
    """Display the login page."""
    return templates.TemplateResponse(
        request,
        "auth/login.html",
        {"error": error, "next": _safe_next(next)},
    )


@router.post("/login", response_class=HTMLResponse)
def login_submit(
    request: Request,
    token: str = Form(...),
    next: str = Form(default=""),
):
    """Check the submitted token and start a cookie session."""
    if not settings.admin_session_token:
        return RedirectResponse(_safe_next(next), status_code=303)
    if not token_is_valid(token.strip()):
        logger.warning("Rejected admin login from %s", request.client.host if request.client else "-")
        return templates.TemplateResponse(
            request,
            "auth/login.html",
            {"error": "Invalid access token", "next": _safe_next(next)},
            status_code=401,
        )
    response = RedirectResponse(_safe_next(next), status_code=303)
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token.strip(),
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies and _is_https_request(request),
        max_age=3600 * 12,
    )
    return response


@router.get("/logout")
def logout(request: Request):
    """Log out the current user."""
    response = RedirectResponse("/admin/login", status_code=303)
    response.delete_cookie(SESSION_COOKIE)
    return response
