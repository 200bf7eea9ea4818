from __future__ import annotations

import logging
from urllib.parse import quote

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.services.auth_dependencies import AuthenticationRequired
from app.services.resource_errors import RecordValidationError, ResourceError

logger = logging.getLogger(__name__)
templates = Jinja2Templates(directory="templates")

INVALID_INPUT_MESSAGE = (
    "Some required information is missing or invalid. Please check the form and try again."
)
SERVER_ERROR_MESSAGE = "Something went wrong while loading this page. Please try again later."

# Fallback page messages for HTML responses; statuses without an entry use 500.
PAGE_MESSAGES = {
    400: INVALID_INPUT_MESSAGE,
    403: "You do not have permission to view this page.",
    404: "Page not found",
    409: "The request conflicts with the current state of the record.",
    422: INVALID_INPUT_MESSAGE,
    500: SERVER_ERROR_MESSAGE,
    502: "The resource service did not respond correctly.",
}

_LEAKY_TOKENS = ("validation error", "type_error", "value_error", "traceback", "{", "[")


def _error_payload(code: str, message: str, details: object, request_id: str | None):
    return {"code": code, "message": message, "details": details, "request_id": request_id}


def wants_html(request: Request) -> bool:
    """Admin pages get templates; /api/ and JSON clients get error payloads."""
    if request.url.path.startswith("/api/"):
        return False
    if "application/json" in (request.headers.get("content-type") or "").lower():
        return False
    accept = (request.headers.get("accept") or "").lower()
    return not ("application/json" in accept and "text/html" not in accept)


def _request_id(request: Request) -> str:
    rid = getattr(request.state, "request_id", None)
    return str(rid) if rid else "unknown"


def _page_message(status_code: int, detail: object) -> str:
    fallback = PAGE_MESSAGES.get(status_code, SERVER_ERROR_MESSAGE)
    if isinstance(detail, dict):
        detail = next(
            (detail[key] for key in ("message", "detail", "error") if isinstance(detail.get(key), str)),
            None,
        )
    if not isinstance(detail, str) or not detail.strip():
        return fallback
    if status_code == 400 and any(token in detail.lower() for token in _LEAKY_TOKENS):
        return fallback
    return detail.strip()


def _login_url(request: Request) -> str:
    target = request.url.path
    if request.url.query:
        target = f"{target}?{request.url.query}"
    return f"/admin/login?next={quote(target, safe='')}"


def render_error_page(request: Request, status_code: int, message: str):
    template_status = status_code if status_code in PAGE_MESSAGES else 500
    return templates.TemplateResponse(
        request,
        f"errors/{template_status}.html",
        {
            "message": message,
            "request_id": _request_id(request),
        },
        status_code=status_code,
    )


def _json_safe_input(value):
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, UploadFile):
        return value.filename or "upload"
    if isinstance(value, dict):
        return {key: _json_safe_input(val) for key, val in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_safe_input(item) for item in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def register_error_handlers(app) -> None:
    @app.exception_handler(AuthenticationRequired)
    async def auth_required_handler(request: Request, exc: AuthenticationRequired):
        if wants_html(request):
            return RedirectResponse(url=exc.redirect_url, status_code=303)
        return JSONResponse(
            status_code=401,
            content=_error_payload(
                "unauthorized", "Authentication required", None, _request_id(request)
            ),
        )

    @app.exception_handler(ResourceError)
    async def resource_error_handler(request: Request, exc: ResourceError):
        if exc.status_code >= 500:
            logger.warning(
                "Resource backend failure on %s %s: %s",
                request.method,
                request.url.path,
                exc.message,
            )
        if wants_html(request):
            message = exc.message
            if isinstance(exc, RecordValidationError) and exc.field_errors:
                message = "; ".join(exc.field_errors.values())
            return render_error_page(request, exc.status_code, message)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(exc.code, exc.message, exc.details, _request_id(request)),
        )

    async def _http_error(request: Request, status_code: int, detail: object):
        if wants_html(request):
            if status_code == 401:
                return RedirectResponse(url=_login_url(request), status_code=303)
            if status_code in PAGE_MESSAGES:
                return render_error_page(request, status_code, _page_message(status_code, detail))

        code, message, details = f"http_{status_code}", "Request failed", None
        if isinstance(detail, dict):
            code = detail.get("code", code)
            message = detail.get("message", message)
            details = detail.get("details")
        elif isinstance(detail, str):
            message = detail
        else:
            details = detail
        return JSONResponse(
            status_code=status_code,
            content=_error_payload(code, message, details, _request_id(request)),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return await _http_error(request, exc.status_code, exc.detail)

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
        return await _http_error(request, exc.status_code, exc.detail or "Request failed")

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        if wants_html(request):
            return render_error_page(request, 400, INVALID_INPUT_MESSAGE)
        errors = []
        for error in exc.errors():
            entry = {key: value for key, value in error.items() if key != "ctx"}
            if "input" in entry:
                entry["input"] = _json_safe_input(entry["input"])
            errors.append(entry)
        return JSONResponse(
            status_code=422,
            content=_error_payload(
                "validation_error", "Validation error", errors, _request_id(request)
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
            extra={"request_id": _request_id(request)},
        )
        if wants_html(request):
            return render_error_page(request, 500, SERVER_ERROR_MESSAGE)
        return JSONResponse(
            status_code=500,
            content=_error_payload(
                "internal_error", "Internal server error", None, _request_id(request)
            ),
        )
