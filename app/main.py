import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import RedirectResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from app.api.deps import get_current_user
from app.api.resources import router as resources_router
from app.config import settings
from app.errors import register_error_handlers
from app.logging import configure_logging
from app.observability import ObservabilityMiddleware
from app.services.display_settings import ConfigDisplaySettingsProvider
from app.services.resource_catalog import ResourceWorkspace, register_default_resources
from app.view_sessions import generate_view_session, read_view_session, set_view_session_cookie
from app.web import router as web_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    resources = register_default_resources()
    app.state.workspace = ResourceWorkspace()
    app.state.display_provider = ConfigDisplaySettingsProvider()
    logger.info("Registered resources: %s", ", ".join(config.key for config in resources))
    try:
        yield
    finally:
        await app.state.workspace.aclose()


configure_logging()
register_default_resources()
app = FastAPI(title=f"{settings.app_name} API", lifespan=lifespan)
app.add_middleware(ObservabilityMiddleware)
register_error_handlers(app)


# Admin pages get a view session cookie so each browser keeps its own table state
_VIEW_SESSION_PATHS = ["/admin/"]


@app.middleware("http")
async def view_session_middleware(request: Request, call_next):
    if not any(request.url.path.startswith(path) for path in _VIEW_SESSION_PATHS):
        return await call_next(request)
    session = read_view_session(request)
    issued = session is None
    if issued:
        session = generate_view_session()
    request.state.view_session = session
    response = await call_next(request)
    if issued:
        set_view_session_cookie(response, session, request)
    return response


def _include_api_router(router, dependencies=None):
    app.include_router(router, prefix="/api", dependencies=dependencies)


_include_api_router(resources_router, dependencies=[Depends(get_current_user)])
app.include_router(web_router)


@app.get("/")
def root():
    return RedirectResponse(url="/admin/resources", status_code=303)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
