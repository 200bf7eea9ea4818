"""Admin web routes."""

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse

from app.web.admin.resources import router as resources_router
from app.services.auth_dependencies import require_web_auth

router = APIRouter(
    prefix="/admin",
    tags=["web-admin"],
    dependencies=[Depends(require_web_auth)],
)


@router.get("")
def admin_root():
    return RedirectResponse(url="/admin/resources", status_code=303)


router.include_router(resources_router)

__all__ = ["router"]
