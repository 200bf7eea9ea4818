"""Web routes package combining admin and auth routes."""

from fastapi import APIRouter

from app.web.admin import router as admin_router
from app.web.auth import router as auth_router

router = APIRouter(tags=["web"])

# Auth routes first so /admin/login is not behind the admin auth dependency
router.include_router(auth_router)
router.include_router(admin_router)

__all__ = ["router"]
