"""Web authentication routes."""

from app.web.auth.routes import router

__all__ = ["router"]
