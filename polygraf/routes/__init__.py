"""API routes package."""

from polygraf.routes.auth_routes import router as auth_router
from polygraf.routes.token_routes import router as token_router
from polygraf.routes.object_routes import router as object_router

__all__ = ["auth_router", "token_router", "object_router"]
