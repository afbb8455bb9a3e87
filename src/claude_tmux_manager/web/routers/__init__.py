"""API routers."""

from .sessions import router as sessions_router
from .windows import router as windows_router

__all__ = ["sessions_router", "windows_router"]
