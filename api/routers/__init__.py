"""API routers package."""

from .common import router as common_router
from .sessions import router as sessions_router

__all__ = [
    "common_router",
    "sessions_router",
]
