"""
🎭 DramaHub • API v1 Router Aggregator
=====================================

Exports the combined `router` and a `build_v1_router()` factory.

    from dramahub.api.v1.routers import router as api_v1_router
    app.include_router(api_v1_router, prefix="/api/v1")

Admin routes are mounted under `/admin`; the key check lives in the child
router.
"""

from fastapi import APIRouter

from .admin_cache import router as admin_cache_router
from .dramas import router as dramas_router


def build_v1_router() -> APIRouter:
    """Compose the v1 surface: public dramas and `/admin/cache`."""
    r = APIRouter()
    r.include_router(dramas_router)
    r.include_router(admin_cache_router, prefix="/admin")
    return r


router = build_v1_router()

__all__ = ["router", "build_v1_router", "dramas_router", "admin_cache_router"]
