# dramahub/api/v1/routers/dramas.py
# ╔══════════════════════════════════════════════════════════════════════════╗
# ║ 🎭 DramaHub · Public Drama API                                           ║
# ║                                                                          ║
# ║ Endpoints:                                                               ║
# ║  - GET /dramas/search?query=&page=         → Live catalog search         ║
# ║  - GET /dramas/popular?page=               → Cached-first popular list   ║
# ║  - GET /dramas/trending                    → Cached-first trending list  ║
# ║  - GET /dramas/{tmdb_id}                   → Read-through cached detail  ║
# ║  - GET /dramas/{tmdb_id}/providers         → Merged watch providers      ║
# ╠──────────────────────────────────────────────────────────────────────────╣
# ║ Notes                                                                    ║
# ║  - Static paths are declared before `/{tmdb_id}`.                        ║
# ║  - Listing population runs as background work after the response.        ║
# ║  - Errors render as problem+json through the app's handlers.             ║
# ╚══════════════════════════════════════════════════════════════════════════╝

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Path, Query

from dramahub.api.deps import get_cache_service, get_catalog_service
from dramahub.api.http_utils import sanitize_tmdb_id
from dramahub.schemas.dramas import DramaDetail, DramaPage, TrendingDramas, WatchProviders
from dramahub.services.catalog_service import CatalogService
from dramahub.services.drama_cache_service import DramaCacheService

log = logging.getLogger(__name__)
router = APIRouter(
    prefix="/dramas",
    tags=["Dramas"],
    responses={
        400: {"description": "Bad Request"},
        404: {"description": "Not Found"},
        422: {"description": "Validation Error"},
        502: {"description": "Upstream catalog unavailable"},
        500: {"description": "Internal Server Error"},
    },
)


# ╔════════════════════════════════ Listings ═════════════════════════════════╗

@router.get("/search", response_model=DramaPage, summary="Search dramas in the live catalog")
async def search_dramas(
    query: str = Query(..., min_length=1, max_length=128, description="Search text"),
    page: int = Query(1, ge=1, le=500),
    catalog: CatalogService = Depends(get_catalog_service),
) -> DramaPage:
    return await catalog.search_dramas(query.strip(), page)


@router.get("/popular", response_model=DramaPage, summary="Popular dramas (cache first)")
async def popular_dramas(
    background_tasks: BackgroundTasks,
    page: int = Query(1, ge=1, le=500),
    catalog: CatalogService = Depends(get_catalog_service),
) -> DramaPage:
    """Cached rows by popularity when any exist; otherwise the live list.

    On a live answer the top entries are cached after the response is sent.
    """
    return await catalog.get_popular_dramas(page, schedule=background_tasks.add_task)


@router.get("/trending", response_model=TrendingDramas, summary="Trending dramas (cache first)")
async def trending_dramas(
    background_tasks: BackgroundTasks,
    catalog: CatalogService = Depends(get_catalog_service),
) -> TrendingDramas:
    return await catalog.get_trending_dramas(schedule=background_tasks.add_task)


# ╔════════════════════════════════ Detail ═══════════════════════════════════╗

@router.get(
    "/{tmdb_id}",
    response_model=DramaDetail,
    summary="Drama detail through the read-through cache",
)
async def get_drama(
    tmdb_id: int = Path(..., description="Catalog (TMDb) id"),
    force_refresh: bool = Query(False, description="Refresh from the catalog even when fresh"),
    language: Optional[str] = Query(None, max_length=16, description="Locale, e.g. `pt-BR` or `en`"),
    service: DramaCacheService = Depends(get_cache_service),
) -> DramaDetail:
    """Return the drama detail with a `_cache` block.

    `_cache.status` is one of `cache-hit`, `stale-refreshed`, `miss-saved`,
    `cache-after-error` or `upstream-direct`.
    """
    tid = sanitize_tmdb_id(tmdb_id)
    return await service.get_drama_by_id(tid, force_refresh=force_refresh, language=language)


@router.get(
    "/{tmdb_id}/providers",
    response_model=WatchProviders,
    summary="Streaming providers merged across countries",
)
async def drama_providers(
    tmdb_id: int = Path(..., description="Catalog (TMDb) id"),
    catalog: CatalogService = Depends(get_catalog_service),
) -> WatchProviders:
    return await catalog.get_streaming_providers(sanitize_tmdb_id(tmdb_id))
