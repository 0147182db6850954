# dramahub/api/v1/routers/admin_cache.py
# ╔══════════════════════════════════════════════════════════════════════════╗
# ║ 🧹 DramaHub · Admin Cache Maintenance                                    ║
# ║                                                                          ║
# ║  - POST /admin/cache/sync?max_age_days=&limit=   → refresh stale dramas  ║
# ║  - POST /admin/cache/cleanup?max_age_days=       → retention sweep       ║
# ║                                                                          ║
# ║ Both require `X-Admin-Key`.                                              ║
# ╚══════════════════════════════════════════════════════════════════════════╝

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from dramahub.api.deps import get_catalog_service
from dramahub.api.http_utils import require_admin
from dramahub.schemas.dramas import CleanupResult, SyncResult
from dramahub.services.catalog_service import CatalogService

log = logging.getLogger(__name__)
router = APIRouter(
    prefix="/cache",
    tags=["Admin Cache"],
    dependencies=[Depends(require_admin)],
    responses={
        status.HTTP_401_UNAUTHORIZED: {"description": "Invalid or missing admin key"},
        status.HTTP_403_FORBIDDEN: {"description": "Admin API disabled"},
    },
)


@router.post("/sync", response_model=SyncResult, summary="Force-refresh stale cached dramas")
async def sync_stale(
    max_age_days: Optional[int] = Query(None, ge=1, le=3650, description="Defaults to CACHE_MAX_AGE_DAYS"),
    limit: int = Query(50, ge=1, le=500),
    catalog: CatalogService = Depends(get_catalog_service),
) -> SyncResult:
    log.info("Admin sync requested (max_age_days=%s, limit=%s)", max_age_days, limit)
    return await catalog.sync_stale_dramas(max_age_days=max_age_days, limit=limit)


@router.post("/cleanup", response_model=CleanupResult, summary="Delete dramas past the retention window")
async def cleanup(
    max_age_days: Optional[int] = Query(None, ge=1, le=3650, description="Defaults to CACHE_RETENTION_DAYS"),
    catalog: CatalogService = Depends(get_catalog_service),
) -> CleanupResult:
    log.info("Admin cleanup requested (max_age_days=%s)", max_age_days)
    return await catalog.cleanup_cache(max_age_days=max_age_days)
