# dramahub/api/deps.py
from __future__ import annotations

"""Request-scoped access to the services wired by the app lifespan."""

from fastapi import HTTPException, Request, status

from dramahub.services.catalog_service import CatalogService
from dramahub.services.drama_cache_service import DramaCacheService


def _service(request: Request, name: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service not ready")
    return service


def get_cache_service(request: Request) -> DramaCacheService:
    return _service(request, "cache_service")


def get_catalog_service(request: Request) -> CatalogService:
    return _service(request, "catalog_service")


__all__ = ["get_cache_service", "get_catalog_service"]
