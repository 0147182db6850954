# dramahub/main.py
from __future__ import annotations

"""
# DramaHub API — Application Entrypoint (FastAPI)

ASGI application factory and lifecycle for the drama metadata cache.

## Wiring
The lifespan builds one `TMDbClient`, one `DramaCacheStore` (bound to the
shared async session maker) and the two services, and parks them on
`app.state`. Routers reach them through `dramahub.api.deps`, so tests can
swap in fakes without touching module globals.

Middleware order: request id → strip `Server` header.

## Probes
- `/healthz` — liveness (process up).
- `/readyz` — readiness (DB `SELECT 1`, Redis ping).
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable
import logging
import os

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse, Response

from dramahub.core.logger import configure_logging
from dramahub.core.config import settings
from dramahub.core.exception_handlers import (
    global_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from dramahub.core.redis_client import redis_wrapper
from dramahub.db.session import async_engine, async_session_maker, db_healthcheck
from dramahub.middleware.request_id import RequestIDMiddleware
from dramahub.repositories.drama_cache import DramaCacheStore
from dramahub.services.catalog_service import CatalogService
from dramahub.services.drama_cache_service import DramaCacheService
from dramahub.services.tmdb_client import TMDbClient

logger = logging.getLogger("dramahub")


# ─────────────────────────────────────────────────────────────────────────────
# 🔄 Lifespan: startup & shutdown
# ─────────────────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifecycle manager.

    Startup:
        - Best-effort connect to Redis; without it refreshes run unlocked.
        - Build the upstream client, cache store and services.

    Shutdown:
        - Close the upstream client, Redis and the DB engine (best-effort).
    """
    configure_logging()
    logger.info("✅ %s starting up (env=%s)", settings.PROJECT_NAME, settings.ENV)

    redis_ok = False
    try:
        await redis_wrapper.connect()
        redis_ok = True
        logger.info("🔌 Redis connected")
    except RuntimeError:
        logger.exception("Redis connect failed (refresh single-flight disabled)")

    client = TMDbClient(settings.upstream_config())
    cache_config = settings.cache_config()
    store = DramaCacheStore(async_session_maker)
    cache_service = DramaCacheService(
        store,
        client,
        cache_config,
        lock=redis_wrapper.lock if redis_ok else None,
    )
    app.state.tmdb_client = client
    app.state.cache_service = cache_service
    app.state.catalog_service = CatalogService(store, client, cache_service, cache_config)

    try:
        yield
    finally:
        try:
            await client.aclose()
        except Exception:
            logger.exception("Error closing TMDb client")

        try:
            await redis_wrapper.close()
            logger.info("🛑 Redis connection closed")
        except Exception:
            logger.exception("Error closing Redis client")

        try:
            await async_engine.dispose()
            logger.info("🛑 Database engine disposed")
        except Exception:
            logger.exception("Error disposing DB engine")

        logger.info("🛑 %s shutting down", settings.PROJECT_NAME)


# ─────────────────────────────────────────────────────────────────────────────
# 🏗️ App factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app() -> FastAPI:
    """
    Build and configure the FastAPI app instance.

    Returns:
        FastAPI: application with middleware, problem+json handlers, the v1
        router and health/readiness endpoints.
    """
    docs_url = "/docs" if settings.ENABLE_DOCS else None
    redoc_url = "/redoc" if settings.ENABLE_DOCS else None
    openapi_url = "/openapi.json" if settings.ENABLE_DOCS else None

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        docs_url=docs_url,
        redoc_url=redoc_url,
        openapi_url=openapi_url,
        lifespan=lifespan,
    )

    # ── Middlewares ─────────────────────────────────────────────────────────
    app.add_middleware(RequestIDMiddleware)

    @app.middleware("http")
    async def _strip_server_header(request: Request, call_next: Callable) -> Response:
        """Remove the `Server` header to avoid leaking implementation details."""
        response: Response = await call_next(request)
        if "server" in response.headers:
            del response.headers["server"]
        return response

    # ── Exception handlers (RFC 7807) ───────────────────────────────────────
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, http_exception_handler)           # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, global_exception_handler)             # type: ignore[arg-type]

    # ── Routers (versioned API) ─────────────────────────────────────────────
    from dramahub.api.v1.routers import router as api_v1_router

    app.include_router(api_v1_router, prefix=settings.API_V1_STR)

    # ── Meta endpoints ──────────────────────────────────────────────────────
    @app.get("/healthz", tags=["meta"])
    async def healthz() -> dict[str, bool]:
        """Liveness probe. No external checks."""
        return {"ok": True}

    @app.get("/readyz", tags=["meta"])
    async def readyz() -> dict[str, object]:
        """
        Readiness probe.

        The database is required; Redis only enables single-flight refreshes,
        so it is reported but does not gate readiness.
        """
        db_ok = await db_healthcheck()
        redis_ok = await redis_wrapper.is_connected()
        return {"ready": db_ok, "checks": {"db": db_ok, "redis": redis_ok}}

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Minimal root that points to docs (when enabled)."""
        body = {
            "name": settings.PROJECT_NAME,
            "docs": app.docs_url or "",
            "version": settings.VERSION,
        }
        return JSONResponse(body)

    return app


# ─────────────────────────────────────────────────────────────────────────────
# 🚀 Module-level ASGI app for Uvicorn
# ─────────────────────────────────────────────────────────────────────────────
app = create_app()
__all__ = ["create_app", "app"]


# Local dev runner (prefer: `uvicorn dramahub.main:app --reload`)
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "dramahub.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "1") == "1",
        log_level=os.getenv("LOG_LEVEL", "info"),
    )
