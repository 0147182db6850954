# dramahub/services/drama_cache_service.py
from __future__ import annotations

"""Drama cache orchestrator.

Decides, per request, whether to serve the cached row, refresh it from the
media catalog, or fall back:

    CHECK_CACHE ─► HIT_FRESH ───────────────────────────► cache-hit
               ├─► HIT_STALE ─► REFRESH ─► SAVED ───────► stale-refreshed
               └─► MISS ──────► REFRESH ─► SAVED ───────► miss-saved
                                   ├─► upstream failed, prior row ─► cache-after-error
                                   ├─► upstream failed, no row ────► DramaNotFoundException
                                   └─► datastore unusable ─────────► cache-after-error / upstream-direct

Requests for a non-primary locale skip all of this and are served live
(`upstream-direct`) without touching the store.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncContextManager, AsyncIterator, Callable, Optional

from redis.exceptions import RedisError

from dramahub.core.config import CacheConfig
from dramahub.core.exceptions import DramaNotFoundException, UpstreamUnavailableException
from dramahub.repositories.drama_cache import DATASTORE_ERRORS, DramaCacheStore
from dramahub.repositories.records import CachedDrama
from dramahub.schemas.dramas import CacheInfo, DramaDetail
from dramahub.schemas.enums import CacheStatus
from dramahub.services import bulk_population, drama_mapper
from dramahub.services.tmdb_client import (
    TMDbClient,
    UpstreamError,
    UpstreamHTTPError,
    resolve_language,
)
from dramahub.utils.settled import Settled, settle

logger = logging.getLogger(__name__)

# `redis_wrapper.lock`-compatible: lock(name, *, timeout, blocking_timeout)
LockFactory = Callable[..., AsyncContextManager[Any]]

# not connected, wait timed out, or Redis itself failing
_LOCK_ERRORS = (RuntimeError, TimeoutError, RedisError, OSError)


@dataclass
class CacheResult:
    """Outcome of `get_drama`: a cached view, or live data when the store is unusable."""
    cached: Optional[CachedDrama]
    status: CacheStatus
    live: Optional[DramaDetail] = None


class DramaCacheService:
    """Read-through cache of drama details."""

    def __init__(
        self,
        store: DramaCacheStore,
        client: TMDbClient,
        config: CacheConfig,
        lock: Optional[LockFactory] = None,
    ) -> None:
        self._store = store
        self._client = client
        self._config = config
        self._lock = lock

    @property
    def config(self) -> CacheConfig:
        return self._config

    # ─────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────
    async def get_drama_by_id(
        self,
        tmdb_id: int,
        force_refresh: bool = False,
        language: Optional[str] = None,
    ) -> DramaDetail:
        """Drama detail with a `_cache` block describing how it was produced."""
        lang = resolve_language(language, self._config.primary_language)
        if lang != self._config.primary_language:
            return await self.fetch_direct(tmdb_id, lang)

        result = await self.get_drama(tmdb_id, force_refresh)
        if result.cached is not None:
            detail = drama_mapper.from_cached(result.cached)
            info = CacheInfo(
                status=result.status,
                drama_id=result.cached.drama_id,
                last_update=result.cached.drama.last_update,
            )
        else:
            detail = result.live
            info = CacheInfo(status=result.status)
        return detail.model_copy(update={"cache": info})

    async def get_drama(self, tmdb_id: int, force_refresh: bool = False) -> CacheResult:
        """Run the cache state machine for the primary locale."""
        existing = await self._read(tmdb_id)

        if existing is not None and not force_refresh and not await self._is_stale(tmdb_id):
            if not existing.images:
                existing = await self._self_heal_images(tmdb_id, existing)
            logger.info("[cache] tmdb_id=%s status=%s", tmdb_id, CacheStatus.CACHE_HIT.value)
            return CacheResult(existing, CacheStatus.CACHE_HIT)

        async with self._single_flight(tmdb_id) as locked:
            if locked and not force_refresh:
                # another worker may have refreshed while we waited
                current = await self._read(tmdb_id)
                if current is not None and not await self._is_stale(tmdb_id):
                    logger.info("[cache] tmdb_id=%s refreshed concurrently; serving cache", tmdb_id)
                    return CacheResult(current, CacheStatus.CACHE_HIT)
            return await self._refresh(tmdb_id, existing)

    async def fetch_direct(self, tmdb_id: int, language: str) -> DramaDetail:
        """Live detail + cast + videos + images in `language`; never touches the store."""
        try:
            detail = await self._client.get_detail(tmdb_id, language)
        except UpstreamHTTPError as exc:
            if exc.status_code == 404:
                raise DramaNotFoundException(tmdb_id=tmdb_id, reason=str(exc)) from exc
            raise UpstreamUnavailableException(upstream_status=exc.status_code) from exc
        except UpstreamError as exc:
            raise UpstreamUnavailableException() from exc

        credits, videos, images = await self._fetch_related(tmdb_id, language)
        live = drama_mapper.from_upstream(detail, credits.value, videos.value, images.value, tmdb_id=tmdb_id)
        logger.info("[cache] tmdb_id=%s language=%s status=%s", tmdb_id, language, CacheStatus.UPSTREAM_DIRECT.value)
        return live.model_copy(update={"cache": CacheInfo(status=CacheStatus.UPSTREAM_DIRECT)})

    # ─────────────────────────────────────────────────────────
    # Steps
    # ─────────────────────────────────────────────────────────
    async def _read(self, tmdb_id: int) -> Optional[CachedDrama]:
        try:
            return await self._store.get(tmdb_id)
        except DATASTORE_ERRORS:
            logger.exception("[cache] read failed for tmdb_id=%s; treating as miss", tmdb_id)
            return None

    async def _is_stale(self, tmdb_id: int) -> bool:
        try:
            return await self._store.needs_refresh(tmdb_id, self._config.max_age_days)
        except DATASTORE_ERRORS:
            logger.exception("[cache] staleness check failed for tmdb_id=%s; assuming stale", tmdb_id)
            return True

    async def _fetch_related(self, tmdb_id: int, language: Optional[str] = None):
        credits, videos, images = await asyncio.gather(
            settle(self._client.get_credits(tmdb_id, language)),
            settle(self._client.get_videos(tmdb_id, language)),
            settle(self._client.get_images(tmdb_id, language)),
        )
        for kind, result in (("credits", credits), ("videos", videos), ("images", images)):
            if not result.ok:
                logger.warning("[cache] %s fetch failed for tmdb_id=%s: %s", kind, tmdb_id, result.error)
        return credits, videos, images

    async def _self_heal_images(self, tmdb_id: int, cached: CachedDrama) -> CachedDrama:
        """Fresh row without images: one images fetch, store, re-read. Never raises."""
        result = await settle(self._client.get_images(tmdb_id))
        if not result.ok:
            logger.warning("[cache] image self-heal fetch failed for tmdb_id=%s: %s", tmdb_id, result.error)
            return cached
        saved = await bulk_population.populate_images(self._store, tmdb_id, cached.drama_id, result.value)
        if not saved:
            return cached
        return await self._read(tmdb_id) or cached

    async def _refresh(self, tmdb_id: int, existing: Optional[CachedDrama]) -> CacheResult:
        try:
            detail = await self._client.get_detail(tmdb_id)
        except UpstreamError as exc:
            if existing is not None:
                logger.warning("[cache] refresh failed for tmdb_id=%s, serving stale row: %s", tmdb_id, exc)
                return CacheResult(existing, CacheStatus.CACHE_AFTER_ERROR)
            logger.error("[cache] tmdb_id=%s not cached and upstream failed: %s", tmdb_id, exc)
            raise DramaNotFoundException(tmdb_id=tmdb_id, reason=str(exc)) from exc

        outcome = await self._store.upsert_drama(drama_mapper.to_cache_row(detail, tmdb_id))
        logger.info("[cache] tmdb_id=%s upsert path=%s drama_id=%s", tmdb_id, outcome.path.value, outcome.drama_id)

        credits, videos, images = await self._fetch_related(tmdb_id)

        if not outcome.ok:
            return self._datastore_fallback(tmdb_id, existing, detail, credits, videos, images)

        drama_id = outcome.drama_id
        if credits.ok:
            await bulk_population.populate_cast(self._store, tmdb_id, drama_id, credits.value)
        if videos.ok:
            await bulk_population.populate_videos(self._store, tmdb_id, drama_id, videos.value)
        if images.ok:
            await bulk_population.populate_images(self._store, tmdb_id, drama_id, images.value)
        await bulk_population.populate_seasons(self._store, self._client, tmdb_id, drama_id, detail.get("seasons"))

        fresh = await self._read(tmdb_id)
        if fresh is None:
            return self._datastore_fallback(tmdb_id, existing, detail, credits, videos, images)

        status = CacheStatus.STALE_REFRESHED if existing is not None else CacheStatus.MISS_SAVED
        logger.info("[cache] tmdb_id=%s status=%s", tmdb_id, status.value)
        return CacheResult(fresh, status)

    def _datastore_fallback(
        self,
        tmdb_id: int,
        existing: Optional[CachedDrama],
        detail: dict,
        credits: Settled,
        videos: Settled,
        images: Settled,
    ) -> CacheResult:
        if existing is not None:
            logger.warning("[cache] datastore unusable for tmdb_id=%s; serving prior row", tmdb_id)
            return CacheResult(existing, CacheStatus.CACHE_AFTER_ERROR)
        logger.warning("[cache] datastore unusable for tmdb_id=%s; serving live data", tmdb_id)
        live = drama_mapper.from_upstream(detail, credits.value, videos.value, images.value, tmdb_id=tmdb_id)
        return CacheResult(None, CacheStatus.UPSTREAM_DIRECT, live=live)

    @asynccontextmanager
    async def _single_flight(self, tmdb_id: int) -> AsyncIterator[bool]:
        """Hold the per-title refresh lock when available; yields whether it is held."""
        if self._lock is None or not self._config.single_flight:
            yield False
            return

        name = f"drama:refresh:{tmdb_id}"
        cm = self._lock(
            name,
            timeout=self._config.lock_timeout_seconds,
            blocking_timeout=self._config.lock_wait_seconds,
        )
        acquired = False
        try:
            await cm.__aenter__()
            acquired = True
        except _LOCK_ERRORS as exc:
            logger.warning("[cache] refresh lock %s unavailable (%s); refreshing unlocked", name, exc)

        try:
            yield acquired
        finally:
            if acquired:
                await cm.__aexit__(None, None, None)


__all__ = ["DramaCacheService", "CacheResult", "LockFactory"]
