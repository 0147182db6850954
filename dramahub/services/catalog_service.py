# dramahub/services/catalog_service.py
from __future__ import annotations

"""Catalog operations around the drama cache.

- `search_dramas`: always live.
- `get_popular_dramas` / `get_trending_dramas`: cached rows by popularity when
  any exist (no staleness check); otherwise live, with the top N title rows
  inserted (when absent) as background work.
- `get_streaming_providers`: live passthrough, see `dramahub.services.providers`.
- `sync_stale_dramas` / `cleanup_cache`: admin maintenance.
"""

import logging
import math
from typing import Any, Callable, List, Mapping, Optional, Sequence

from dramahub.core.config import CacheConfig
from dramahub.core.exceptions import AppException, UpstreamUnavailableException
from dramahub.repositories.drama_cache import DATASTORE_ERRORS, DramaCacheStore
from dramahub.schemas.dramas import (
    CleanupResult,
    DramaPage,
    SyncResult,
    TrendingDramas,
    WatchProviders,
)
from dramahub.schemas.enums import CacheStatus
from dramahub.services import drama_mapper, providers
from dramahub.services.drama_cache_service import DramaCacheService
from dramahub.services.tmdb_client import TMDbClient, UpstreamError, UpstreamHTTPError

logger = logging.getLogger(__name__)

# e.g. `BackgroundTasks.add_task`
Scheduler = Callable[..., Any]


def _list_items(data: Mapping[str, Any]) -> List[Mapping[str, Any]]:
    results = data.get("results") if isinstance(data, Mapping) else None
    return [
        r for r in (results or [])
        if isinstance(r, Mapping) and isinstance(r.get("id"), int) and not isinstance(r.get("id"), bool)
    ]


def _upstream_failure(exc: UpstreamError) -> UpstreamUnavailableException:
    status = exc.status_code if isinstance(exc, UpstreamHTTPError) else None
    return UpstreamUnavailableException(upstream_status=status)


class CatalogService:
    def __init__(
        self,
        store: DramaCacheStore,
        client: TMDbClient,
        cache: DramaCacheService,
        config: CacheConfig,
    ) -> None:
        self._store = store
        self._client = client
        self._cache = cache
        self._config = config

    # ─────────────────────────────────────────────────────────
    # Listings
    # ─────────────────────────────────────────────────────────
    async def search_dramas(self, query: str, page: int = 1) -> DramaPage:
        try:
            data = await self._client.search(query, page)
        except UpstreamError as exc:
            logger.error("[catalog] search %r failed: %s", query, exc)
            raise _upstream_failure(exc) from exc
        return DramaPage(
            page=data.get("page") or page,
            results=[drama_mapper.to_summary(d) for d in _list_items(data)],
            total_pages=data.get("total_pages") or 0,
            total_results=data.get("total_results") or 0,
        )

    async def get_popular_dramas(self, page: int = 1, schedule: Optional[Scheduler] = None) -> DramaPage:
        rows, total = await self._cached_page(page)
        if rows:
            logger.info("[catalog] popular page %s served from cache (%s rows)", page, len(rows))
            return DramaPage(
                page=page,
                results=[drama_mapper.summary_from_row(r) for r in rows],
                total_pages=math.ceil(total / self._config.page_size),
                total_results=total,
            )

        try:
            data = await self._client.get_popular(page)
        except UpstreamError as exc:
            logger.error("[catalog] popular page %s failed: %s", page, exc)
            raise _upstream_failure(exc) from exc

        items = _list_items(data)
        await self._schedule_population(items, schedule)
        return DramaPage(
            page=data.get("page") or page,
            results=[drama_mapper.to_summary(d) for d in items],
            total_pages=data.get("total_pages") or 0,
            total_results=data.get("total_results") or 0,
        )

    async def get_trending_dramas(self, schedule: Optional[Scheduler] = None) -> TrendingDramas:
        rows, _ = await self._cached_page(1)
        if rows:
            logger.info("[catalog] trending served from cache (%s rows)", len(rows))
            return TrendingDramas(results=[drama_mapper.summary_from_row(r) for r in rows])

        try:
            data = await self._client.get_trending("day")
        except UpstreamError as exc:
            logger.error("[catalog] trending failed: %s", exc)
            raise _upstream_failure(exc) from exc

        items = _list_items(data)
        await self._schedule_population(items, schedule)
        return TrendingDramas(results=[drama_mapper.to_summary(d) for d in items])

    async def _cached_page(self, page: int):
        try:
            return await self._store.list_by_popularity(page, self._config.page_size)
        except DATASTORE_ERRORS:
            logger.exception("[catalog] cache listing failed; falling back to upstream")
            return [], 0

    async def _schedule_population(self, items: Sequence[Mapping[str, Any]], schedule: Optional[Scheduler]) -> None:
        top = list(items[: self._config.populate_top_n])
        if not top:
            return
        if schedule is None:
            await self.populate_top(top)
        else:
            schedule(self.populate_top, top)

    async def populate_top(self, items: Sequence[Mapping[str, Any]]) -> int:
        """Cache listing items not cached yet. Never raises; returns rows present afterwards.

        Existing rows keep their full detail and `last_update`.
        """
        saved = 0
        for item in items:
            outcome = await self._store.insert_if_absent(drama_mapper.to_cache_row(item))
            if outcome.ok:
                saved += 1
            else:
                logger.warning("[catalog] could not cache listing item tmdb_id=%s", item.get("id"))
        logger.info("[catalog] cached %s/%s listing items", saved, len(items))
        return saved

    # ─────────────────────────────────────────────────────────
    # Providers
    # ─────────────────────────────────────────────────────────
    async def get_streaming_providers(self, tmdb_id: int) -> WatchProviders:
        return await providers.get_streaming_providers(
            self._client, tmdb_id, self._config.provider_priority_countries
        )

    # ─────────────────────────────────────────────────────────
    # Maintenance
    # ─────────────────────────────────────────────────────────
    async def sync_stale_dramas(self, max_age_days: Optional[int] = None, limit: int = 50) -> SyncResult:
        """Force-refresh the least recently updated stale dramas, one at a time."""
        max_age = max_age_days or self._config.max_age_days
        tmdb_ids = await self._store.find_stale(max_age, limit)
        updated = failed = 0
        for tmdb_id in tmdb_ids:
            try:
                result = await self._cache.get_drama(tmdb_id, force_refresh=True)
            except (AppException, UpstreamError) as exc:
                logger.error("[sync] tmdb_id=%s failed: %s", tmdb_id, exc)
                failed += 1
                continue
            if result.status in (CacheStatus.STALE_REFRESHED, CacheStatus.MISS_SAVED):
                updated += 1
            else:
                logger.warning("[sync] tmdb_id=%s not refreshed (status=%s)", tmdb_id, result.status.value)
                failed += 1
        logger.info("[sync] %s updated, %s failed (of %s stale)", updated, failed, len(tmdb_ids))
        return SyncResult(message=f"{updated} dramas updated", updated=updated, failed=failed)

    async def cleanup_cache(self, max_age_days: Optional[int] = None) -> CleanupResult:
        """Delete dramas not refreshed within the retention window."""
        retention = max_age_days or self._config.retention_days
        deleted = await self._store.delete_older_than(retention)
        logger.info("[cleanup] removed %s dramas older than %s days", deleted, retention)
        return CleanupResult(message=f"{deleted} old dramas removed", deleted=deleted)


__all__ = ["CatalogService", "Scheduler"]
