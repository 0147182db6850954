# dramahub/services/bulk_population.py
from __future__ import annotations

"""Bulk population of a cached drama's sub-entity sets.

Every helper follows the same contract:

1. An invalid drama id is logged and the helper returns 0.
2. The upstream payload is mapped and capped.
3. An empty mapped set returns 0 **before** anything is deleted, so a
   transient empty upstream answer never wipes a previously good set.
4. Delete + insert run in one transaction.
5. Datastore failures are logged and swallowed (return 0); they never abort
   sibling writes or the surrounding refresh.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from dramahub.repositories.drama_cache import DATASTORE_ERRORS, DramaCacheStore
from dramahub.services import drama_mapper
from dramahub.services.tmdb_client import TMDbClient
from dramahub.utils.settled import settle

logger = logging.getLogger(__name__)


def _valid_drama_id(drama_id: Any) -> bool:
    return isinstance(drama_id, int) and not isinstance(drama_id, bool) and drama_id > 0


async def _replace(
    kind: str,
    tmdb_id: int,
    drama_id: Any,
    rows: Sequence[Any],
    write: Callable[[int, Sequence[Any]], Awaitable[int]],
) -> int:
    if not _valid_drama_id(drama_id):
        logger.warning("populate_%s: invalid drama id %r for tmdb_id=%s; skipping", kind, drama_id, tmdb_id)
        return 0
    if not rows:
        logger.info("populate_%s: nothing to store for tmdb_id=%s; keeping existing rows", kind, tmdb_id)
        return 0
    try:
        count = await write(drama_id, rows)
    except DATASTORE_ERRORS:
        logger.exception("populate_%s: write failed for tmdb_id=%s", kind, tmdb_id)
        return 0
    logger.info("populate_%s: %s rows saved for tmdb_id=%s", kind, count, tmdb_id)
    return count


async def populate_cast(
    store: DramaCacheStore, tmdb_id: int, drama_id: Any, credits: Optional[Mapping[str, Any]]
) -> int:
    return await _replace("cast", tmdb_id, drama_id, drama_mapper.to_cast_rows(credits), store.replace_cast)


async def populate_videos(
    store: DramaCacheStore, tmdb_id: int, drama_id: Any, videos: Optional[Mapping[str, Any]]
) -> int:
    return await _replace("videos", tmdb_id, drama_id, drama_mapper.to_video_rows(videos), store.replace_videos)


async def populate_images(
    store: DramaCacheStore, tmdb_id: int, drama_id: Any, images: Optional[Mapping[str, Any]]
) -> int:
    return await _replace("images", tmdb_id, drama_id, drama_mapper.to_image_rows(images), store.replace_images)


async def enrich_seasons(
    client: TMDbClient, tmdb_id: int, seasons: Iterable[Any]
) -> List[Dict[str, Any]]:
    """Fetch per-season detail for seasons missing synopsis or episode count.

    Lookups run concurrently; a failed lookup keeps the season as it was.
    """
    seasons = [s for s in seasons if isinstance(s, dict)]

    async def _one(season: Dict[str, Any]) -> Dict[str, Any]:
        if not drama_mapper.season_needs_detail(season) or not isinstance(season.get("season_number"), int):
            return season
        result = await settle(client.get_season(tmdb_id, season["season_number"]))
        if not result.ok:
            logger.warning(
                "Season detail failed for tmdb_id=%s season=%s: %s",
                tmdb_id, season.get("season_number"), result.error,
            )
            return season
        if not isinstance(result.value, dict):
            logger.warning(
                "Season detail for tmdb_id=%s season=%s is not an object; keeping summary",
                tmdb_id, season.get("season_number"),
            )
            return season
        return drama_mapper.merge_season_detail(season, result.value)

    return list(await asyncio.gather(*(_one(s) for s in seasons)))


async def populate_seasons(
    store: DramaCacheStore,
    client: TMDbClient,
    tmdb_id: int,
    drama_id: Any,
    seasons: Optional[Iterable[Any]],
) -> int:
    if not _valid_drama_id(drama_id):
        logger.warning("populate_seasons: invalid drama id %r for tmdb_id=%s; skipping", drama_id, tmdb_id)
        return 0
    enriched = await enrich_seasons(client, tmdb_id, seasons or [])
    return await _replace("seasons", tmdb_id, drama_id, drama_mapper.to_season_rows(enriched), store.replace_seasons)


__all__ = [
    "populate_cast",
    "populate_videos",
    "populate_images",
    "populate_seasons",
    "enrich_seasons",
]
