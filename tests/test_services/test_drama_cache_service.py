# tests/test_services/test_drama_cache_service.py

from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timezone

import pytest

from dramahub.core.exceptions import DramaNotFoundException, UpstreamUnavailableException
from dramahub.repositories.records import UpsertOutcome
from dramahub.schemas.enums import CacheStatus
from dramahub.services import drama_mapper
from dramahub.services.drama_cache_service import DramaCacheService
from dramahub.services.tmdb_client import UpstreamHTTPError, UpstreamTimeoutError
from tests.fixtures.documents import credits_doc, detail_doc, images_doc
from tests.fixtures.fakes import FakeTMDb, LockRecorder

pytestmark = pytest.mark.anyio

TMDB_ID = 1399


# ─────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────

def _seed(store, *, age_days: float, images: bool = True, cast: int = 3) -> int:
    return store.seed(
        drama_mapper.to_cache_row(detail_doc(TMDB_ID)),
        age_days=age_days,
        cast=drama_mapper.to_cast_rows(credits_doc(cast)),
        images=drama_mapper.to_image_rows(images_doc()) if images else [],
    )


def _service(store, client, config, lock=None) -> DramaCacheService:
    return DramaCacheService(store, client, config, lock=lock)


# ─────────────────────────────────────────────────────────────
# Staleness gate
# ─────────────────────────────────────────────────────────────

async def test_fresh_row_is_served_without_upstream_calls(fake_store, cache_config, full_upstream):
    drama_id = _seed(fake_store, age_days=1)
    client = FakeTMDb(**full_upstream)

    detail = await _service(fake_store, client, cache_config).get_drama_by_id(TMDB_ID)

    assert client.calls == []
    assert detail.cache.status is CacheStatus.CACHE_HIT
    assert detail.cache.drama_id == drama_id
    assert detail.cache.last_update is not None
    assert len(detail.cast) == 3


async def test_row_older_than_max_age_is_refreshed(fake_store, cache_config, full_upstream):
    drama_id = _seed(fake_store, age_days=8, cast=5)
    client = FakeTMDb(**full_upstream)

    result = await _service(fake_store, client, cache_config).get_drama(TMDB_ID)

    assert result.status is CacheStatus.STALE_REFRESHED
    assert client.count("get_detail") == 1
    assert result.cached.drama_id == drama_id
    assert len(result.cached.cast) == 3  # replaced, not appended
    assert len(result.cached.videos) == 2
    assert len(result.cached.seasons) == 1


async def test_force_refresh_bypasses_fresh_row(fake_store, cache_config, full_upstream):
    _seed(fake_store, age_days=0)
    client = FakeTMDb(**full_upstream)

    result = await _service(fake_store, client, cache_config).get_drama(TMDB_ID, force_refresh=True)

    assert result.status is CacheStatus.STALE_REFRESHED
    assert client.count("get_detail") == 1


async def test_miss_fetches_saves_and_rereads(fake_store, cache_config, full_upstream):
    client = FakeTMDb(**full_upstream)

    result = await _service(fake_store, client, cache_config).get_drama(TMDB_ID)

    assert result.status is CacheStatus.MISS_SAVED
    assert "upsert_drama" in fake_store.names()
    assert fake_store.names()[-1] == "get"
    assert result.cached.drama.name == "Pousando no Amor"
    assert len(result.cached.images) == 3
    # season 1 has no synopsis, so its detail was looked up once
    assert client.count("get_season") == 1


async def test_detail_without_id_is_saved_under_requested_id(fake_store, cache_config, full_upstream):
    del full_upstream["get_detail"]["id"]
    client = FakeTMDb(**full_upstream)

    result = await _service(fake_store, client, cache_config).get_drama(TMDB_ID)

    assert result.status is CacheStatus.MISS_SAVED
    assert list(fake_store.dramas) == [TMDB_ID]


# ─────────────────────────────────────────────────────────────
# Failure handling
# ─────────────────────────────────────────────────────────────

async def test_upstream_failure_serves_stale_row(fake_store, cache_config):
    drama_id = _seed(fake_store, age_days=30)
    client = FakeTMDb()
    client.errors["get_detail"] = UpstreamTimeoutError("slow")

    detail = await _service(fake_store, client, cache_config).get_drama_by_id(TMDB_ID)

    assert detail.cache.status is CacheStatus.CACHE_AFTER_ERROR
    assert detail.cache.drama_id == drama_id
    assert "upsert_drama" not in fake_store.names()


async def test_upstream_failure_without_row_is_not_found(fake_store, cache_config):
    client = FakeTMDb()
    client.errors["get_detail"] = UpstreamHTTPError(404, "missing")

    with pytest.raises(DramaNotFoundException) as ei:
        await _service(fake_store, client, cache_config).get_drama(TMDB_ID)

    assert ei.value.status_code == 404
    assert "upsert_drama" not in fake_store.names()


async def test_failed_upsert_without_row_serves_live_data(fake_store, cache_config, full_upstream):
    fake_store.forced_outcome = UpsertOutcome.failed()
    client = FakeTMDb(**full_upstream)

    detail = await _service(fake_store, client, cache_config).get_drama_by_id(TMDB_ID)

    assert detail.cache.status is CacheStatus.UPSTREAM_DIRECT
    assert detail.cache.drama_id is None
    assert detail.name == "Pousando no Amor"
    assert detail.episode_run_time == [70, 85]
    assert not any(n.startswith("replace_") for n in fake_store.names())


async def test_unreadable_datastore_serves_live_data(fake_store, cache_config, full_upstream):
    fake_store.fail_reads = True
    client = FakeTMDb(**full_upstream)

    result = await _service(fake_store, client, cache_config).get_drama(TMDB_ID)

    assert result.status is CacheStatus.UPSTREAM_DIRECT
    assert result.live.id == TMDB_ID


async def test_empty_credits_keep_previous_cast(fake_store, cache_config, full_upstream):
    drama_id = _seed(fake_store, age_days=10, cast=4)
    client = FakeTMDb(**dict(full_upstream, get_credits={"cast": []}))

    result = await _service(fake_store, client, cache_config).get_drama(TMDB_ID)

    assert result.status is CacheStatus.STALE_REFRESHED
    assert len(fake_store.sets["cast"][drama_id]) == 4
    assert "replace_cast" not in fake_store.names()


async def test_failed_related_fetch_does_not_abort_refresh(fake_store, cache_config, full_upstream):
    _seed(fake_store, age_days=10)
    client = FakeTMDb(**full_upstream)
    client.errors["get_credits"] = UpstreamHTTPError(500, "boom")

    result = await _service(fake_store, client, cache_config).get_drama(TMDB_ID)

    assert result.status is CacheStatus.STALE_REFRESHED
    assert len(result.cached.videos) == 2
    assert len(result.cached.cast) == 3  # previous set untouched


async def test_sub_entity_write_failure_is_swallowed(fake_store, cache_config, full_upstream):
    fake_store.fail_writes = True
    client = FakeTMDb(**full_upstream)

    result = await _service(fake_store, client, cache_config).get_drama(TMDB_ID)

    assert result.status is CacheStatus.MISS_SAVED
    assert result.cached.cast == []


# ─────────────────────────────────────────────────────────────
# Image self-heal
# ─────────────────────────────────────────────────────────────

async def test_fresh_row_without_images_heals_with_one_fetch(fake_store, cache_config, full_upstream):
    _seed(fake_store, age_days=1, images=False)
    client = FakeTMDb(**full_upstream)

    result = await _service(fake_store, client, cache_config).get_drama(TMDB_ID)

    assert result.status is CacheStatus.CACHE_HIT
    assert client.count("get_images") == 1
    assert client.count("get_detail") == 0
    assert len(result.cached.images) == 3


async def test_self_heal_with_empty_gallery_writes_nothing(fake_store, cache_config):
    _seed(fake_store, age_days=1, images=False)
    client = FakeTMDb(get_images={"backdrops": [], "posters": [], "logos": []})

    result = await _service(fake_store, client, cache_config).get_drama(TMDB_ID)

    assert result.status is CacheStatus.CACHE_HIT
    assert client.count("get_images") == 1
    assert "replace_images" not in fake_store.names()


async def test_self_heal_failure_still_serves_row(fake_store, cache_config):
    _seed(fake_store, age_days=1, images=False)
    client = FakeTMDb()
    client.errors["get_images"] = UpstreamTimeoutError("slow")

    result = await _service(fake_store, client, cache_config).get_drama(TMDB_ID)

    assert result.status is CacheStatus.CACHE_HIT
    assert result.cached.images == []


# ─────────────────────────────────────────────────────────────
# Locale bypass
# ─────────────────────────────────────────────────────────────

async def test_non_primary_language_never_touches_store(fake_store, cache_config, full_upstream):
    _seed(fake_store, age_days=1)
    client = FakeTMDb(**full_upstream)

    detail = await _service(fake_store, client, cache_config).get_drama_by_id(TMDB_ID, language="en")

    assert fake_store.calls == []
    assert detail.cache.status is CacheStatus.UPSTREAM_DIRECT
    assert ("get_detail", TMDB_ID, "en-US") in client.calls
    assert ("get_images", TMDB_ID, "en-US") in client.calls


async def test_primary_language_tag_uses_cache(fake_store, cache_config, full_upstream):
    _seed(fake_store, age_days=1)
    client = FakeTMDb(**full_upstream)

    detail = await _service(fake_store, client, cache_config).get_drama_by_id(TMDB_ID, language="pt")

    assert detail.cache.status is CacheStatus.CACHE_HIT
    assert client.calls == []


async def test_fetch_direct_maps_upstream_errors(fake_store, cache_config):
    client = FakeTMDb()
    service = _service(fake_store, client, cache_config)

    client.errors["get_detail"] = UpstreamHTTPError(404, "missing")
    with pytest.raises(DramaNotFoundException):
        await service.fetch_direct(TMDB_ID, "en-US")

    client.errors["get_detail"] = UpstreamHTTPError(503, "down")
    with pytest.raises(UpstreamUnavailableException) as ei:
        await service.fetch_direct(TMDB_ID, "en-US")
    assert ei.value.status_code == 502


# ─────────────────────────────────────────────────────────────
# Single-flight
# ─────────────────────────────────────────────────────────────

async def test_refresh_runs_under_per_title_lock(fake_store, cache_config, full_upstream):
    lock = LockRecorder()
    client = FakeTMDb(**full_upstream)

    result = await _service(fake_store, client, cache_config, lock=lock).get_drama(TMDB_ID)

    assert result.status is CacheStatus.MISS_SAVED
    assert lock.acquired == [(f"drama:refresh:{TMDB_ID}", 60, 15)]
    assert lock.released == [f"drama:refresh:{TMDB_ID}"]


async def test_fresh_hit_takes_no_lock(fake_store, cache_config):
    _seed(fake_store, age_days=1)
    lock = LockRecorder()

    await _service(fake_store, FakeTMDb(), cache_config, lock=lock).get_drama(TMDB_ID)

    assert lock.acquired == []


async def test_row_refreshed_while_waiting_is_served(fake_store, cache_config, full_upstream):
    _seed(fake_store, age_days=9)
    client = FakeTMDb(**full_upstream)

    @asynccontextmanager
    async def refreshed_meanwhile(name, *, timeout, blocking_timeout):
        fake_store.dramas[TMDB_ID] = replace(fake_store.dramas[TMDB_ID], last_update=datetime.now(timezone.utc))
        yield

    result = await _service(fake_store, client, cache_config, lock=refreshed_meanwhile).get_drama(TMDB_ID)

    assert result.status is CacheStatus.CACHE_HIT
    assert client.count("get_detail") == 0


async def test_unavailable_lock_refreshes_unlocked(fake_store, cache_config, full_upstream):
    _seed(fake_store, age_days=9)
    lock = LockRecorder(fail_with=TimeoutError("busy"))
    client = FakeTMDb(**full_upstream)

    result = await _service(fake_store, client, cache_config, lock=lock).get_drama(TMDB_ID)

    assert result.status is CacheStatus.STALE_REFRESHED
    assert lock.released == []


async def test_single_flight_can_be_disabled(fake_store, cache_config, full_upstream):
    lock = LockRecorder()
    config = replace(cache_config, single_flight=False)

    await _service(fake_store, FakeTMDb(**full_upstream), config, lock=lock).get_drama(TMDB_ID)

    assert lock.acquired == []
