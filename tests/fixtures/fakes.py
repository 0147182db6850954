# tests/fixtures/fakes.py
"""
In-memory fakes for the cache store, the TMDb client and the Redis lock.

They mirror the public surface of `DramaCacheStore` / `TMDbClient` closely
enough for the services to run unmodified, and record every call so tests can
assert on I/O (e.g. "zero store calls", "exactly one images fetch").
"""

from __future__ import annotations

import copy
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

import pytest
from sqlalchemy.exc import SQLAlchemyError

from dramahub.core.config import CacheConfig
from dramahub.repositories.records import CachedDrama, DramaRow, UpsertOutcome
from dramahub.schemas.enums import UpsertPath

_SETS = ("cast", "videos", "images", "seasons")


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ─────────────────────────────────────────────────────────────
# Cache store
# ─────────────────────────────────────────────────────────────
class FakeStore:
    def __init__(self) -> None:
        self.dramas: Dict[int, DramaRow] = {}
        self.sets: Dict[str, Dict[int, list]] = {name: {} for name in _SETS}
        self.calls: List[tuple] = []
        self.forced_outcome: Optional[UpsertOutcome] = None
        self.fail_reads = False
        self.fail_writes = False
        self._next_id = 1

    # helpers
    def seed(self, row: DramaRow, *, age_days: float = 0, **sets: Sequence[Any]) -> int:
        drama_id = self._next_id
        self._next_id += 1
        self.dramas[row.tmdb_id] = replace(row, id=drama_id, last_update=_now() - timedelta(days=age_days))
        for name in _SETS:
            self.sets[name][drama_id] = list(sets.get(name, ()))
        return drama_id

    def names(self) -> List[str]:
        return [c[0] for c in self.calls]

    # reads
    async def get(self, tmdb_id: int) -> Optional[CachedDrama]:
        self.calls.append(("get", tmdb_id))
        if self.fail_reads:
            raise SQLAlchemyError("database is down")
        row = self.dramas.get(tmdb_id)
        if row is None:
            return None
        return CachedDrama(drama=row, **{name: list(self.sets[name].get(row.id, [])) for name in _SETS})

    async def get_drama_id(self, tmdb_id: int) -> Optional[int]:
        self.calls.append(("get_drama_id", tmdb_id))
        row = self.dramas.get(tmdb_id)
        return row.id if row else None

    async def needs_refresh(self, tmdb_id: int, max_age_days: int) -> bool:
        self.calls.append(("needs_refresh", tmdb_id, max_age_days))
        if self.fail_reads:
            raise SQLAlchemyError("database is down")
        row = self.dramas.get(tmdb_id)
        if row is None:
            return True
        return _now() - row.last_update > timedelta(days=max_age_days)

    async def list_by_popularity(self, page: int, page_size: int):
        self.calls.append(("list_by_popularity", page, page_size))
        rows = sorted(self.dramas.values(), key=lambda r: -(r.popularity or 0))
        start = (page - 1) * page_size
        return rows[start:start + page_size], len(rows)

    async def find_stale(self, max_age_days: int, limit: int) -> List[int]:
        self.calls.append(("find_stale", max_age_days, limit))
        cutoff = _now() - timedelta(days=max_age_days)
        stale = sorted((r for r in self.dramas.values() if r.last_update < cutoff), key=lambda r: r.last_update)
        return [r.tmdb_id for r in stale[:limit]]

    # writes
    async def upsert_drama(self, row: DramaRow) -> UpsertOutcome:
        self.calls.append(("upsert_drama", row.tmdb_id))
        if self.forced_outcome is not None:
            return self.forced_outcome
        existing = self.dramas.get(row.tmdb_id)
        drama_id = existing.id if existing else self._next_id
        if existing is None:
            self._next_id += 1
            for name in _SETS:
                self.sets[name][drama_id] = []
        self.dramas[row.tmdb_id] = replace(row, id=drama_id, last_update=_now())
        return UpsertOutcome(UpsertPath.TABLE, drama_id)

    async def insert_if_absent(self, row: DramaRow) -> UpsertOutcome:
        self.calls.append(("insert_if_absent", row.tmdb_id))
        if self.forced_outcome is not None:
            return self.forced_outcome
        existing = self.dramas.get(row.tmdb_id)
        if existing is not None:
            return UpsertOutcome(UpsertPath.LOOKUP, existing.id)
        return UpsertOutcome(UpsertPath.TABLE, self.seed(row))

    async def _replace(self, name: str, drama_id: int, rows: Sequence[Any]) -> int:
        self.calls.append((f"replace_{name}", drama_id, len(rows)))
        if self.fail_writes:
            raise SQLAlchemyError("write failed")
        self.sets[name][drama_id] = list(rows)
        return len(rows)

    async def replace_cast(self, drama_id, rows):
        return await self._replace("cast", drama_id, rows)

    async def replace_videos(self, drama_id, rows):
        return await self._replace("videos", drama_id, rows)

    async def replace_images(self, drama_id, rows):
        return await self._replace("images", drama_id, rows)

    async def replace_seasons(self, drama_id, rows):
        return await self._replace("seasons", drama_id, rows)

    async def delete_older_than(self, max_age_days: int) -> int:
        self.calls.append(("delete_older_than", max_age_days))
        cutoff = _now() - timedelta(days=max_age_days)
        old = [t for t, r in self.dramas.items() if r.last_update < cutoff]
        for tmdb_id in old:
            row = self.dramas.pop(tmdb_id)
            for name in _SETS:
                self.sets[name].pop(row.id, None)
        return len(old)


# ─────────────────────────────────────────────────────────────
# TMDb client
# ─────────────────────────────────────────────────────────────
class FakeTMDb:
    """Answers from canned documents; `errors[method]` makes a method raise."""

    primary_language = "pt-BR"

    def __init__(self, **responses: Any) -> None:
        self.responses: Dict[str, Any] = responses
        self.errors: Dict[str, BaseException] = {}
        self.calls: List[tuple] = []

    def count(self, name: str) -> int:
        return sum(1 for c in self.calls if c[0] == name)

    async def _answer(self, name: str, *args: Any) -> Dict[str, Any]:
        self.calls.append((name, *args))
        if name in self.errors:
            raise self.errors[name]
        return copy.deepcopy(self.responses.get(name) or {})

    async def get_detail(self, tmdb_id, language=None):
        return await self._answer("get_detail", tmdb_id, language)

    async def get_credits(self, tmdb_id, language=None):
        return await self._answer("get_credits", tmdb_id, language)

    async def get_videos(self, tmdb_id, language=None):
        return await self._answer("get_videos", tmdb_id, language)

    async def get_images(self, tmdb_id, language=None):
        return await self._answer("get_images", tmdb_id, language)

    async def get_season(self, tmdb_id, season_number, language=None):
        self.calls.append(("get_season", tmdb_id, season_number))
        if "get_season" in self.errors:
            raise self.errors["get_season"]
        return copy.deepcopy((self.responses.get("get_season") or {}).get(season_number) or {})

    async def search(self, query, page=1, language=None):
        return await self._answer("search", query, page)

    async def get_popular(self, page=1, language=None):
        return await self._answer("get_popular", page)

    async def get_trending(self, window="day", language=None):
        return await self._answer("get_trending", window)

    async def get_watch_providers(self, tmdb_id):
        return await self._answer("get_watch_providers", tmdb_id)


# ─────────────────────────────────────────────────────────────
# Redis lock
# ─────────────────────────────────────────────────────────────
class LockRecorder:
    """`redis_wrapper.lock`-compatible factory; `fail_with` simulates an unavailable lock."""

    def __init__(self, fail_with: Optional[BaseException] = None) -> None:
        self.fail_with = fail_with
        self.acquired: List[tuple] = []
        self.released: List[str] = []

    @asynccontextmanager
    async def __call__(self, name: str, *, timeout: int, blocking_timeout: int):
        if self.fail_with is not None:
            raise self.fail_with
        self.acquired.append((name, timeout, blocking_timeout))
        try:
            yield self
        finally:
            self.released.append(name)


@pytest.fixture()
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def cache_config() -> CacheConfig:
    return CacheConfig(primary_language="pt-BR", max_age_days=7, populate_top_n=3, page_size=2)


__all__ = ["FakeStore", "FakeTMDb", "LockRecorder", "fake_store", "cache_config"]
