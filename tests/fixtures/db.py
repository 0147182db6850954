# tests/fixtures/db.py
"""
DB fixtures for tests (async, SQLite file database via aiosqlite):
- Fresh database file per test under `tmp_path`
- Schema built from `Base.metadata` (no server-side functions, so the store
  exercises its table-upsert and local-staleness paths)
- Engine disposed on teardown
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from dramahub.db import base  # noqa: F401  (registers every model)
from dramahub.db.base_class import Base
from dramahub.db.models import Drama
from dramahub.db.session import build_engine, build_session_maker
from dramahub.repositories.drama_cache import DramaCacheStore


@pytest.fixture()
async def sqlite_engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'cache.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_maker(sqlite_engine):
    return build_session_maker(sqlite_engine)


@pytest.fixture()
def store(session_maker) -> DramaCacheStore:
    return DramaCacheStore(session_maker)


@pytest.fixture()
def age_drama(session_maker):
    """Backdate `last_update` of a cached drama by `days`."""

    async def _age(tmdb_id: int, days: float) -> None:
        stamp = datetime.now(timezone.utc) - timedelta(days=days)
        async with session_maker() as session, session.begin():
            await session.execute(
                update(Drama).where(Drama.tmdb_id == tmdb_id).values(last_update=stamp)
            )

    return _age


__all__ = ["sqlite_engine", "session_maker", "store", "age_drama"]
