# dramahub/repositories/drama_cache.py
from __future__ import annotations

"""Drama Cache Store.

Owns the persisted representation of a cached drama and its sub-entity sets.
Every operation opens its own `AsyncSession` from the injected session maker,
so concurrent tasks never share a session.

Server-side functions
---------------------
`drama_needs_refresh(p_tmdb_id, p_max_age_days)` and `upsert_drama_cache(...)`
are created by the Alembic migration. Where they are missing (e.g. SQLite in
tests, or a database not yet migrated) the store falls back to computing
staleness locally and to a direct `INSERT ... ON CONFLICT (tmdb_id)` upsert.
"""

import logging
from dataclasses import fields
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, TypeVar

from sqlalchemy import delete, func, insert, select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dramahub.db.models import CastMember, Drama, Image, Season, Video
from dramahub.repositories.records import (
    CachedDrama,
    CastRow,
    DramaRow,
    ImageRow,
    SeasonRow,
    UpsertOutcome,
    VideoRow,
)
from dramahub.schemas.enums import UpsertPath

logger = logging.getLogger(__name__)

R = TypeVar("R")

# What a broken or unreachable database surfaces as
DATASTORE_ERRORS = (SQLAlchemyError, OSError)

_NEEDS_REFRESH_SQL = text("SELECT drama_needs_refresh(:p_tmdb_id, :p_max_age_days)")

_UPSERT_RPC_SQL = text(
    "SELECT upsert_drama_cache("
    + ", ".join(f"p_{name} => :p_{name}" for name in ("tmdb_id",) + DramaRow.WRITABLE)
    + ")"
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is written in UTC
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def _record(obj: Any, cls: Type[R]) -> R:
    return cls(**{f.name: getattr(obj, f.name) for f in fields(cls)})  # type: ignore[arg-type]


def _values(row: Any) -> Dict[str, Any]:
    return {f.name: getattr(row, f.name) for f in fields(row)}


def _dialect_insert(session: AsyncSession):
    """`INSERT` construct with `ON CONFLICT` support for the bound dialect."""
    dialect = session.bind.dialect.name
    if dialect == "postgresql":
        return postgresql.insert(Drama)
    if dialect == "sqlite":
        return sqlite.insert(Drama)
    raise NotImplementedError(f"No upsert for dialect {dialect!r}")


class DramaCacheStore:
    """Relational cache of dramas; typed records in, typed records out."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    # ─────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────
    async def get(self, tmdb_id: int) -> Optional[CachedDrama]:
        """Drama plus every owned set, or `None` when not cached."""
        async with self._session_maker() as session:
            drama = (
                await session.execute(select(Drama).where(Drama.tmdb_id == tmdb_id))
            ).scalar_one_or_none()
            if drama is None:
                return None

            async def _children(model, cls, order_by):
                result = await session.execute(
                    select(model).where(model.drama_id == drama.id).order_by(*order_by)
                )
                return [_record(obj, cls) for obj in result.scalars()]

            return CachedDrama(
                drama=_record(drama, DramaRow),
                cast=await _children(CastMember, CastRow, (CastMember.billing_order, CastMember.id)),
                videos=await _children(Video, VideoRow, (Video.id,)),
                images=await _children(Image, ImageRow, (Image.id,)),
                seasons=await _children(Season, SeasonRow, (Season.season_number,)),
            )

    async def get_drama_id(self, tmdb_id: int) -> Optional[int]:
        async with self._session_maker() as session:
            return (
                await session.execute(select(Drama.id).where(Drama.tmdb_id == tmdb_id))
            ).scalar_one_or_none()

    async def needs_refresh(self, tmdb_id: int, max_age_days: int) -> bool:
        """Server-side staleness check; computed locally if the function is unavailable."""
        try:
            async with self._session_maker() as session:
                result = await session.execute(
                    _NEEDS_REFRESH_SQL, {"p_tmdb_id": tmdb_id, "p_max_age_days": max_age_days}
                )
                return bool(result.scalar())
        except DATASTORE_ERRORS as exc:
            logger.debug("drama_needs_refresh unavailable (%s); computing locally", exc.__class__.__name__)
        return await self._needs_refresh_local(tmdb_id, max_age_days)

    async def _needs_refresh_local(self, tmdb_id: int, max_age_days: int) -> bool:
        async with self._session_maker() as session:
            last_update = (
                await session.execute(select(Drama.last_update).where(Drama.tmdb_id == tmdb_id))
            ).scalar_one_or_none()
        if last_update is None:
            return True
        return _utcnow() - _as_utc(last_update) > timedelta(days=max_age_days)

    async def list_by_popularity(self, page: int, page_size: int) -> Tuple[List[DramaRow], int]:
        """One page of cached dramas, most popular first, plus the total row count."""
        offset = max(page - 1, 0) * page_size
        async with self._session_maker() as session:
            total = (await session.execute(select(func.count(Drama.id)))).scalar_one()
            result = await session.execute(
                select(Drama)
                .order_by(Drama.popularity.desc().nulls_last(), Drama.id)
                .offset(offset)
                .limit(page_size)
            )
            return [_record(obj, DramaRow) for obj in result.scalars()], int(total)

    async def find_stale(self, max_age_days: int, limit: int) -> List[int]:
        """`tmdb_id`s older than `max_age_days`, least recently updated first."""
        cutoff = _utcnow() - timedelta(days=max_age_days)
        async with self._session_maker() as session:
            result = await session.execute(
                select(Drama.tmdb_id)
                .where(Drama.last_update < cutoff)
                .order_by(Drama.last_update.asc())
                .limit(limit)
            )
            return list(result.scalars())

    # ─────────────────────────────────────────────────────────
    # Title write path (three tiers)
    # ─────────────────────────────────────────────────────────
    async def upsert_drama(self, row: DramaRow) -> UpsertOutcome:
        """RPC upsert → direct table upsert → lookup by `tmdb_id`."""
        drama_id = await self._upsert_via_rpc(row)
        if drama_id is not None:
            return UpsertOutcome(UpsertPath.RPC, drama_id)

        drama_id = await self._upsert_via_table(row)
        if drama_id is not None:
            return UpsertOutcome(UpsertPath.TABLE, drama_id)

        try:
            drama_id = await self.get_drama_id(row.tmdb_id)
        except DATASTORE_ERRORS:
            logger.exception("Lookup after failed upserts failed for tmdb_id=%s", row.tmdb_id)
            drama_id = None
        if drama_id is not None:
            return UpsertOutcome(UpsertPath.LOOKUP, drama_id)

        logger.error("All upsert tiers failed for tmdb_id=%s", row.tmdb_id)
        return UpsertOutcome.failed()

    async def _upsert_via_rpc(self, row: DramaRow) -> Optional[int]:
        params = {f"p_{name}": value for name, value in row.writable_values().items()}
        params["p_tmdb_id"] = row.tmdb_id
        try:
            async with self._session_maker() as session, session.begin():
                value = (await session.execute(_UPSERT_RPC_SQL, params)).scalar()
        except DATASTORE_ERRORS as exc:
            logger.info("upsert_drama_cache RPC failed for tmdb_id=%s (%s); using table upsert",
                        row.tmdb_id, exc.__class__.__name__)
            return None
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        logger.warning("upsert_drama_cache returned no id for tmdb_id=%s", row.tmdb_id)
        return None

    async def _upsert_via_table(self, row: DramaRow) -> Optional[int]:
        values = row.writable_values()
        values["last_update"] = _utcnow()
        try:
            async with self._session_maker() as session, session.begin():
                stmt = _dialect_insert(session).values(tmdb_id=row.tmdb_id, **values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[Drama.tmdb_id],
                    set_={name: stmt.excluded[name] for name in values},
                ).returning(Drama.id)
                return (await session.execute(stmt)).scalar_one_or_none()
        except DATASTORE_ERRORS + (NotImplementedError,):
            logger.exception("Table upsert failed for tmdb_id=%s", row.tmdb_id)
            return None

    # ─────────────────────────────────────────────────────────
    # Listing write path
    # ─────────────────────────────────────────────────────────
    async def insert_if_absent(self, row: DramaRow) -> UpsertOutcome:
        """Cache a listing item only when the title is not cached yet.

        Listing items carry a subset of the title fields, so an existing row
        (and its `last_update`) is left untouched: `TABLE` when a row was
        inserted, `LOOKUP` when one already existed.
        """
        values = row.writable_values()
        values["last_update"] = _utcnow()
        try:
            async with self._session_maker() as session, session.begin():
                stmt = (
                    _dialect_insert(session)
                    .values(tmdb_id=row.tmdb_id, **values)
                    .on_conflict_do_nothing(index_elements=[Drama.tmdb_id])
                    .returning(Drama.id)
                )
                drama_id = (await session.execute(stmt)).scalar_one_or_none()
                if drama_id is not None:
                    return UpsertOutcome(UpsertPath.TABLE, drama_id)
                drama_id = (
                    await session.execute(select(Drama.id).where(Drama.tmdb_id == row.tmdb_id))
                ).scalar_one_or_none()
        except DATASTORE_ERRORS + (NotImplementedError,):
            logger.exception("Listing insert failed for tmdb_id=%s", row.tmdb_id)
            return UpsertOutcome.failed()
        if drama_id is None:
            return UpsertOutcome.failed()
        return UpsertOutcome(UpsertPath.LOOKUP, drama_id)

    # ─────────────────────────────────────────────────────────
    # Sub-entity sets (delete + insert in one transaction)
    # ─────────────────────────────────────────────────────────
    async def _replace_set(self, model, drama_id: int, rows: Sequence[Any]) -> int:
        async with self._session_maker() as session, session.begin():
            await session.execute(delete(model).where(model.drama_id == drama_id))
            if rows:
                await session.execute(insert(model), [{"drama_id": drama_id, **_values(r)} for r in rows])
        return len(rows)

    async def replace_cast(self, drama_id: int, rows: Sequence[CastRow]) -> int:
        return await self._replace_set(CastMember, drama_id, rows)

    async def replace_videos(self, drama_id: int, rows: Sequence[VideoRow]) -> int:
        return await self._replace_set(Video, drama_id, rows)

    async def replace_images(self, drama_id: int, rows: Sequence[ImageRow]) -> int:
        return await self._replace_set(Image, drama_id, rows)

    async def replace_seasons(self, drama_id: int, rows: Sequence[SeasonRow]) -> int:
        return await self._replace_set(Season, drama_id, rows)

    # ─────────────────────────────────────────────────────────
    # Retention
    # ─────────────────────────────────────────────────────────
    async def delete_older_than(self, max_age_days: int) -> int:
        """Delete dramas (and their sets) not refreshed within `max_age_days`."""
        cutoff = _utcnow() - timedelta(days=max_age_days)
        old_ids = select(Drama.id).where(Drama.last_update < cutoff)
        async with self._session_maker() as session, session.begin():
            # explicit child deletes; SQLite does not enforce ON DELETE CASCADE by default
            for model in (CastMember, Video, Image, Season):
                await session.execute(delete(model).where(model.drama_id.in_(old_ids)))
            result = await session.execute(delete(Drama).where(Drama.last_update < cutoff))
        return int(result.rowcount or 0)


__all__ = ["DramaCacheStore", "DATASTORE_ERRORS"]
