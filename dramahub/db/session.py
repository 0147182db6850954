# dramahub/db/session.py
from __future__ import annotations

"""
DramaHub — Database Engine & Sessions

- One async engine for the app (asyncpg in production).
- `build_engine()` lets tests bind the same models to another URL
  (e.g. `sqlite+aiosqlite:///...`).
- The Cache Store opens its own session per operation from
  `async_session_maker`; nothing shares a session across tasks.
"""

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from dramahub.core.config import settings

logger = logging.getLogger(__name__)

# Pool knobs (ignored for SQLite)
_POOL_PRE_PING = True
_POOL_RECYCLE = 1800
_POOL_TIMEOUT = 30
_POOL_SIZE = 10
_MAX_OVERFLOW = 20


def build_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    """Create an async engine; pooling options only apply to server databases."""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)
    return create_async_engine(
        url,
        pool_pre_ping=_POOL_PRE_PING,
        pool_recycle=_POOL_RECYCLE,
        pool_size=_POOL_SIZE,
        max_overflow=_MAX_OVERFLOW,
        pool_timeout=_POOL_TIMEOUT,
        echo=echo,
    )


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async_engine: AsyncEngine = build_engine(settings.ASYNC_DATABASE_URL)
async_session_maker = build_session_maker(async_engine)


async def db_healthcheck(engine: AsyncEngine | None = None) -> bool:
    """Quick SELECT 1 to verify DB connectivity (used by /readyz)."""
    try:
        async with (engine or async_engine).connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("DB healthcheck failed")
        return False


__all__ = [
    "async_engine",
    "async_session_maker",
    "build_engine",
    "build_session_maker",
    "db_healthcheck",
]
