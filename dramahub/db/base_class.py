# dramahub/db/base_class.py
from __future__ import annotations

"""
# DramaHub — SQLAlchemy Base & portable column types

- Global **naming conventions** (Alembic-friendly)
- Automatic **snake_case `__tablename__`** (models may override)
- Portable column types: PostgreSQL in production, SQLite in tests

Usage:
    from dramahub.db.base_class import Base, BigIntPK, IntList

    class Drama(Base):
        __tablename__ = "dramas"
        id = Column(BigIntPK, primary_key=True, autoincrement=True)
"""

import re

from sqlalchemy import JSON, BigInteger, Integer, MetaData, String
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import DeclarativeBase, declared_attr

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# BIGINT identity on Postgres; SQLite only autoincrements INTEGER PRIMARY KEY
BigIntPK = BigInteger().with_variant(Integer, "sqlite")

# Native arrays on Postgres, JSON elsewhere
IntList = JSON().with_variant(ARRAY(Integer), "postgresql")
StrList = JSON().with_variant(ARRAY(String(8)), "postgresql")


def _to_snake(name: str) -> str:
    """Convert `CamelCase` / `PascalCase` to `snake_case` for table names."""
    s1 = re.sub("(.)([A-Z][a-z]+)", r"\1_\2", name)
    return re.sub("([a-z0-9])([A-Z])", r"\1_\2", s1).lower()


class Base(DeclarativeBase):
    """Global declarative base for DramaHub models."""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    @declared_attr.directive
    def __tablename__(cls) -> str:  # type: ignore[override]
        return _to_snake(cls.__name__)

    def __repr__(self) -> str:  # pragma: no cover
        attrs = [f"{key}={getattr(self, key)!r}" for key in ("id", "tmdb_id", "drama_id") if hasattr(self, key)]
        return f"{self.__class__.__name__}({', '.join(attrs)})"


__all__ = ["Base", "BigIntPK", "IntList", "StrList", "NAMING_CONVENTION"]
