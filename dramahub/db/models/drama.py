# dramahub/db/models/drama.py
from __future__ import annotations

"""
🎬 DramaHub — Drama (cached title row)
=====================================

Local copy of one upstream TV title. `tmdb_id` is the immutable upstream id and
the upsert conflict target; `id` is the local surrogate key that sub-entity rows
reference.

Lifecycle
---------
• Created on the first successful upstream fetch.
• Mutated in place on refresh (`last_update` re-stamped).
• Deleted only by the retention sweep; sub-entities cascade.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from dramahub.db.base_class import Base, BigIntPK, IntList, StrList


class Drama(Base):
    """Cached upstream TV title."""

    __tablename__ = "dramas"

    # ─────────────── Identity ───────────────
    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    tmdb_id = Column(Integer, nullable=False, unique=True, index=True)

    # ─────────────── Names & copy ───────────────
    name = Column(String(512), nullable=False)
    original_name = Column(String(512), nullable=True)
    overview = Column(Text, nullable=True)
    tagline = Column(String(512), nullable=True)
    homepage = Column(String(1024), nullable=True)

    # ─────────────── Artwork pointers ───────────────
    poster_path = Column(String(256), nullable=True)
    backdrop_path = Column(String(256), nullable=True)

    # ─────────────── Release & structure ───────────────
    release_year = Column(Integer, nullable=True)
    first_air_date = Column(Date, nullable=True)
    last_air_date = Column(Date, nullable=True)
    status = Column(String(64), nullable=True)
    episode_run_time = Column(Integer, nullable=True)
    number_of_seasons = Column(Integer, nullable=True)
    number_of_episodes = Column(Integer, nullable=True)

    # ─────────────── Classification ───────────────
    genre_ids = Column(IntList, nullable=False, default=list)
    origin_country = Column(StrList, nullable=False, default=list)
    original_language = Column(String(16), nullable=True)

    # ─────────────── Scores ───────────────
    vote_average = Column(Float, nullable=True)
    vote_count = Column(Integer, nullable=True)
    popularity = Column(Float, nullable=True)

    # ─────────────── Freshness ───────────────
    last_update = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("vote_average IS NULL OR (vote_average >= 0 AND vote_average <= 10)", name="vote_average_range"),
        Index("ix_dramas_popularity", "popularity"),
        Index("ix_dramas_last_update", "last_update"),
    )

    # ─────────────── Owned sets ───────────────
    cast_members = relationship("CastMember", back_populates="drama", cascade="all, delete-orphan", passive_deletes=True)
    videos = relationship("Video", back_populates="drama", cascade="all, delete-orphan", passive_deletes=True)
    images = relationship("Image", back_populates="drama", cascade="all, delete-orphan", passive_deletes=True)
    seasons = relationship("Season", back_populates="drama", cascade="all, delete-orphan", passive_deletes=True)
