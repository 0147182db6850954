# dramahub/db/models/season.py
from __future__ import annotations

"""Season of a cached drama, optionally enriched from the per-season detail."""

from sqlalchemy import Column, Date, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from dramahub.db.base_class import Base, BigIntPK


class Season(Base):
    __tablename__ = "drama_seasons"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    drama_id = Column(BigIntPK, ForeignKey("dramas.id", ondelete="CASCADE"), nullable=False, index=True)

    tmdb_season_id = Column(Integer, nullable=True)
    season_number = Column(Integer, nullable=False)
    name = Column(String(256), nullable=True)
    overview = Column(Text, nullable=True)
    poster_path = Column(String(256), nullable=True)
    air_date = Column(Date, nullable=True)
    episode_count = Column(Integer, nullable=True)

    __table_args__ = (
        UniqueConstraint("drama_id", "season_number", name="uq_drama_seasons_drama_number"),
    )

    drama = relationship("Drama", back_populates="seasons")
