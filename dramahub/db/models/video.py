# dramahub/db/models/video.py
from __future__ import annotations

"""Trailer / teaser of a cached drama (at most 10 per drama)."""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from dramahub.db.base_class import Base, BigIntPK


class Video(Base):
    __tablename__ = "drama_videos"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    drama_id = Column(BigIntPK, ForeignKey("dramas.id", ondelete="CASCADE"), nullable=False, index=True)

    tmdb_video_id = Column(String(64), nullable=False)
    key = Column(String(128), nullable=False)
    site = Column(String(32), nullable=False)
    type = Column(String(16), nullable=False)
    name = Column(String(512), nullable=True)
    size = Column(Integer, nullable=True)
    official = Column(Boolean, nullable=False, default=False)
    published_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("type IN ('Trailer', 'Teaser')", name="video_type"),
    )

    drama = relationship("Drama", back_populates="videos")
