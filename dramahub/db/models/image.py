# dramahub/db/models/image.py
from __future__ import annotations

"""
Gallery image of a cached drama.

`file_path` is always stored `/`-prefixed; at most 20 rows per `type`.
"""

from sqlalchemy import CheckConstraint, Column, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from dramahub.db.base_class import Base, BigIntPK


class Image(Base):
    __tablename__ = "drama_images"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    drama_id = Column(BigIntPK, ForeignKey("dramas.id", ondelete="CASCADE"), nullable=False, index=True)

    file_path = Column(String(256), nullable=False)
    type = Column(String(16), nullable=False)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    aspect_ratio = Column(Float, nullable=True)
    vote_count = Column(Integer, nullable=False, default=0)
    vote_average = Column(Float, nullable=True)
    language = Column(String(16), nullable=True)

    __table_args__ = (
        CheckConstraint("type IN ('backdrop', 'poster', 'logo')", name="image_type"),
        Index("ix_drama_images_drama_type", "drama_id", "type"),
    )

    drama = relationship("Drama", back_populates="images")
