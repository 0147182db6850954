# dramahub/db/models/cast_member.py
from __future__ import annotations

"""Cast credit of a cached drama. Replaced as a whole set on refresh."""

from sqlalchemy import Column, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from dramahub.db.base_class import Base, BigIntPK


class CastMember(Base):
    __tablename__ = "drama_cast"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    drama_id = Column(BigIntPK, ForeignKey("dramas.id", ondelete="CASCADE"), nullable=False, index=True)

    tmdb_person_id = Column(Integer, nullable=False)
    name = Column(String(256), nullable=False)
    character = Column(String(512), nullable=True)
    profile_path = Column(String(256), nullable=True)
    billing_order = Column(Integer, nullable=True, doc="Lower = earlier in billing.")
    kind = Column(String(16), nullable=False, default="cast")

    __table_args__ = (
        Index("ix_drama_cast_drama_order", "drama_id", "billing_order"),
    )

    drama = relationship("Drama", back_populates="cast_members")
