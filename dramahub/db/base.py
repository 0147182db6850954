# dramahub/db/base.py
"""
DramaHub — SQLAlchemy Base registry
===================================

Import all ORM models so their tables are registered on `Base.metadata`
(Alembic autogeneration and test schema creation rely on it).

Keep this file import-only; no runtime logic.
"""

from dramahub.db.base_class import Base

from dramahub.db.models.drama import Drama
from dramahub.db.models.cast_member import CastMember
from dramahub.db.models.video import Video
from dramahub.db.models.image import Image
from dramahub.db.models.season import Season

__all__ = [
    "Base",
    "Drama",
    "CastMember",
    "Video",
    "Image",
    "Season",
]
