# dramahub/db/models/__init__.py
"""Drama cache ORM models: one title row plus its owned sub-entity sets."""

from .drama import Drama
from .cast_member import CastMember
from .video import Video
from .image import Image
from .season import Season

__all__ = ["Drama", "CastMember", "Video", "Image", "Season"]
