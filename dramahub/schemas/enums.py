# dramahub/schemas/enums.py
from __future__ import annotations

"""
Central enum definitions used across DramaHub.

• All enums subclass `str, PyEnum` for JSON-friendly serialization.
• VALUE STRINGS are **stable** once deployed (clients and DB checks depend on them).
"""

from enum import Enum as PyEnum


# ──────────────────────────────────────────────────────────────
# Drama cache
# ──────────────────────────────────────────────────────────────
class CacheStatus(str, PyEnum):
    """How a drama detail response was produced."""
    CACHE_HIT = "cache-hit"
    STALE_REFRESHED = "stale-refreshed"
    MISS_SAVED = "miss-saved"
    CACHE_AFTER_ERROR = "cache-after-error"
    UPSTREAM_DIRECT = "upstream-direct"


class UpsertPath(str, PyEnum):
    """Which tier of the title write path produced the row id."""
    RPC = "rpc"
    TABLE = "table"
    LOOKUP = "lookup"
    FAILED = "failed"


class ImageType(str, PyEnum):
    BACKDROP = "backdrop"
    POSTER = "poster"
    LOGO = "logo"


class VideoType(str, PyEnum):
    TRAILER = "Trailer"
    TEASER = "Teaser"


__all__ = ["CacheStatus", "UpsertPath", "ImageType", "VideoType"]
