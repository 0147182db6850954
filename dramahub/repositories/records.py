# dramahub/repositories/records.py
from __future__ import annotations

"""Typed records crossing the Cache Store boundary.

The store never hands ORM instances or raw dicts to the orchestrator: rows are
read into these dataclasses, and the Entity Mapper produces them for writes.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional

from dramahub.schemas.enums import UpsertPath


@dataclass
class DramaRow:
    tmdb_id: int
    name: str
    original_name: Optional[str] = None
    overview: Optional[str] = None
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    release_year: Optional[int] = None
    first_air_date: Optional[date] = None
    last_air_date: Optional[date] = None
    vote_average: Optional[float] = None
    vote_count: Optional[int] = None
    popularity: Optional[float] = None
    status: Optional[str] = None
    genre_ids: List[int] = field(default_factory=list)
    origin_country: List[str] = field(default_factory=list)
    episode_run_time: Optional[int] = None
    original_language: Optional[str] = None
    homepage: Optional[str] = None
    tagline: Optional[str] = None
    number_of_seasons: Optional[int] = None
    number_of_episodes: Optional[int] = None
    # Store-assigned; None on rows produced by the mapper
    id: Optional[int] = None
    last_update: Optional[datetime] = None

    # Columns written by both upsert tiers
    WRITABLE = (
        "name", "original_name", "overview", "poster_path", "backdrop_path",
        "release_year", "first_air_date", "last_air_date", "vote_average",
        "vote_count", "popularity", "status", "genre_ids", "origin_country",
        "episode_run_time", "original_language", "homepage", "tagline",
        "number_of_seasons", "number_of_episodes",
    )

    def writable_values(self) -> dict:
        values = {name: getattr(self, name) for name in self.WRITABLE}
        values["genre_ids"] = list(self.genre_ids or [])
        values["origin_country"] = list(self.origin_country or [])
        return values


@dataclass
class CastRow:
    tmdb_person_id: int
    name: str
    character: Optional[str] = None
    profile_path: Optional[str] = None
    billing_order: Optional[int] = None
    kind: str = "cast"


@dataclass
class VideoRow:
    tmdb_video_id: str
    key: str
    site: str
    type: str
    name: Optional[str] = None
    size: Optional[int] = None
    official: bool = False
    published_at: Optional[datetime] = None


@dataclass
class ImageRow:
    file_path: str
    type: str
    width: Optional[int] = None
    height: Optional[int] = None
    aspect_ratio: Optional[float] = None
    vote_count: int = 0
    vote_average: Optional[float] = None
    language: Optional[str] = None


@dataclass
class SeasonRow:
    season_number: int
    tmdb_season_id: Optional[int] = None
    name: Optional[str] = None
    overview: Optional[str] = None
    poster_path: Optional[str] = None
    air_date: Optional[date] = None
    episode_count: Optional[int] = None


@dataclass
class CachedDrama:
    """A drama row with every owned sub-entity set, as read in one pass."""
    drama: DramaRow
    cast: List[CastRow] = field(default_factory=list)
    videos: List[VideoRow] = field(default_factory=list)
    images: List[ImageRow] = field(default_factory=list)
    seasons: List[SeasonRow] = field(default_factory=list)

    @property
    def drama_id(self) -> Optional[int]:
        return self.drama.id


@dataclass(frozen=True)
class UpsertOutcome:
    """Tagged result of the three-tier title write path."""
    path: UpsertPath
    drama_id: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.path is not UpsertPath.FAILED and self.drama_id is not None

    @classmethod
    def failed(cls) -> "UpsertOutcome":
        return cls(UpsertPath.FAILED, None)


__all__ = [
    "DramaRow",
    "CastRow",
    "VideoRow",
    "ImageRow",
    "SeasonRow",
    "CachedDrama",
    "UpsertOutcome",
]
