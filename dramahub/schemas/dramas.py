# dramahub/schemas/dramas.py
from __future__ import annotations

"""Response models for the drama endpoints.

Field names follow the media catalog's TV shape so clients can consume cached
and live responses interchangeably.
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from dramahub.schemas.enums import CacheStatus


class CastEntry(BaseModel):
    id: int
    name: str
    character: Optional[str] = None
    profile_path: Optional[str] = None
    order: Optional[int] = None


class VideoEntry(BaseModel):
    id: Optional[str] = None
    key: Optional[str] = None
    site: Optional[str] = None
    type: Optional[str] = None
    name: Optional[str] = None
    size: Optional[int] = None
    official: bool = False
    published_at: Optional[datetime] = None


class VideoList(BaseModel):
    results: List[VideoEntry] = []


class ImageEntry(BaseModel):
    file_path: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    vote_average: float = 0
    vote_count: int = 0
    iso_639_1: Optional[str] = None
    aspect_ratio: Optional[float] = None


class ImageGallery(BaseModel):
    backdrops: List[ImageEntry] = []
    posters: List[ImageEntry] = []
    logos: List[ImageEntry] = []

    @property
    def is_empty(self) -> bool:
        return not (self.backdrops or self.posters or self.logos)


class SeasonEntry(BaseModel):
    id: Optional[int] = None
    season_number: Optional[int] = None
    name: Optional[str] = None
    overview: Optional[str] = None
    poster_path: Optional[str] = None
    air_date: Optional[date] = None
    episode_count: Optional[int] = None


class CacheInfo(BaseModel):
    status: CacheStatus
    drama_id: Optional[int] = None
    last_update: Optional[datetime] = None


class DramaSummary(BaseModel):
    id: int
    name: Optional[str] = None
    original_name: Optional[str] = None
    overview: Optional[str] = None
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    first_air_date: Optional[date] = None
    vote_average: Optional[float] = None
    vote_count: Optional[int] = None
    popularity: Optional[float] = None
    genre_ids: List[int] = []
    origin_country: List[str] = []


class DramaDetail(DramaSummary):
    """Full drama detail; `_cache` tells how the response was produced."""

    model_config = ConfigDict(populate_by_name=True)

    last_air_date: Optional[date] = None
    number_of_episodes: Optional[int] = None
    number_of_seasons: Optional[int] = None
    status: Optional[str] = None
    episode_run_time: List[int] = []
    original_language: Optional[str] = None
    homepage: Optional[str] = None
    tagline: Optional[str] = None
    cast: List[CastEntry] = []
    videos: VideoList = Field(default_factory=VideoList)
    images: ImageGallery = Field(default_factory=ImageGallery)
    seasons: List[SeasonEntry] = []
    cache: Optional[CacheInfo] = Field(default=None, alias="_cache")


class DramaPage(BaseModel):
    page: int
    results: List[DramaSummary]
    total_pages: int
    total_results: int


class TrendingDramas(BaseModel):
    results: List[DramaSummary]


class WatchProvider(BaseModel):
    model_config = ConfigDict(extra="allow")

    provider_id: int
    provider_name: Optional[str] = None
    logo_path: Optional[str] = None
    display_priority: Optional[int] = None


class WatchProviders(BaseModel):
    country: Optional[str] = None
    flatrate: List[WatchProvider] = []
    rent: List[WatchProvider] = []
    buy: List[WatchProvider] = []
    link: Optional[str] = None


class SyncResult(BaseModel):
    message: str
    updated: int
    failed: int


class CleanupResult(BaseModel):
    message: str
    deleted: int
