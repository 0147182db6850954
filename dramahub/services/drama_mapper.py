# dramahub/services/drama_mapper.py
from __future__ import annotations

"""Drama entity mapper.

Pure functions between three shapes: upstream (TMDb) JSON documents, the typed
cache records in `dramahub.repositories.records`, and the response models in
`dramahub.schemas.dramas`. No I/O, never raises on malformed fields: bad
fields map to `None` or are dropped. The one hard requirement is a title id
(see `to_cache_row`).
"""

from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from dramahub.repositories.records import (
    CachedDrama,
    CastRow,
    DramaRow,
    ImageRow,
    SeasonRow,
    VideoRow,
)
from dramahub.schemas.dramas import (
    CastEntry,
    DramaDetail,
    DramaSummary,
    ImageEntry,
    ImageGallery,
    SeasonEntry,
    VideoEntry,
    VideoList,
)
from dramahub.schemas.enums import ImageType, VideoType

CAST_LIMIT = 20
VIDEO_LIMIT = 10
IMAGE_LIMIT_PER_TYPE = 20

_VIDEO_TYPES = {VideoType.TRAILER.value, VideoType.TEASER.value}
# upstream gallery key -> stored image type
_GALLERY_KEYS = (
    ("backdrops", ImageType.BACKDROP),
    ("posters", ImageType.POSTER),
    ("logos", ImageType.LOGO),
)


# ─────────────────────────────────────────────────────────────
# Scalars
# ─────────────────────────────────────────────────────────────
def normalize_path(p: Any) -> Optional[str]:
    """`"abc.jpg"` → `"/abc.jpg"`; `None`, non-strings and `""` → `None`."""
    if not isinstance(p, str) or not p:
        return None
    return p if p.startswith("/") else f"/{p}"


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _int_or_none(v: Any) -> Optional[int]:
    return v if _is_int(v) else None


def _float_or_none(v: Any) -> Optional[float]:
    return float(v) if _is_number(v) else None


def _str_or_none(v: Any) -> Optional[str]:
    return v if isinstance(v, str) and v else None


def _parse_date(v: Any) -> Optional[date]:
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    if not isinstance(v, str) or len(v) < 10:
        return None
    try:
        return date.fromisoformat(v[:10])
    except ValueError:
        return None


def _parse_datetime(v: Any) -> Optional[datetime]:
    if isinstance(v, datetime):
        return v
    if not isinstance(v, str) or not v:
        return None
    try:
        return datetime.fromisoformat(v.replace("Z", "+00:00"))
    except ValueError:
        return None


def _list_of(v: Any) -> list:
    return list(v) if isinstance(v, (list, tuple)) else []


def _aspect_ratio(value: Any, width: Optional[int], height: Optional[int]) -> Optional[float]:
    if _is_number(value):
        return round(float(value), 2)
    if width is not None and height:
        return round(width / height, 2)
    return None


# ─────────────────────────────────────────────────────────────
# Upstream → cache records
# ─────────────────────────────────────────────────────────────
def _genre_ids(doc: Mapping[str, Any]) -> List[int]:
    # list endpoints carry `genre_ids`, detail carries `genres: [{id, name}]`
    raw = doc.get("genre_ids")
    if isinstance(raw, list):
        return [g for g in raw if _is_int(g)]
    return [g["id"] for g in _list_of(doc.get("genres")) if isinstance(g, dict) and _is_int(g.get("id"))]


def to_cache_row(doc: Mapping[str, Any], tmdb_id: Optional[int] = None) -> DramaRow:
    """Upstream TV document (detail or list item) → `DramaRow`.

    `tmdb_id` defaults to the document's own `id`; without either a
    `ValueError` is raised.
    """
    if tmdb_id is None:
        tmdb_id = doc.get("id") if isinstance(doc, Mapping) else None
    if not _is_int(tmdb_id):
        raise ValueError(f"TV document has no usable id: {tmdb_id!r}")
    first_air = _parse_date(doc.get("first_air_date"))
    run_times = [r for r in _list_of(doc.get("episode_run_time")) if _is_int(r)]
    return DramaRow(
        tmdb_id=tmdb_id,
        name=_str_or_none(doc.get("name")) or _str_or_none(doc.get("original_name")) or "",
        original_name=_str_or_none(doc.get("original_name")),
        overview=_str_or_none(doc.get("overview")),
        poster_path=normalize_path(doc.get("poster_path")),
        backdrop_path=normalize_path(doc.get("backdrop_path")),
        release_year=first_air.year if first_air else None,
        first_air_date=first_air,
        last_air_date=_parse_date(doc.get("last_air_date")),
        vote_average=_float_or_none(doc.get("vote_average")),
        vote_count=_int_or_none(doc.get("vote_count")),
        popularity=_float_or_none(doc.get("popularity")),
        status=_str_or_none(doc.get("status")),
        genre_ids=_genre_ids(doc),
        origin_country=[c for c in _list_of(doc.get("origin_country")) if isinstance(c, str)],
        episode_run_time=run_times[0] if run_times else None,
        original_language=_str_or_none(doc.get("original_language")),
        homepage=_str_or_none(doc.get("homepage")),
        tagline=_str_or_none(doc.get("tagline")),
        number_of_seasons=_int_or_none(doc.get("number_of_seasons")),
        number_of_episodes=_int_or_none(doc.get("number_of_episodes")),
    )


def to_cast_rows(credits: Optional[Mapping[str, Any]]) -> List[CastRow]:
    people = _list_of((credits or {}).get("cast"))
    rows: List[CastRow] = []
    for person in people:
        if not isinstance(person, dict) or not _is_int(person.get("id")):
            continue
        rows.append(
            CastRow(
                tmdb_person_id=person["id"],
                name=_str_or_none(person.get("name")) or "",
                character=_str_or_none(person.get("character")),
                profile_path=normalize_path(person.get("profile_path")),
                billing_order=len(rows),
            )
        )
        if len(rows) >= CAST_LIMIT:
            break
    return rows


def to_video_rows(videos: Optional[Mapping[str, Any]]) -> List[VideoRow]:
    rows: List[VideoRow] = []
    for v in _list_of((videos or {}).get("results")):
        if not isinstance(v, dict) or v.get("type") not in _VIDEO_TYPES:
            continue
        if not _str_or_none(v.get("key")):
            continue
        rows.append(
            VideoRow(
                tmdb_video_id=str(v.get("id") or ""),
                key=v["key"],
                site=_str_or_none(v.get("site")) or "",
                type=v["type"],
                name=_str_or_none(v.get("name")),
                size=_int_or_none(v.get("size")),
                official=bool(v.get("official", False)),
                published_at=_parse_datetime(v.get("published_at")),
            )
        )
        if len(rows) >= VIDEO_LIMIT:
            break
    return rows


def _image_row(item: Mapping[str, Any], image_type: ImageType) -> Optional[ImageRow]:
    path = normalize_path(item.get("file_path"))
    if path is None:
        return None
    width = _int_or_none(item.get("width"))
    height = _int_or_none(item.get("height"))
    vote_average = item.get("vote_average")
    vote_count = _int_or_none(item.get("vote_count"))
    return ImageRow(
        file_path=path,
        type=image_type.value,
        width=width,
        height=height,
        aspect_ratio=_aspect_ratio(item.get("aspect_ratio"), width, height),
        vote_count=vote_count if vote_count is not None else 0,
        vote_average=round(float(vote_average), 1) if _is_number(vote_average) else None,
        language=_str_or_none(item.get("iso_639_1")),
    )


def to_image_rows(images: Optional[Mapping[str, Any]]) -> List[ImageRow]:
    """Backdrops, posters and logos; capped per type, path-less entries dropped."""
    rows: List[ImageRow] = []
    for key, image_type in _GALLERY_KEYS:
        kept = 0
        for item in _list_of((images or {}).get(key)):
            if kept >= IMAGE_LIMIT_PER_TYPE:
                break
            row = _image_row(item, image_type) if isinstance(item, dict) else None
            if row is not None:
                rows.append(row)
                kept += 1
    return rows


def season_needs_detail(season: Mapping[str, Any]) -> bool:
    """A season without synopsis or episode count is worth one detail fetch."""
    has_overview = isinstance(season.get("overview"), str) and bool(season.get("overview"))
    count = season.get("episode_count")
    has_count = _is_int(count) and count >= 0
    return not (has_overview and has_count)


def merge_season_detail(season: Mapping[str, Any], detail: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Overlay a per-season detail document on a season summary."""
    merged = dict(season)
    if not isinstance(detail, Mapping) or not detail:
        return merged
    for key in ("overview", "air_date", "name", "poster_path", "id"):
        if detail.get(key) is not None:
            merged[key] = detail[key]
    episodes = detail.get("episodes")
    if isinstance(episodes, list):
        merged["episode_count"] = len(episodes)
    return merged


def to_season_rows(seasons: Optional[Iterable[Any]]) -> List[SeasonRow]:
    rows: List[SeasonRow] = []
    for s in _list_of(seasons):
        if not isinstance(s, dict) or not _is_int(s.get("season_number")):
            continue
        count = _int_or_none(s.get("episode_count"))
        if count is None and isinstance(s.get("episodes"), list):
            count = len(s["episodes"])
        rows.append(
            SeasonRow(
                season_number=s["season_number"],
                tmdb_season_id=_int_or_none(s.get("id")),
                name=_str_or_none(s.get("name")),
                overview=_str_or_none(s.get("overview")),
                poster_path=normalize_path(s.get("poster_path")),
                air_date=_parse_date(s.get("air_date")),
                episode_count=count,
            )
        )
    return rows


# ─────────────────────────────────────────────────────────────
# Cache records → response
# ─────────────────────────────────────────────────────────────
def _image_entry(row: ImageRow) -> ImageEntry:
    return ImageEntry(
        file_path=normalize_path(row.file_path),
        width=row.width,
        height=row.height,
        vote_average=row.vote_average if row.vote_average is not None else 0,
        vote_count=row.vote_count or 0,
        iso_639_1=row.language,
        aspect_ratio=_aspect_ratio(row.aspect_ratio, row.width, row.height),
    )


def _gallery(images: Sequence[ImageRow]) -> ImageGallery:
    by_type: Dict[str, List[ImageEntry]] = {t.value: [] for _, t in _GALLERY_KEYS}
    for row in images:
        if row.type in by_type:
            by_type[row.type].append(_image_entry(row))
    return ImageGallery(
        backdrops=by_type[ImageType.BACKDROP.value],
        posters=by_type[ImageType.POSTER.value],
        logos=by_type[ImageType.LOGO.value],
    )


def from_cache_row(
    drama: DramaRow,
    cast: Sequence[CastRow] = (),
    videos: Sequence[VideoRow] = (),
    images: Sequence[ImageRow] = (),
    seasons: Sequence[SeasonRow] = (),
) -> DramaDetail:
    """Rebuild the nested detail response from flat cache rows."""
    return DramaDetail(
        id=drama.tmdb_id,
        name=drama.name,
        original_name=drama.original_name,
        overview=drama.overview,
        poster_path=normalize_path(drama.poster_path),
        backdrop_path=normalize_path(drama.backdrop_path),
        first_air_date=drama.first_air_date,
        last_air_date=drama.last_air_date,
        vote_average=drama.vote_average,
        vote_count=drama.vote_count,
        popularity=drama.popularity,
        genre_ids=list(drama.genre_ids or []),
        origin_country=list(drama.origin_country or []),
        number_of_episodes=drama.number_of_episodes,
        number_of_seasons=drama.number_of_seasons,
        status=drama.status,
        episode_run_time=[drama.episode_run_time] if drama.episode_run_time else [],
        original_language=drama.original_language,
        homepage=drama.homepage,
        tagline=drama.tagline,
        cast=[
            CastEntry(
                id=c.tmdb_person_id,
                name=c.name,
                character=c.character,
                profile_path=normalize_path(c.profile_path),
                order=c.billing_order,
            )
            for c in cast
        ],
        videos=VideoList(
            results=[
                VideoEntry(
                    id=v.tmdb_video_id or None,
                    key=v.key or None,
                    site=v.site or None,
                    type=v.type or None,
                    name=v.name,
                    size=v.size,
                    official=bool(v.official),
                    published_at=v.published_at,
                )
                for v in videos
            ]
        ),
        images=_gallery(images),
        seasons=[
            SeasonEntry(
                id=s.tmdb_season_id,
                season_number=s.season_number,
                name=s.name,
                overview=s.overview,
                poster_path=normalize_path(s.poster_path),
                air_date=s.air_date,
                episode_count=s.episode_count,
            )
            for s in seasons
        ],
    )


def from_cached(cached: CachedDrama) -> DramaDetail:
    return from_cache_row(cached.drama, cached.cast, cached.videos, cached.images, cached.seasons)


def from_upstream(
    detail: Mapping[str, Any],
    credits: Optional[Mapping[str, Any]] = None,
    videos: Optional[Mapping[str, Any]] = None,
    images: Optional[Mapping[str, Any]] = None,
    tmdb_id: Optional[int] = None,
) -> DramaDetail:
    """Same response shape, straight from live documents (missing parts → empty)."""
    response = from_cache_row(
        to_cache_row(detail, tmdb_id),
        to_cast_rows(credits),
        to_video_rows(videos),
        to_image_rows(images),
        to_season_rows(detail.get("seasons")),
    )
    run_times = [r for r in _list_of(detail.get("episode_run_time")) if _is_int(r)]
    return response.model_copy(update={"episode_run_time": run_times})


# ─────────────────────────────────────────────────────────────
# List items
# ─────────────────────────────────────────────────────────────
def to_summary(doc: Mapping[str, Any]) -> DramaSummary:
    """Upstream list item → `DramaSummary`."""
    return summary_from_row(to_cache_row(doc))


def summary_from_row(row: DramaRow) -> DramaSummary:
    return DramaSummary(
        id=row.tmdb_id,
        name=row.name or None,
        original_name=row.original_name,
        overview=row.overview,
        poster_path=normalize_path(row.poster_path),
        backdrop_path=normalize_path(row.backdrop_path),
        first_air_date=row.first_air_date,
        vote_average=row.vote_average,
        vote_count=row.vote_count,
        popularity=row.popularity,
        genre_ids=list(row.genre_ids or []),
        origin_country=list(row.origin_country or []),
    )


__all__ = [
    "CAST_LIMIT",
    "VIDEO_LIMIT",
    "IMAGE_LIMIT_PER_TYPE",
    "normalize_path",
    "to_cache_row",
    "to_cast_rows",
    "to_video_rows",
    "to_image_rows",
    "to_season_rows",
    "season_needs_detail",
    "merge_season_detail",
    "from_cache_row",
    "from_cached",
    "from_upstream",
    "to_summary",
    "summary_from_row",
]
