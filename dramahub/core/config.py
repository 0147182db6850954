# dramahub/core/config.py
from __future__ import annotations

"""
# DramaHub — Centralized Configuration (Pydantic v2)

Single `settings` object with strongly-typed, environment-driven config.

## Goals
- Safe defaults for local/dev; explicit where prod needs secrets.
- CSV → list helpers for country/priority lists.
- Upstream (TMDb) and cache tunables live here, but request-handling code
  never reads them directly: `upstream_config()` / `cache_config()` build the
  small frozen structs that get injected into the client and the cache
  orchestrator at startup.

## Usage
    from dramahub.core.config import settings
"""

import logging
from dataclasses import dataclass, field
from typing import List, Literal, Optional, Tuple

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

log = logging.getLogger(__name__)
load_dotenv()  # harmless in prod; convenient in dev


# ─────────────────────────────────────────────────────────────
# Small helpers
# ─────────────────────────────────────────────────────────────
def _split_csv(v: str | None) -> list[str]:
    """Split a comma-separated string into a trimmed list (empty-safe)."""
    if not v:
        return []
    return [s.strip() for s in str(v).split(",") if s and s.strip()]


def _normalize_url_like(v: str | None, *, require_scheme: bool = True) -> str:
    """Normalize to a string URL without trailing slash."""
    s = (v or "").strip()
    if not s:
        return ""
    if require_scheme and not (s.startswith("http://") or s.startswith("https://")):
        s = "https://" + s
    return s.rstrip("/")


# ─────────────────────────────────────────────────────────────
# Injected runtime structs
# ─────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class UpstreamConfig:
    """Everything the TMDb client needs; built once at startup."""

    api_key: str = ""
    base_url: str = "https://api.themoviedb.org/3"
    primary_language: str = "pt-BR"
    timeout_base_seconds: float = 8.0
    timeout_step_seconds: float = 3.0
    max_retries: int = 2
    retry_backoff_seconds: float = 1.0


@dataclass(frozen=True)
class CacheConfig:
    """Freshness / population policy of the drama cache."""

    primary_language: str = "pt-BR"
    max_age_days: int = 7
    retention_days: int = 90
    populate_top_n: int = 10
    page_size: int = 20
    single_flight: bool = True
    lock_timeout_seconds: int = 60
    lock_wait_seconds: int = 15
    provider_priority_countries: Tuple[str, ...] = field(default=("BR", "US"))


# ─────────────────────────────────────────────────────────────
# Settings
# ─────────────────────────────────────────────────────────────
class Settings(BaseSettings):
    """
    Global application settings sourced from environment.

    Notes:
        - `TMDB_API_KEY` may be either a v4 read-access token (JWT, sent as a
          Bearer header) or a v3 key (sent as `api_key` query param).
        - `SQLALCHEMY_DATABASE_URI` wins over the individual Postgres parts.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # don't crash on unknown keys
    )

    # ── App meta ──────────────────────────────────────────────
    PROJECT_NAME: str = "DramaHub API"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    ENV: Literal["development", "staging", "production"] = "development"
    ENABLE_DOCS: bool = True

    # ── Upstream media catalog (TMDb) ─────────────────────────
    TMDB_API_KEY: SecretStr = SecretStr("")
    TMDB_BASE_URL: str = "https://api.themoviedb.org/3"
    TMDB_PRIMARY_LANGUAGE: str = "pt-BR"
    TMDB_TIMEOUT_BASE_SECONDS: float = Field(8.0, gt=0, le=60)
    TMDB_TIMEOUT_STEP_SECONDS: float = Field(3.0, ge=0, le=60)
    TMDB_MAX_RETRIES: int = Field(2, ge=0, le=5)
    TMDB_RETRY_BACKOFF_SECONDS: float = Field(1.0, ge=0, le=30)

    # ── Drama cache policy ────────────────────────────────────
    CACHE_MAX_AGE_DAYS: int = Field(7, ge=1, le=365)
    CACHE_RETENTION_DAYS: int = Field(90, ge=1, le=3650)
    CACHE_POPULATE_TOP_N: int = Field(10, ge=0, le=20)
    CACHE_PAGE_SIZE: int = Field(20, ge=1, le=100)
    CACHE_SINGLE_FLIGHT: bool = True
    CACHE_LOCK_TIMEOUT_SECONDS: int = Field(60, ge=1, le=600)
    CACHE_LOCK_WAIT_SECONDS: int = Field(15, ge=0, le=120)
    PROVIDER_PRIORITY_COUNTRIES: str = "BR,US"  # CSV

    # ── Redis (single-flight refresh lock) ────────────────────
    REDIS_URL: str = "redis://localhost:6379/0"

    # ── Database (PostgreSQL) ─────────────────────────────────
    SQLALCHEMY_DATABASE_URI: Optional[str] = None
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: SecretStr = SecretStr("postgres")
    POSTGRES_DB: str = "dramahub"

    # ── Admin ops (sync / cleanup) ────────────────────────────
    ADMIN_API_KEY: Optional[SecretStr] = None

    # ── Validators / normalizers ──────────────────────────────
    @field_validator("TMDB_BASE_URL", mode="before")
    @classmethod
    def _normalize_tmdb_base(cls, v) -> str:
        return _normalize_url_like(str(v or "https://api.themoviedb.org/3"))

    @field_validator("PROVIDER_PRIORITY_COUNTRIES", mode="before")
    @classmethod
    def _normalize_countries_csv(cls, v) -> str:
        return ",".join(c.upper() for c in _split_csv(str(v or "")))

    # ── Derived / convenience properties ─────────────────────
    @property
    def DATABASE_URL(self) -> str:
        """Sync DSN."""
        if self.SQLALCHEMY_DATABASE_URI:
            return self.SQLALCHEMY_DATABASE_URI
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD.get_secret_value()}"
            f"@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def ASYNC_DATABASE_URL(self) -> str:
        """Async SQLAlchemy DSN."""
        return self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://", 1)

    @property
    def provider_priority_countries_list(self) -> List[str]:
        return _split_csv(self.PROVIDER_PRIORITY_COUNTRIES)

    def upstream_config(self) -> UpstreamConfig:
        """Frozen struct injected into `TMDbClient`."""
        return UpstreamConfig(
            api_key=self.TMDB_API_KEY.get_secret_value(),
            base_url=self.TMDB_BASE_URL,
            primary_language=self.TMDB_PRIMARY_LANGUAGE,
            timeout_base_seconds=self.TMDB_TIMEOUT_BASE_SECONDS,
            timeout_step_seconds=self.TMDB_TIMEOUT_STEP_SECONDS,
            max_retries=self.TMDB_MAX_RETRIES,
            retry_backoff_seconds=self.TMDB_RETRY_BACKOFF_SECONDS,
        )

    def cache_config(self) -> CacheConfig:
        """Frozen struct injected into the cache orchestrator and catalog service."""
        return CacheConfig(
            primary_language=self.TMDB_PRIMARY_LANGUAGE,
            max_age_days=self.CACHE_MAX_AGE_DAYS,
            retention_days=self.CACHE_RETENTION_DAYS,
            populate_top_n=self.CACHE_POPULATE_TOP_N,
            page_size=self.CACHE_PAGE_SIZE,
            single_flight=self.CACHE_SINGLE_FLIGHT,
            lock_timeout_seconds=self.CACHE_LOCK_TIMEOUT_SECONDS,
            lock_wait_seconds=self.CACHE_LOCK_WAIT_SECONDS,
            provider_priority_countries=tuple(self.provider_priority_countries_list),
        )


# Singleton instance
settings = Settings()

if not settings.TMDB_API_KEY.get_secret_value():
    log.warning("TMDB_API_KEY is not configured; upstream calls will be rejected")
