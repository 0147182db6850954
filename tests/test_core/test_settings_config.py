# tests/test_core/test_settings_config.py

from pydantic import SecretStr

from dramahub.core.config import CacheConfig, Settings, UpstreamConfig


def _settings(**env) -> Settings:
    return Settings(_env_file=None, **env)


def test_structs_are_built_from_settings():
    s = _settings(
        TMDB_API_KEY=SecretStr("k"),
        TMDB_PRIMARY_LANGUAGE="es-ES",
        CACHE_MAX_AGE_DAYS=3,
        CACHE_POPULATE_TOP_N=5,
        PROVIDER_PRIORITY_COUNTRIES="mx, es ,",
    )

    upstream = s.upstream_config()
    cache = s.cache_config()

    assert isinstance(upstream, UpstreamConfig) and isinstance(cache, CacheConfig)
    assert upstream.api_key == "k"
    assert upstream.primary_language == cache.primary_language == "es-ES"
    assert cache.max_age_days == 3
    assert cache.populate_top_n == 5
    assert cache.provider_priority_countries == ("MX", "ES")


def test_defaults_match_cache_policy():
    cache = _settings().cache_config()

    assert cache.max_age_days == 7
    assert cache.retention_days == 90
    assert cache.populate_top_n == 10
    assert cache.provider_priority_countries == ("BR", "US")


def test_tmdb_base_url_is_normalized():
    s = _settings(TMDB_BASE_URL="api.themoviedb.org/3/")
    assert s.TMDB_BASE_URL == "https://api.themoviedb.org/3"


def test_database_urls():
    s = _settings(POSTGRES_USER="u", POSTGRES_PASSWORD=SecretStr("p"), POSTGRES_SERVER="db", POSTGRES_DB="x")
    assert s.ASYNC_DATABASE_URL == "postgresql+asyncpg://u:p@db:5432/x"

    s = _settings(SQLALCHEMY_DATABASE_URI="postgresql://a:b@h/y")
    assert s.ASYNC_DATABASE_URL == "postgresql+asyncpg://a:b@h/y"
