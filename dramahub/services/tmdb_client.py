# dramahub/services/tmdb_client.py
from __future__ import annotations

"""Async client for the TMDb v3 REST API.

Retry policy
------------
- Each attempt gets its own timeout: `timeout_base_seconds + timeout_step_seconds * attempt`
  (8s, 11s, 14s by default).
- Timeouts and network failures are retried up to `max_retries` more times,
  sleeping `retry_backoff_seconds * (attempt + 1)` in between. The retried
  request is identical (same path, language and params).
- A non-2xx response raises `UpstreamHTTPError` at once; it is never retried.

Authentication
--------------
A credential that looks like a JWT (v4 read-access token, starts with `eyJ`)
is sent as `Authorization: Bearer`; anything else is a v3 key sent as the
`api_key` query parameter.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from dramahub.core.config import UpstreamConfig

logger = logging.getLogger(__name__)

# Short i18n codes → TMDb region codes
TMDB_LANGUAGE_MAP: Dict[str, str] = {
    "en": "en-US",
    "pt": "pt-BR",
    "es": "es-ES",
    "ko": "ko-KR",
    "ja": "ja-JP",
    "zh": "zh-CN",
    "fr": "fr-FR",
}

_JWT_PREFIX = "eyJ"


# ─────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────
class UpstreamError(Exception):
    """Base class for failures talking to the media catalog."""


class UpstreamHTTPError(UpstreamError):
    """The catalog answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str = "") -> None:
        super().__init__(f"TMDb API error: {status_code} {body[:200]}".rstrip())
        self.status_code = status_code
        self.body = body


class UpstreamUnavailableError(UpstreamError):
    """The catalog could not be reached (network failure after retries)."""


class UpstreamTimeoutError(UpstreamUnavailableError):
    """Every attempt timed out."""


def resolve_language(tag: Optional[str], primary: str = "pt-BR") -> str:
    """`"en"` → `"en-US"`; empty → `primary`; unknown tags pass through unchanged."""
    if not tag or not tag.strip():
        return primary
    tag = tag.strip()
    return TMDB_LANGUAGE_MAP.get(tag, tag)


class TMDbClient:
    """Thin async wrapper over `httpx.AsyncClient` with the retry policy above.

    One instance is created at startup and shared; call `aclose()` on shutdown.
    Tests pass an `httpx.MockTransport` and a no-op `sleep`.
    """

    def __init__(
        self,
        config: UpstreamConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            transport=transport,
            headers=self._headers(),
        )

    @property
    def primary_language(self) -> str:
        return self._config.primary_language

    def _uses_bearer(self) -> bool:
        return self._config.api_key.startswith(_JWT_PREFIX)

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._config.api_key and self._uses_bearer():
            headers["Authorization"] = f"Bearer {self._config.api_key}"
        return headers

    def _timeout_for(self, attempt: int) -> float:
        return self._config.timeout_base_seconds + self._config.timeout_step_seconds * attempt

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── core ────────────────────────────────────────────────────────────────
    async def fetch(
        self,
        path: str,
        language: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        attempt: int = 0,
    ) -> Dict[str, Any]:
        """GET `path` and return the decoded JSON document.

        Raises:
            UpstreamHTTPError: non-2xx response.
            UpstreamTimeoutError: every attempt timed out.
            UpstreamUnavailableError: network failure after retries, or no credential.
        """
        if not self._config.api_key:
            raise UpstreamUnavailableError("TMDb credential is not configured")

        query: Dict[str, Any] = dict(params or {})
        query.setdefault("language", language or self._config.primary_language)
        if not self._uses_bearer():
            query.setdefault("api_key", self._config.api_key)

        max_retries = self._config.max_retries
        while True:
            timeout = self._timeout_for(attempt)
            try:
                response = await self._client.get(path, params=query, timeout=timeout)
            except (httpx.TimeoutException, httpx.NetworkError) as exc:
                is_timeout = isinstance(exc, httpx.TimeoutException)
                logger.warning(
                    "TMDb %s on %s (attempt %s, timeout %.0fs)",
                    "timeout" if is_timeout else "network error", path, attempt + 1, timeout,
                )
                if attempt >= max_retries:
                    logger.error("TMDb max retries exceeded for %s", path)
                    if is_timeout:
                        raise UpstreamTimeoutError(
                            f"Request timeout after {attempt + 1} attempts: {path}"
                        ) from exc
                    raise UpstreamUnavailableError(f"TMDb unreachable: {path}") from exc
                await self._sleep(self._config.retry_backoff_seconds * (attempt + 1))
                attempt += 1
                continue

            if not response.is_success:
                raise UpstreamHTTPError(response.status_code, response.text)
            try:
                data = response.json()
            except ValueError as exc:
                raise UpstreamError(f"TMDb returned invalid JSON for {path}") from exc
            if not isinstance(data, dict):
                raise UpstreamError(f"TMDb returned a non-object document for {path}")
            return data

    # ── endpoints ───────────────────────────────────────────────────────────
    async def get_detail(self, tmdb_id: int, language: Optional[str] = None) -> Dict[str, Any]:
        return await self.fetch(f"/tv/{tmdb_id}", language)

    async def get_credits(self, tmdb_id: int, language: Optional[str] = None) -> Dict[str, Any]:
        return await self.fetch(f"/tv/{tmdb_id}/credits", language)

    async def get_videos(self, tmdb_id: int, language: Optional[str] = None) -> Dict[str, Any]:
        return await self.fetch(f"/tv/{tmdb_id}/videos", language)

    async def get_images(self, tmdb_id: int, language: Optional[str] = None) -> Dict[str, Any]:
        # the language filter would otherwise hide untagged and English artwork
        lang = language or self._config.primary_language
        include = ",".join(dict.fromkeys([lang.split("-")[0], "en", "null"]))
        return await self.fetch(f"/tv/{tmdb_id}/images", lang, {"include_image_language": include})

    async def get_season(self, tmdb_id: int, season_number: int, language: Optional[str] = None) -> Dict[str, Any]:
        return await self.fetch(f"/tv/{tmdb_id}/season/{season_number}", language)

    async def search(self, query: str, page: int = 1, language: Optional[str] = None) -> Dict[str, Any]:
        return await self.fetch("/search/tv", language, {"query": query, "page": page})

    async def get_popular(self, page: int = 1, language: Optional[str] = None) -> Dict[str, Any]:
        return await self.fetch("/tv/popular", language, {"page": page})

    async def get_trending(self, window: str = "day", language: Optional[str] = None) -> Dict[str, Any]:
        return await self.fetch(f"/trending/tv/{window}", language)

    async def get_watch_providers(self, tmdb_id: int) -> Dict[str, Any]:
        return await self.fetch(f"/tv/{tmdb_id}/watch/providers")


__all__ = [
    "TMDbClient",
    "UpstreamError",
    "UpstreamHTTPError",
    "UpstreamUnavailableError",
    "UpstreamTimeoutError",
    "resolve_language",
    "TMDB_LANGUAGE_MAP",
]
