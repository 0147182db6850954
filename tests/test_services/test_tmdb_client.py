# tests/test_services/test_tmdb_client.py

import httpx
import pytest

from dramahub.core.config import UpstreamConfig
from dramahub.services.tmdb_client import (
    TMDbClient,
    UpstreamError,
    UpstreamHTTPError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
    resolve_language,
)

pytestmark = pytest.mark.anyio


# ─────────────────────────────────────────────────────────────
# Fakes & helpers
# ─────────────────────────────────────────────────────────────

class Upstream:
    """MockTransport handler that replays a scripted list of outcomes."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, type) and issubclass(outcome, Exception):
            raise outcome("scripted failure", request=request)
        status, body = outcome
        return httpx.Response(status, json=body)


class Sleeps:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def _client(handler, *, api_key="v3key", max_retries=2):
    config = UpstreamConfig(
        api_key=api_key,
        base_url="https://tmdb.test/3",
        primary_language="pt-BR",
        timeout_base_seconds=8,
        timeout_step_seconds=3,
        max_retries=max_retries,
        retry_backoff_seconds=1,
    )
    sleeps = Sleeps()
    return TMDbClient(config, transport=httpx.MockTransport(handler), sleep=sleeps), sleeps


# ─────────────────────────────────────────────────────────────
# Tests
# ─────────────────────────────────────────────────────────────

async def test_v3_key_goes_in_query_with_primary_language():
    upstream = Upstream((200, {"id": 1}))
    client, _ = _client(upstream)

    assert await client.get_detail(1) == {"id": 1}

    req = upstream.requests[0]
    assert req.url.path == "/3/tv/1"
    assert req.url.params["api_key"] == "v3key"
    assert req.url.params["language"] == "pt-BR"
    assert "authorization" not in req.headers
    await client.aclose()


async def test_jwt_token_goes_in_bearer_header():
    upstream = Upstream((200, {}))
    client, _ = _client(upstream, api_key="eyJhbGciOi.token")

    await client.get_credits(1, "en-US")

    req = upstream.requests[0]
    assert req.headers["authorization"] == "Bearer eyJhbGciOi.token"
    assert "api_key" not in req.url.params
    assert req.url.params["language"] == "en-US"
    await client.aclose()


async def test_timeout_is_retried_with_growing_timeout_and_same_language():
    upstream = Upstream(httpx.ReadTimeout, httpx.ReadTimeout, (200, {"ok": True}))
    client, sleeps = _client(upstream)

    assert await client.get_detail(5, "ko-KR") == {"ok": True}

    assert len(upstream.requests) == 3
    assert [r.extensions["timeout"]["read"] for r in upstream.requests] == [8, 11, 14]
    assert {r.url.params["language"] for r in upstream.requests} == {"ko-KR"}
    assert sleeps.delays == [1, 2]
    await client.aclose()


async def test_exhausted_timeouts_raise_timeout_error():
    upstream = Upstream(httpx.ConnectTimeout)
    client, sleeps = _client(upstream, max_retries=2)

    with pytest.raises(UpstreamTimeoutError):
        await client.get_detail(5)

    assert len(upstream.requests) == 3
    assert len(sleeps.delays) == 2
    await client.aclose()


async def test_network_errors_raise_unavailable_after_retries():
    upstream = Upstream(httpx.ConnectError)
    client, _ = _client(upstream, max_retries=1)

    with pytest.raises(UpstreamUnavailableError) as ei:
        await client.get_videos(5)

    assert not isinstance(ei.value, UpstreamTimeoutError)
    assert len(upstream.requests) == 2
    await client.aclose()


async def test_http_error_is_not_retried():
    upstream = Upstream((404, {"status_message": "not found"}))
    client, sleeps = _client(upstream)

    with pytest.raises(UpstreamHTTPError) as ei:
        await client.get_detail(404404)

    assert ei.value.status_code == 404
    assert "404" in str(ei.value)
    assert len(upstream.requests) == 1
    assert sleeps.delays == []
    await client.aclose()


async def test_missing_credential_fails_without_io():
    upstream = Upstream((200, {}))
    client, _ = _client(upstream, api_key="")

    with pytest.raises(UpstreamUnavailableError):
        await client.get_detail(1)
    assert upstream.requests == []
    await client.aclose()


async def test_images_request_includes_untagged_and_english_artwork():
    upstream = Upstream((200, {"backdrops": []}))
    client, _ = _client(upstream)

    await client.get_images(1)

    params = upstream.requests[0].url.params
    assert params["include_image_language"] == "pt,en,null"
    assert params["language"] == "pt-BR"
    await client.aclose()


async def test_listing_endpoints_pass_paging_params():
    upstream = Upstream((200, {"results": []}))
    client, _ = _client(upstream)

    await client.search("crash landing", 2)
    await client.get_popular(3)
    await client.get_trending()
    await client.get_season(1, 2)
    await client.get_watch_providers(1)

    paths = [r.url.path for r in upstream.requests]
    assert paths == ["/3/search/tv", "/3/tv/popular", "/3/trending/tv/day", "/3/tv/1/season/2", "/3/tv/1/watch/providers"]
    assert upstream.requests[0].url.params["query"] == "crash landing"
    assert upstream.requests[0].url.params["page"] == "2"
    assert upstream.requests[1].url.params["page"] == "3"
    await client.aclose()


async def test_non_object_document_is_an_upstream_error():
    upstream = Upstream((200, [{"id": 1}]))
    client, sleeps = _client(upstream)

    with pytest.raises(UpstreamError, match="non-object"):
        await client.get_season(1, 1)

    assert len(upstream.requests) == 1
    assert sleeps.delays == []
    await client.aclose()


async def test_invalid_json_is_an_upstream_error():
    client, _ = _client(lambda request: httpx.Response(200, content=b"<html>"))

    with pytest.raises(UpstreamError, match="invalid JSON"):
        await client.get_detail(1)
    await client.aclose()


def test_resolve_language_maps_short_codes():
    assert resolve_language("en") == "en-US"
    assert resolve_language("ko") == "ko-KR"
    assert resolve_language(None) == "pt-BR"
    assert resolve_language("  ", "en-US") == "en-US"
    assert resolve_language("de-DE") == "de-DE"
    assert resolve_language("pt-BR") == "pt-BR"
