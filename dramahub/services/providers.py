# dramahub/services/providers.py
from __future__ import annotations

"""Watch-provider merging.

The catalog reports streaming providers per country. Clients want one list per
offer type, so every country is folded into `flatrate` / `rent` / `buy`,
visiting priority countries first. Each `provider_id` is listed once overall:
the first occurrence wins, checking `flatrate`, then `rent`, then `buy` per
country.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from dramahub.schemas.dramas import WatchProvider, WatchProviders
from dramahub.services.tmdb_client import TMDbClient, UpstreamError

logger = logging.getLogger(__name__)

CATEGORIES = ("flatrate", "rent", "buy")
ALL_COUNTRIES = "ALL"


def country_order(countries: Sequence[str], priority: Sequence[str]) -> List[str]:
    """Priority countries (in the given order) first, then the rest alphabetically."""
    present = set(countries)
    head = [c for c in dict.fromkeys(priority) if c in present]
    tail = sorted(c for c in present if c not in set(head))
    return head + tail


def merge_providers(results: Mapping[str, Any], priority: Sequence[str]) -> WatchProviders:
    merged: Dict[str, List[WatchProvider]] = {c: [] for c in CATEGORIES}
    seen: set = set()

    for country in country_order(list(results), priority):
        offers = results.get(country)
        if not isinstance(offers, dict):
            continue
        for category in CATEGORIES:
            for provider in offers.get(category) or []:
                if not isinstance(provider, dict) or not isinstance(provider.get("provider_id"), int):
                    continue
                if provider["provider_id"] in seen:
                    continue
                seen.add(provider["provider_id"])
                merged[category].append(WatchProvider.model_validate(provider))

    link: Optional[str] = None
    for country in priority:
        offers = results.get(country)
        if isinstance(offers, dict) and offers.get("link"):
            link = offers["link"]
            break

    return WatchProviders(country=ALL_COUNTRIES, link=link, **merged)


async def get_streaming_providers(
    client: TMDbClient, tmdb_id: int, priority: Sequence[str]
) -> WatchProviders:
    """Live provider lookup; upstream failure yields an empty result with `country=None`."""
    try:
        data = await client.get_watch_providers(tmdb_id)
    except UpstreamError as exc:
        logger.warning("[providers] lookup failed for tmdb_id=%s: %s", tmdb_id, exc)
        return WatchProviders(country=None)

    results = data.get("results") if isinstance(data, dict) else None
    merged = merge_providers(results if isinstance(results, dict) else {}, priority)
    logger.info(
        "[providers] tmdb_id=%s: %s streaming, %s rent, %s buy (from %s countries)",
        tmdb_id, len(merged.flatrate), len(merged.rent), len(merged.buy), len(results or {}),
    )
    return merged


__all__ = ["merge_providers", "country_order", "get_streaming_providers"]
