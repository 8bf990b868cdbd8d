"""Yelp Fusion business search normalized into `list-item` components.

Results are cached per normalized query and location because the lookup is
read-only and the upstream call is slow.

API Docs:
- https://docs.developer.yelp.com/reference/v3_business_search
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import Settings
from ..http import PooledHttpMixin
from .cache import TTLCache
from .gateway import ToolError, ToolSpec

logger = logging.getLogger(__name__)

RESULT_LIMIT = 6
LISTING_ID_START = 1000

BUSINESS_SEARCH_SPEC = ToolSpec(
    name="search_businesses",
    description=(
        "Search for local businesses such as restaurants, shops or services. "
        "Use this when the user asks for places near a location."
    ),
    parameters={
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "What to search for, e.g. 'coffee' or 'sushi'.",
            },
            "location": {
                "type": "string",
                "description": "City or address to search near.",
            },
        },
        "required": ["query"],
    },
    loading_text="🔍 Searching for local businesses...",
    error_text="Sorry, I couldn't search for businesses right now. Please try again later.",
    continuation_template="Generate UI components with these businesses: {results}",
)


def cache_key(query: str, location: str) -> str:
    return f"{str(query).strip().lower()}::{str(location).strip().lower()}"


def normalize_business(business: dict[str, Any], index: int) -> dict[str, Any]:
    """Shape one Yelp business as a renderable list item."""

    location = business.get("location") or {}
    lines = [
        str(business.get("name") or "Unknown business"),
        str(location.get("address1") or ""),
        f"Rating: {business.get('rating', 'n/a')}",
    ]
    return {
        "type": "list-item",
        "props": {
            "ID": str(LISTING_ID_START + index),
            "content": "\n".join(lines),
            "imageSrc": business.get("image_url") or "",
            "columns": "4",
        },
    }


class BusinessSearchTool(PooledHttpMixin):
    spec = BUSINESS_SEARCH_SPEC

    def __init__(
        self,
        settings: Settings,
        *,
        http_client: httpx.AsyncClient | None = None,
        cache: TTLCache[dict[str, Any]] | None = None,
    ) -> None:
        self._settings = settings
        self._http_client = http_client
        self._timeout = float(settings.request_timeout)
        self._cache: TTLCache[dict[str, Any]] = cache or TTLCache(
            settings.business_cache_ttl_seconds,
            settings.business_cache_max_entries,
        )

    async def run(self, arguments: dict[str, Any]) -> dict[str, Any]:
        query = arguments.get("query")
        if not isinstance(query, str) or not query.strip():
            raise ToolError("A search query is required")
        location = arguments.get("location")
        if not isinstance(location, str) or not location.strip():
            location = self._settings.yelp_default_location
        return await self.search(query, location)

    async def search(self, query: str, location: str) -> dict[str, Any]:
        key = cache_key(query, location)
        cached = self._cache.get(key)
        if cached is not None:
            logger.info("Business search cache hit for '%s' in '%s'", query, location)
            return cached

        api_key = self._settings.yelp_api_key
        if api_key is None:
            raise ToolError("YELP_API_KEY not configured")

        logger.info("Searching businesses for '%s' in '%s'", query, location)
        client = await self._get_http_client()
        try:
            response = await client.get(
                str(self._settings.yelp_base_url),
                headers={"Authorization": f"Bearer {api_key.get_secret_value()}"},
                params={
                    "term": query,
                    "location": location,
                    "limit": RESULT_LIMIT,
                    "sort_by": "rating",
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ToolError(f"Business search failed: {exc}") from exc

        businesses = response.json().get("businesses") or []
        result = {
            "results": [
                normalize_business(business, index)
                for index, business in enumerate(businesses)
                if isinstance(business, dict)
            ]
        }
        self._cache.set(key, result)
        return result


__all__ = [
    "BUSINESS_SEARCH_SPEC",
    "BusinessSearchTool",
    "cache_key",
    "normalize_business",
]
