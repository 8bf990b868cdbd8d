"""Amazon product search through the Oxylabs realtime scraper API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import Settings
from ..http import PooledHttpMixin
from .gateway import ToolError, ToolSpec

logger = logging.getLogger(__name__)

RESULT_LIMIT = 10

PRODUCT_SEARCH_SPEC = ToolSpec(
    name="search_products",
    description=(
        "Search Amazon for products matching a query. Use this when the user "
        "wants to shop for or compare products."
    ),
    parameters={
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "Product search terms.",
            },
        },
        "required": ["query"],
    },
    loading_text="🛒 Searching for products...",
    error_text="Sorry, I couldn't search for products right now. Please try again later.",
    continuation_template="Generate UI components with these products: {results}",
)


def extract_organic(payload: Any) -> list[Any]:
    """Return the organic results of the first page, raising when absent."""

    if not isinstance(payload, dict):
        raise ToolError("Unexpected response from product search")
    if payload.get("error") or payload.get("message"):
        raise ToolError(str(payload.get("error") or payload.get("message")))
    try:
        organic = payload["results"][0]["content"]["results"]["organic"]
    except (KeyError, IndexError, TypeError):
        raise ToolError("No organic results found") from None
    if not isinstance(organic, list):
        raise ToolError("No organic results found")
    return organic[:RESULT_LIMIT]


class ProductSearchTool(PooledHttpMixin):
    spec = PRODUCT_SEARCH_SPEC

    def __init__(
        self,
        settings: Settings,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._http_client = http_client
        self._timeout = float(settings.request_timeout)

    def _build_body(self, query: str) -> dict[str, Any]:
        return {
            "source": "amazon_search",
            "query": query,
            "geo_location": self._settings.oxylabs_geo_location,
            "parse": True,
            "context": [
                {"key": "priority", "value": "HIGH"},
                {"key": "type", "value": "SEARCH"},
            ],
            "start_page": 1,
            "pages": 1,
            "limit": RESULT_LIMIT,
        }

    async def run(self, arguments: dict[str, Any]) -> dict[str, Any]:
        query = arguments.get("query")
        if not isinstance(query, str) or not query.strip():
            raise ToolError("Search query is required")

        username = self._settings.oxylabs_username
        password = self._settings.oxylabs_password
        if not username or password is None:
            raise ToolError("OXYLABS_USERNAME / OXYLABS_PASSWORD not configured")

        logger.info("Searching products for '%s'", query)
        client = await self._get_http_client()
        try:
            response = await client.post(
                str(self._settings.oxylabs_base_url),
                json=self._build_body(query),
                auth=httpx.BasicAuth(username, password.get_secret_value()),
            )
        except httpx.HTTPError as exc:
            raise ToolError(f"Product search failed: {exc}") from exc

        if not response.content:
            raise ToolError("Empty response from API")
        try:
            payload = response.json()
        except ValueError as exc:
            raise ToolError("Product search returned invalid JSON") from exc
        if response.status_code >= 400 and not (
            isinstance(payload, dict) and (payload.get("error") or payload.get("message"))
        ):
            raise ToolError(f"Product search failed with status {response.status_code}")

        return {"results": extract_organic(payload)}


__all__ = ["PRODUCT_SEARCH_SPEC", "ProductSearchTool", "extract_organic"]
