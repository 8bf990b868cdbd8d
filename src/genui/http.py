"""Shared pooled HTTP clients for upstream services."""

from __future__ import annotations

import asyncio
import logging

import httpx

logger = logging.getLogger(__name__)

_client_lock: asyncio.Lock = asyncio.Lock()
_client_pool: dict[float, httpx.AsyncClient] = {}


async def get_http_client(timeout: float) -> httpx.AsyncClient:
    """Return the pooled client for ``timeout``, creating it on first use."""

    key = float(timeout)
    client = _client_pool.get(key)
    if client is not None:
        return client

    async with _client_lock:
        client = _client_pool.get(key)
        if client is None:
            client = httpx.AsyncClient(
                timeout=httpx.Timeout(key, connect=10.0),
                limits=httpx.Limits(
                    max_connections=50,
                    max_keepalive_connections=20,
                ),
                http2=True,
            )
            _client_pool[key] = client
    return client


async def aclose_http_clients() -> None:
    async with _client_lock:
        clients = list(_client_pool.values())
        _client_pool.clear()
    for client in clients:
        try:
            await client.aclose()
        except Exception as exc:  # pragma: no cover - best effort cleanup
            logger.debug("Failed to close pooled HTTP client: %s", exc)


class PooledHttpMixin:
    """Resolve an injected client or fall back to the shared pool."""

    _http_client: httpx.AsyncClient | None
    _timeout: float

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client
        return await get_http_client(self._timeout)


__all__ = ["PooledHttpMixin", "aclose_http_clients", "get_http_client"]
