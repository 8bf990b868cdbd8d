"""Shared plumbing for streaming model providers."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncGenerator, AsyncIterator, Iterable, Optional, Sequence

import httpx
from fastapi import status

from ..config import Settings
from ..http import PooledHttpMixin
from ..stream.types import ToolInvocation, UpstreamEvent
from ..tools.gateway import ToolSpec

logger = logging.getLogger(__name__)

TOOL_ACKNOWLEDGEMENT = "I'll look that up."


class UpstreamError(Exception):
    """Wrap transport or API failures when communicating with a model provider."""

    def __init__(self, status_code: int, detail: Any):
        super().__init__(str(detail))
        self.status_code = status_code
        self.detail = detail


@dataclass
class ServerSentEvent:
    """Represents a parsed Server-Sent Event."""

    data: str
    event: str = "message"
    event_id: Optional[str] = None


class StreamingProvider(PooledHttpMixin, ABC):
    """Translate a vendor token stream into internal upstream events."""

    name: str = "provider"

    def __init__(
        self,
        settings: Settings,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._http_client = http_client
        self._timeout = float(settings.request_timeout)

    @property
    @abstractmethod
    def configured(self) -> bool:
        """Whether credentials for this provider are available."""

    @abstractmethod
    def stream_events(
        self,
        *,
        model: str,
        system: str,
        messages: Sequence[dict[str, Any]],
        tools: Sequence[ToolSpec] | None = None,
        allow_tool_calls: bool = True,
    ) -> AsyncIterator[UpstreamEvent]:
        """Open a generation and yield content and tool lifecycle events."""

    @abstractmethod
    def build_continuation(
        self,
        messages: Sequence[dict[str, Any]],
        invocation: ToolInvocation,
        arguments: dict[str, Any],
        result_text: str,
    ) -> list[dict[str, Any]]:
        """Return the history for the follow-up generation after a tool ran."""

    async def _stream_sse(
        self,
        url: str,
        *,
        headers: dict[str, str],
        payload: dict[str, Any],
    ) -> AsyncGenerator[ServerSentEvent, None]:
        """POST ``payload`` and yield the parsed server-sent events."""

        if not self.configured:
            raise UpstreamError(
                status.HTTP_503_SERVICE_UNAVAILABLE,
                f"{self.name} provider is not configured",
            )

        client = await self._get_http_client()
        try:
            async with client.stream(
                "POST",
                url,
                headers=headers,
                json=payload,
            ) as response:
                if response.status_code >= 400:
                    body = await response.aread()
                    detail = self._extract_error_detail(body)
                    raise UpstreamError(response.status_code, detail)

                async for event in self._iter_events(response):
                    yield event
        except httpx.HTTPError as exc:
            raise UpstreamError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

    async def _iter_events(
        self, response: httpx.Response
    ) -> AsyncGenerator[ServerSentEvent, None]:
        buffer: list[str] = []
        async for line in response.aiter_lines():
            if not line:
                if buffer:
                    yield self._parse_event(buffer)
                    buffer.clear()
                continue
            if line.startswith(":"):
                continue
            buffer.append(line)
        if buffer:
            yield self._parse_event(buffer)

    def _parse_event(self, lines: Iterable[str]) -> ServerSentEvent:
        event_name: Optional[str] = None
        event_id: Optional[str] = None
        data_lines: list[str] = []

        for line in lines:
            field, _, value = line.partition(":")
            value = value.lstrip(" ")
            if field == "event":
                event_name = value or None
            elif field == "data":
                data_lines.append(value)
            elif field == "id":
                event_id = value or None

        data = "\n".join(data_lines)
        return ServerSentEvent(
            data=data, event=event_name or "message", event_id=event_id
        )

    @staticmethod
    def _decode_chunk(event: ServerSentEvent) -> dict[str, Any] | None:
        try:
            chunk = json.loads(event.data)
        except json.JSONDecodeError:
            logger.debug("Skipping non-JSON SSE payload: %s", event.data)
            return None
        return chunk if isinstance(chunk, dict) else None

    @staticmethod
    def _extract_error_detail(raw: bytes) -> Any:
        if not raw:
            return "Provider returned an empty error response."
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            text = raw.decode("utf-8", errors="ignore")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            return text
        if isinstance(payload, dict):
            return payload.get("error") or payload
        return payload


__all__ = [
    "ServerSentEvent",
    "StreamingProvider",
    "TOOL_ACKNOWLEDGEMENT",
    "UpstreamError",
]
