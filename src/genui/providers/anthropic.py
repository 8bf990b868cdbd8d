"""Streaming client for the Anthropic messages API."""

from __future__ import annotations

import logging
from typing import Any, AsyncGenerator, Sequence

from fastapi import status

from ..stream.types import (
    ContentDelta,
    ToolArgumentsDelta,
    ToolCallStart,
    ToolCallStop,
    ToolInvocation,
    UpstreamEvent,
)
from ..tools.gateway import ToolSpec
from .base import TOOL_ACKNOWLEDGEMENT, StreamingProvider, UpstreamError

logger = logging.getLogger(__name__)

# Status Anthropic uses for `overloaded_error`
HTTP_OVERLOADED = 529


def to_anthropic_tool(spec: ToolSpec) -> dict[str, Any]:
    return {
        "name": spec.name,
        "description": spec.description,
        "input_schema": spec.parameters,
    }


class AnthropicProvider(StreamingProvider):
    """Stream `/messages` content blocks, including `tool_use` blocks."""

    name = "anthropic"

    @property
    def configured(self) -> bool:
        return self._settings.anthropic_api_key is not None

    @property
    def _base_url(self) -> str:
        return str(self._settings.anthropic_base_url).rstrip("/")

    @property
    def _headers(self) -> dict[str, str]:
        key = self._settings.anthropic_api_key
        return {
            "x-api-key": key.get_secret_value() if key else "",
            "anthropic-version": self._settings.anthropic_version,
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }

    def build_payload(
        self,
        *,
        model: str,
        system: str,
        messages: Sequence[dict[str, Any]],
        tools: Sequence[ToolSpec] | None = None,
        allow_tool_calls: bool = True,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": model,
            "max_tokens": self._settings.anthropic_max_tokens,
            "system": system,
            "messages": list(messages),
            "stream": True,
        }
        if tools:
            payload["tools"] = [to_anthropic_tool(spec) for spec in tools]
            payload["tool_choice"] = {"type": "auto" if allow_tool_calls else "none"}
        return payload

    async def stream_events(
        self,
        *,
        model: str,
        system: str,
        messages: Sequence[dict[str, Any]],
        tools: Sequence[ToolSpec] | None = None,
        allow_tool_calls: bool = True,
    ) -> AsyncGenerator[UpstreamEvent, None]:
        payload = self.build_payload(
            model=model,
            system=system,
            messages=messages,
            tools=tools,
            allow_tool_calls=allow_tool_calls,
        )
        tool_block: int | None = None

        async for event in self._stream_sse(
            f"{self._base_url}/messages",
            headers=self._headers,
            payload=payload,
        ):
            if not event.data:
                continue
            chunk = self._decode_chunk(event)
            if chunk is None:
                continue
            kind = chunk.get("type") or event.event

            if kind == "error":
                error = chunk.get("error") or {}
                status_code = (
                    HTTP_OVERLOADED
                    if isinstance(error, dict) and error.get("type") == "overloaded_error"
                    else status.HTTP_502_BAD_GATEWAY
                )
                raise UpstreamError(status_code, error)

            if kind == "content_block_start":
                block = chunk.get("content_block") or {}
                if block.get("type") == "tool_use":
                    tool_block = chunk.get("index", 0)
                    yield ToolCallStart(
                        call_id=block.get("id") or "",
                        name=block.get("name") or "",
                    )
                elif block.get("type") == "text" and block.get("text"):
                    yield ContentDelta(block["text"])
            elif kind == "content_block_delta":
                delta = chunk.get("delta") or {}
                delta_type = delta.get("type")
                if delta_type == "text_delta":
                    text = delta.get("text")
                    if isinstance(text, str) and text:
                        yield ContentDelta(text)
                elif delta_type == "input_json_delta" and tool_block is not None:
                    fragment = delta.get("partial_json")
                    if isinstance(fragment, str) and fragment:
                        yield ToolArgumentsDelta(fragment)
            elif kind == "content_block_stop":
                if tool_block is not None and chunk.get("index", tool_block) == tool_block:
                    tool_block = None
                    yield ToolCallStop()
            elif kind == "message_stop":
                break

        if tool_block is not None:
            yield ToolCallStop()

    def build_continuation(
        self,
        messages: Sequence[dict[str, Any]],
        invocation: ToolInvocation,
        arguments: dict[str, Any],
        result_text: str,
    ) -> list[dict[str, Any]]:
        return [
            *messages,
            {
                "role": "assistant",
                "content": [
                    {"type": "text", "text": TOOL_ACKNOWLEDGEMENT},
                    {
                        "type": "tool_use",
                        "id": invocation.id,
                        "name": invocation.name,
                        "input": arguments,
                    },
                ],
            },
            {
                "role": "user",
                "content": [
                    {
                        "type": "tool_result",
                        "tool_use_id": invocation.id,
                        "content": result_text,
                    }
                ],
            },
        ]


__all__ = ["AnthropicProvider", "HTTP_OVERLOADED", "to_anthropic_tool"]
