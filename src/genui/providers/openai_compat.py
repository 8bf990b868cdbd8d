"""Streaming client for OpenAI-compatible chat completion endpoints."""

from __future__ import annotations

import json
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


def to_openai_tool(spec: ToolSpec) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": spec.name,
            "description": spec.description,
            "parameters": spec.parameters,
        },
    }


class OpenAICompatibleProvider(StreamingProvider):
    """Stream `/chat/completions` deltas and merge tool-call fragments."""

    name = "openai"

    @property
    def configured(self) -> bool:
        return self._settings.openai_api_key is not None

    @property
    def _base_url(self) -> str:
        return str(self._settings.openai_base_url).rstrip("/")

    @property
    def _headers(self) -> dict[str, str]:
        key = self._settings.openai_api_key
        return {
            "Authorization": f"Bearer {key.get_secret_value() if key else ''}",
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
            "stream": True,
            "messages": [{"role": "system", "content": system}, *messages],
        }
        if tools:
            payload["tools"] = [to_openai_tool(spec) for spec in tools]
            payload["tool_choice"] = "auto" if allow_tool_calls else "none"
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
        active_index: int | None = None

        async for event in self._stream_sse(
            f"{self._base_url}/chat/completions",
            headers=self._headers,
            payload=payload,
        ):
            if not event.data:
                continue
            if event.data == "[DONE]":
                break
            chunk = self._decode_chunk(event)
            if chunk is None:
                continue

            error = chunk.get("error")
            if error:
                raise UpstreamError(status.HTTP_502_BAD_GATEWAY, error)

            for choice in chunk.get("choices") or []:
                delta = choice.get("delta") or {}

                content = delta.get("content")
                if isinstance(content, str) and content:
                    yield ContentDelta(content)

                for tool_delta in delta.get("tool_calls") or []:
                    if not isinstance(tool_delta, dict):
                        continue
                    index = tool_delta.get("index")
                    if not isinstance(index, int) or index < 0:
                        index = active_index if active_index is not None else 0
                    function = tool_delta.get("function") or {}

                    if index != active_index:
                        if active_index is not None:
                            yield ToolCallStop()
                        active_index = index
                        yield ToolCallStart(
                            call_id=tool_delta.get("id") or f"call_{index}",
                            name=function.get("name") or "",
                        )

                    fragment = function.get("arguments")
                    if isinstance(fragment, str) and fragment:
                        yield ToolArgumentsDelta(fragment)

                if choice.get("finish_reason") and active_index is not None:
                    yield ToolCallStop()
                    active_index = None

        if active_index is not None:
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
                "content": TOOL_ACKNOWLEDGEMENT,
                "tool_calls": [
                    {
                        "id": invocation.id,
                        "type": "function",
                        "function": {
                            "name": invocation.name,
                            "arguments": json.dumps(arguments),
                        },
                    }
                ],
            },
            {
                "role": "tool",
                "tool_call_id": invocation.id,
                "content": result_text,
            },
        ]


__all__ = ["OpenAICompatibleProvider", "to_openai_tool"]
