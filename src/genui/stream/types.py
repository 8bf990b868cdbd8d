"""Type definitions for the component streaming subsystem."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Union

SseEvent = dict[str, str | None]


@dataclass(frozen=True)
class ContentDelta:
    """A fragment of assistant text."""

    text: str


@dataclass(frozen=True)
class ToolCallStart:
    call_id: str
    name: str


@dataclass(frozen=True)
class ToolArgumentsDelta:
    """Raw partial JSON of the open tool call's arguments."""

    fragment: str


@dataclass(frozen=True)
class ToolCallStop:
    pass


UpstreamEvent = Union[ContentDelta, ToolCallStart, ToolArgumentsDelta, ToolCallStop]


@dataclass
class ToolInvocation:
    """Tool call being assembled from streamed argument fragments."""

    id: str
    name: str
    argument_buffer: str = ""

    def append(self, fragment: str) -> None:
        self.argument_buffer += fragment

    def parse_arguments(self) -> dict[str, Any]:
        """Decode the accumulated arguments; raises `ValueError` when unusable."""

        text = self.argument_buffer.strip()
        if not text:
            return {}
        parsed = json.loads(text)
        if not isinstance(parsed, dict):
            raise ValueError("Tool arguments must decode to a JSON object")
        return parsed


@dataclass
class RequestContext:
    """State scoped to a single generation request."""

    session_id: int
    prompt: str
    model: str
    client_ip: str | None = None
    image_id_start: int = 1000
    _image_id: int = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._image_id = self.image_id_start

    def next_image_id(self) -> int:
        self._image_id += 1
        return self._image_id


__all__ = [
    "ContentDelta",
    "RequestContext",
    "SseEvent",
    "ToolArgumentsDelta",
    "ToolCallStart",
    "ToolCallStop",
    "ToolInvocation",
    "UpstreamEvent",
]
