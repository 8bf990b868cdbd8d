"""Incremental component streaming pipeline."""

from .channel import DONE_SENTINEL, EventChannel
from .parser import ComponentStreamParser, try_extract
from .types import (
    ContentDelta,
    RequestContext,
    ToolArgumentsDelta,
    ToolCallStart,
    ToolCallStop,
    ToolInvocation,
    UpstreamEvent,
)

__all__ = [
    "ComponentStreamParser",
    "ContentDelta",
    "DONE_SENTINEL",
    "EventChannel",
    "RequestContext",
    "ToolArgumentsDelta",
    "ToolCallStart",
    "ToolCallStop",
    "ToolInvocation",
    "UpstreamEvent",
    "try_extract",
]
