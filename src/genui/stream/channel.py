"""Per-request outbound event channel feeding the SSE response."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncGenerator

from ..schemas.components import OutboundMessage, serialize_message
from .types import SseEvent

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


class EventChannel:
    """Queue-backed channel written by the session and drained by the response.

    Writes after the consumer went away are dropped so that in-flight work can
    finish without raising.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[SseEvent | None] = asyncio.Queue()
        self._closed = False
        self._disconnected = False
        self.sent_count = 0
        self.close_count = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def disconnected(self) -> bool:
        return self._disconnected

    @property
    def committed(self) -> bool:
        """Whether any event has already been handed to the client."""

        return self.sent_count > 0

    async def send(self, message: OutboundMessage) -> bool:
        if self._closed or self._disconnected:
            return False
        await self._queue.put({"event": "message", "data": serialize_message(message)})
        self.sent_count += 1
        return True

    async def finish(self) -> None:
        """Write the terminal sentinel and close the channel."""

        if self._closed:
            return
        if not self._disconnected:
            await self._queue.put({"event": "message", "data": DONE_SENTINEL})
        await self.close()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.close_count += 1
        await self._queue.put(None)

    def mark_disconnected(self) -> None:
        if not self._disconnected:
            logger.info("Client disconnected from component stream")
        self._disconnected = True

    async def events(self) -> AsyncGenerator[SseEvent, None]:
        """Yield queued events until the channel is closed."""

        finished = False
        try:
            while True:
                item = await self._queue.get()
                if item is None:
                    finished = True
                    break
                yield item
        finally:
            if not finished:
                self.mark_disconnected()


__all__ = ["DONE_SENTINEL", "EventChannel"]
