"""State machine interleaving content streaming with a single tool round-trip."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Callable

from ..schemas.components import ClearMessage
from ..tools.gateway import SideEffectGateway, ToolResult
from .channel import EventChannel
from .dispatcher import ComponentDispatcher
from .parser import ComponentStreamParser
from .types import (
    ContentDelta,
    ToolArgumentsDelta,
    ToolCallStart,
    ToolCallStop,
    ToolInvocation,
    UpstreamEvent,
)

logger = logging.getLogger(__name__)

ContinuationOpener = Callable[
    [ToolInvocation, dict[str, Any], ToolResult], AsyncIterator[UpstreamEvent]
]


class MultiplexState(str, Enum):
    CONTENT = "content"
    TOOL_ARGS_ACCUMULATING = "tool_args_accumulating"
    TOOL_EXECUTING = "tool_executing"
    CONTINUATION = "continuation"
    DONE = "done"


@dataclass
class MultiplexOutcome:
    """What a finished multiplexer run produced."""

    text_parts: list[str] = field(default_factory=list)
    tool_name: str | None = None
    tool_failed: bool = False
    continued: bool = False

    @property
    def transcript(self) -> str:
        return "".join(self.text_parts)


async def _aclose(source: Any) -> None:
    aclose = getattr(source, "aclose", None)
    if aclose is not None:
        await aclose()


class StreamMultiplexer:
    """Drive one request's upstream events through parser and dispatcher.

    At most one tool call is honoured per request. A successful call stops
    reading the primary stream and switches to the continuation stream; tool
    calls announced inside the continuation are ignored.
    """

    def __init__(
        self,
        channel: EventChannel,
        dispatcher: ComponentDispatcher,
        gateway: SideEffectGateway,
        *,
        open_continuation: ContinuationOpener | None = None,
        clear_on_tool_call: bool = True,
    ) -> None:
        self._channel = channel
        self._dispatcher = dispatcher
        self._gateway = gateway
        self._open_continuation = open_continuation
        self._clear_on_tool_call = clear_on_tool_call
        self._state = MultiplexState.CONTENT
        self.history: list[MultiplexState] = [MultiplexState.CONTENT]

    @property
    def state(self) -> MultiplexState:
        return self._state

    def _transition(self, state: MultiplexState) -> None:
        if state is self._state:
            return
        logger.debug("Multiplexer %s -> %s", self._state.value, state.value)
        self._state = state
        self.history.append(state)

    async def run(self, source: AsyncIterator[UpstreamEvent]) -> MultiplexOutcome:
        outcome = MultiplexOutcome()
        continuation = await self._pump(source, outcome, primary=True)
        if continuation is not None:
            self._transition(MultiplexState.CONTINUATION)
            outcome.continued = True
            await self._pump(continuation, outcome, primary=False)
        self._transition(MultiplexState.DONE)
        return outcome

    async def _pump(
        self,
        source: AsyncIterator[UpstreamEvent],
        outcome: MultiplexOutcome,
        *,
        primary: bool,
    ) -> AsyncIterator[UpstreamEvent] | None:
        """Consume ``source``; return a continuation stream when a tool succeeded."""

        parser = ComponentStreamParser()
        invocation: ToolInvocation | None = None
        try:
            async for event in source:
                if self._channel.disconnected:
                    logger.info("Client gone; no longer reading upstream")
                    return None

                if isinstance(event, ContentDelta):
                    outcome.text_parts.append(event.text)
                    await self._dispatcher.dispatch(parser.feed(event.text))

                elif isinstance(event, ToolCallStart):
                    if not primary or outcome.tool_name is not None:
                        logger.warning(
                            "Ignoring additional tool call '%s'", event.name
                        )
                        continue
                    invocation = ToolInvocation(id=event.call_id, name=event.name)
                    self._transition(MultiplexState.TOOL_ARGS_ACCUMULATING)
                    await self._settle_pre_tool_content(parser)
                    await self._channel.send(
                        self._gateway.loading_component(event.name)
                    )

                elif isinstance(event, ToolArgumentsDelta):
                    if invocation is not None:
                        invocation.append(event.fragment)

                elif isinstance(event, ToolCallStop):
                    if invocation is None:
                        continue
                    pending, invocation = invocation, None
                    stop, continuation = await self._execute(pending, outcome)
                    if stop:
                        return continuation
        finally:
            await _aclose(source)

        await self._dispatcher.dispatch(parser.finish())
        return None

    async def _settle_pre_tool_content(self, parser: ComponentStreamParser) -> None:
        if self._clear_on_tool_call:
            parser.discard()
            await self._channel.send(ClearMessage())
        else:
            await self._dispatcher.dispatch(parser.finish())

    async def _execute(
        self, invocation: ToolInvocation, outcome: MultiplexOutcome
    ) -> tuple[bool, AsyncIterator[UpstreamEvent] | None]:
        self._transition(MultiplexState.TOOL_EXECUTING)
        removal = self._gateway.loading_removal()

        try:
            arguments = invocation.parse_arguments()
        except ValueError as exc:
            logger.error(
                "Abandoning tool call '%s': arguments are not valid JSON: %s",
                invocation.name,
                exc,
            )
            await self._channel.send(removal)
            self._transition(MultiplexState.CONTENT)
            return False, None

        outcome.tool_name = invocation.name
        logger.info("Invoking tool '%s' with %s", invocation.name, arguments)
        result = await self._gateway.invoke(invocation.name, arguments)
        await self._channel.send(removal)

        if not result.ok:
            outcome.tool_failed = True
            if result.error_component is not None:
                await self._channel.send(result.error_component)
            return True, None

        if self._open_continuation is None:
            await self._dispatcher.dispatch(result.components())
            return True, None

        return True, self._open_continuation(invocation, arguments, result)


__all__ = [
    "ContinuationOpener",
    "MultiplexOutcome",
    "MultiplexState",
    "StreamMultiplexer",
]
