"""Tests for the content / tool-call state machine."""

from typing import Any

import pytest

from genui.stream.channel import EventChannel
from genui.stream.dispatcher import ComponentDispatcher
from genui.stream.multiplexer import MultiplexState, StreamMultiplexer
from genui.stream.types import (
    ContentDelta,
    RequestContext,
    ToolArgumentsDelta,
    ToolCallStart,
    ToolCallStop,
)
from genui.tools.gateway import SideEffectGateway, ToolError, ToolSpec

SPEC = ToolSpec(
    name="search_businesses",
    description="Find businesses.",
    parameters={"type": "object", "properties": {}},
    loading_text="Searching...",
    error_text="Search is unavailable.",
    continuation_template="Render these: {results}",
)


class RecordingTool:
    spec = SPEC

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[dict[str, Any]] = []

    async def run(self, arguments: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(arguments)
        if self.fail:
            raise ToolError("upstream down")
        return {
            "results": [
                {"type": "list-item", "props": {"ID": "1000", "content": "Cafe"}}
            ]
        }


async def events(*items):
    for item in items:
        yield item


def build(tool: RecordingTool, *, open_continuation=None, clear_on_tool_call=True):
    channel = EventChannel()
    dispatcher = ComponentDispatcher(
        channel, RequestContext(session_id=1, prompt="p", model="m")
    )
    multiplexer = StreamMultiplexer(
        channel,
        dispatcher,
        SideEffectGateway([tool]),
        open_continuation=open_continuation,
        clear_on_tool_call=clear_on_tool_call,
    )
    return channel, multiplexer


TOOL_CALL = (
    ToolCallStart(call_id="call_1", name="search_businesses"),
    ToolArgumentsDelta('{"query": "cof'),
    ToolArgumentsDelta('fee", "location": "Seattle"}'),
    ToolCallStop(),
)


@pytest.mark.asyncio
async def test_plain_content_stream(drain) -> None:
    channel, multiplexer = build(RecordingTool())

    outcome = await multiplexer.run(
        events(
            ContentDelta('[{"type":"header","props":{"content":"Hi"}}'),
            ContentDelta(',{"type":"text","props":{"content":"There"}}]'),
        )
    )
    await channel.finish()

    payloads = await drain(channel)
    assert [p["type"] for p in payloads[:-1]] == ["header", "text"]
    assert payloads[-1] == "[DONE]"
    assert outcome.tool_name is None
    assert outcome.transcript.startswith('[{"type":"header"')
    assert multiplexer.state is MultiplexState.DONE


@pytest.mark.asyncio
async def test_tool_round_trip_invokes_once_and_continues(drain) -> None:
    tool = RecordingTool()
    opened: list[tuple[Any, dict[str, Any], Any]] = []

    def open_continuation(invocation, arguments, result):
        opened.append((invocation, arguments, result))
        return events(ContentDelta('[{"type":"list-item","props":{"content":"Cafe"}}]'))

    channel, multiplexer = build(tool, open_continuation=open_continuation)

    outcome = await multiplexer.run(
        events(
            ContentDelta('[{"type":"text","props":{"content":"Looking"}},{"type":"te'),
            *TOOL_CALL,
        )
    )
    await channel.finish()

    assert tool.calls == [{"query": "coffee", "location": "Seattle"}]
    assert len(opened) == 1
    invocation, arguments, result = opened[0]
    assert invocation.id == "call_1"
    assert arguments == {"query": "coffee", "location": "Seattle"}
    assert result.ok is True

    payloads = await drain(channel)
    assert payloads == [
        {"type": "text", "props": {"content": "Looking"}},
        {"type": "clear"},
        {"type": "text", "props": {"content": "Searching...", "columns": "6", "ID": "loading-tool"}},
        {"type": "remove", "props": {"ID": "loading-tool"}},
        {"type": "list-item", "props": {"content": "Cafe", "imageID": 1001, "imageSrc": "/img/default-image.png"}},
        "[DONE]",
    ]
    assert outcome.continued is True
    assert multiplexer.history == [
        MultiplexState.CONTENT,
        MultiplexState.TOOL_ARGS_ACCUMULATING,
        MultiplexState.TOOL_EXECUTING,
        MultiplexState.CONTINUATION,
        MultiplexState.DONE,
    ]


@pytest.mark.asyncio
async def test_tool_failure_shows_error_and_skips_continuation(drain) -> None:
    tool = RecordingTool(fail=True)
    opened: list[Any] = []

    def open_continuation(*args):
        opened.append(args)
        return events()

    channel, multiplexer = build(tool, open_continuation=open_continuation)

    outcome = await multiplexer.run(events(*TOOL_CALL, ContentDelta("[ignored]")))
    await channel.finish()

    payloads = await drain(channel)
    assert opened == []
    assert outcome.tool_failed is True
    assert payloads[-3] == {"type": "remove", "props": {"ID": "loading-tool"}}
    assert payloads[-2]["props"]["content"] == "Search is unavailable."
    assert payloads[-1] == "[DONE]"


@pytest.mark.asyncio
async def test_corrupt_tool_arguments_abandon_call(drain, caplog) -> None:
    tool = RecordingTool()
    channel, multiplexer = build(tool, clear_on_tool_call=False)

    with caplog.at_level("ERROR"):
        outcome = await multiplexer.run(
            events(
                ToolCallStart(call_id="call_1", name="search_businesses"),
                ToolArgumentsDelta('{"query": "cof'),
                ToolCallStop(),
                ContentDelta('[{"type":"text","props":{"content":"Anyway"}}]'),
            )
        )
    await channel.close()

    payloads = await drain(channel)
    assert tool.calls == []
    assert outcome.tool_name is None
    assert "not valid JSON" in caplog.text
    assert [p["type"] for p in payloads] == ["text", "remove", "text"]
    assert payloads[-1]["props"]["content"] == "Anyway"


@pytest.mark.asyncio
async def test_tool_results_dispatched_directly_without_continuation(drain) -> None:
    channel, multiplexer = build(RecordingTool())

    await multiplexer.run(events(*TOOL_CALL))
    await channel.close()

    payloads = await drain(channel)
    assert payloads[-1]["type"] == "list-item"
    assert payloads[-1]["props"]["ID"] == "1000"


@pytest.mark.asyncio
async def test_tool_calls_inside_continuation_are_ignored() -> None:
    tool = RecordingTool()

    def open_continuation(*args):
        return events(*TOOL_CALL, ContentDelta('[{"type":"header"}]'))

    channel, multiplexer = build(tool, open_continuation=open_continuation)

    await multiplexer.run(events(*TOOL_CALL))

    assert len(tool.calls) == 1


@pytest.mark.asyncio
async def test_stops_reading_after_client_disconnect() -> None:
    channel, multiplexer = build(RecordingTool())
    consumed: list[int] = []

    async def source():
        for index in range(5):
            consumed.append(index)
            if index == 1:
                channel.mark_disconnected()
            yield ContentDelta('{"type":"text"},')

    await multiplexer.run(source())

    assert consumed == [0, 1]
