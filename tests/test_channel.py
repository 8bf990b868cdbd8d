import pytest

from genui.schemas.components import ClearMessage, Component, ErrorMessage, RemoveMessage
from genui.stream.channel import DONE_SENTINEL, EventChannel


@pytest.mark.asyncio
async def test_finish_writes_sentinel_once_and_closes_once(drain) -> None:
    channel = EventChannel()
    await channel.send(Component.text("hello"))
    await channel.finish()
    await channel.finish()
    await channel.close()

    payloads = await drain(channel)

    assert payloads == [
        {"type": "text", "props": {"content": "hello", "columns": "6"}},
        DONE_SENTINEL,
    ]
    assert channel.close_count == 1


@pytest.mark.asyncio
async def test_control_messages_use_component_envelope(drain) -> None:
    channel = EventChannel()
    await channel.send(ClearMessage())
    await channel.send(RemoveMessage.for_id("loading-tool"))
    await channel.send(ErrorMessage(message="nope"))
    await channel.close()

    assert await drain(channel) == [
        {"type": "clear"},
        {"type": "remove", "props": {"ID": "loading-tool"}},
        {"type": "error", "message": "nope"},
    ]


@pytest.mark.asyncio
async def test_send_after_close_is_dropped() -> None:
    channel = EventChannel()
    await channel.close()

    assert await channel.send(Component.text("late")) is False
    assert channel.committed is False


@pytest.mark.asyncio
async def test_consumer_leaving_marks_channel_disconnected() -> None:
    channel = EventChannel()
    await channel.send(Component.text("one"))
    await channel.send(Component.text("two"))

    events = channel.events()
    first = await events.__anext__()
    assert "one" in first["data"]
    await events.aclose()

    assert channel.disconnected is True
    assert await channel.send(Component.text("three")) is False

    await channel.finish()
    assert channel.closed is True
