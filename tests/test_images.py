"""Tests for image generation and the image-ready broadcast."""

import asyncio
import json

import httpx
import pytest

from genui.images import ImageBroadcaster, ImageGenerationError, ImageService
from genui.registry import image_width


def fal_client(captured: list[httpx.Request], *, status_code: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(
            status_code, json={"images": [{"url": "https://fal.test/a.png"}]}
        )

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.parametrize(
    ("columns", "width"),
    [("2", 140), ("3", 220), ("6", 460), ("4", 220), (None, 220), (6, 460)],
)
def test_image_width_from_columns(columns, width) -> None:
    assert image_width(columns) == width


@pytest.mark.asyncio
async def test_generate_stores_and_broadcasts(settings) -> None:
    captured: list[httpx.Request] = []
    service = ImageService(settings, http_client=fal_client(captured))
    listener = service.broadcaster.subscribe()

    url = await service.generate(1001, "3", "a red bicycle")

    assert url == "https://fal.test/a.png"
    assert service.store.get(1001) == url
    assert listener.get_nowait() == {"imageAssetId": 1001, "imageUrl": url}

    request = captured[0]
    assert request.url.path == "/fal-ai/fast-lightning-sdxl"
    assert request.headers["Authorization"] == "Key fal-test"
    body = json.loads(request.content)
    assert body["prompt"] == "a red bicycle Make the image a hyper-realistic photo."
    assert body["image_size"] == "square_hd"


@pytest.mark.asyncio
async def test_generate_failure_raises(settings) -> None:
    service = ImageService(settings, http_client=fal_client([], status_code=500))

    with pytest.raises(ImageGenerationError):
        await service.generate(1, None, "x")
    assert len(service.store) == 0


@pytest.mark.asyncio
async def test_missing_key_raises(settings) -> None:
    service = ImageService(settings.model_copy(update={"fal_key": None}))

    with pytest.raises(ImageGenerationError):
        await service.generate(1, None, "x")


@pytest.mark.asyncio
async def test_scheduled_failure_broadcasts_fallback(settings) -> None:
    service = ImageService(settings, http_client=fal_client([], status_code=500))
    listener = service.broadcaster.subscribe()

    service.schedule(1002, "2", "x")
    await service.drain()

    assert listener.get_nowait() == {
        "imageAssetId": 1002,
        "imageUrl": settings.fallback_image_src,
    }


@pytest.mark.asyncio
async def test_adhoc_ids_do_not_overlap_stream_ids(settings) -> None:
    service = ImageService(settings, http_client=fal_client([]))

    first, _ = await service.generate_adhoc("a")
    second, _ = await service.generate_adhoc("b")

    assert second == first + 1
    assert first > settings.image_id_start + 10_000


@pytest.mark.asyncio
async def test_listener_deregisters_when_consumer_leaves() -> None:
    broadcaster = ImageBroadcaster()
    stream = broadcaster.listen()

    pending = asyncio.ensure_future(stream.__anext__())
    await asyncio.sleep(0)
    assert broadcaster.listener_count == 1

    broadcaster.publish(7, "https://fal.test/7.png")
    assert await pending == {"imageAssetId": 7, "imageUrl": "https://fal.test/7.png"}

    await stream.aclose()
    assert broadcaster.listener_count == 0


def test_publish_tolerates_unsubscribe_during_fanout() -> None:
    broadcaster = ImageBroadcaster()
    first = broadcaster.subscribe()
    second = broadcaster.subscribe()

    class RemovingQueue(asyncio.Queue):
        def put_nowait(self, item):
            broadcaster.unsubscribe(second)
            super().put_nowait(item)

    broadcaster.unsubscribe(first)
    remover = RemovingQueue()
    broadcaster._listeners.insert(0, remover)  # type: ignore[attr-defined]

    broadcaster.publish(1, "u")

    assert remover.qsize() == 1
    assert second.qsize() == 1
