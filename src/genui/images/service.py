"""Image asset generation and the image-ready broadcast feed."""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, AsyncGenerator

import httpx

from ..config import Settings
from ..http import PooledHttpMixin
from ..registry import image_width

logger = logging.getLogger(__name__)

PROMPT_SUFFIX = " Make the image a hyper-realistic photo."
IMAGE_SIZE = "square_hd"
ADHOC_ID_START = 100_000


class ImageGenerationError(Exception):
    """Raised when an image asset could not be produced."""


class ImageStore:
    """Generated image URLs keyed by asset id."""

    def __init__(self) -> None:
        self._urls: dict[int, str] = {}

    def __len__(self) -> int:
        return len(self._urls)

    def get(self, asset_id: int) -> str | None:
        return self._urls.get(asset_id)

    def set(self, asset_id: int, url: str) -> None:
        self._urls[asset_id] = url


class ImageBroadcaster:
    """Fan image-ready notifications out to every connected listener."""

    def __init__(self) -> None:
        self._listeners: list[asyncio.Queue[dict[str, Any]]] = []

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self) -> asyncio.Queue[dict[str, Any]]:
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._listeners.append(queue)
        logger.debug("Image listener connected (%d total)", len(self._listeners))
        return queue

    def unsubscribe(self, queue: asyncio.Queue[dict[str, Any]]) -> None:
        try:
            self._listeners.remove(queue)
        except ValueError:
            return
        logger.debug("Image listener disconnected (%d left)", len(self._listeners))

    def publish(self, asset_id: int, url: str) -> None:
        message = {"imageAssetId": asset_id, "imageUrl": url}
        for queue in tuple(self._listeners):
            queue.put_nowait(message)

    async def listen(self) -> AsyncGenerator[dict[str, Any], None]:
        """Yield notifications until the consumer goes away."""

        queue = self.subscribe()
        try:
            while True:
                yield await queue.get()
        finally:
            self.unsubscribe(queue)


class ImageService(PooledHttpMixin):
    """Generate images through the fal.ai synchronous endpoint."""

    def __init__(
        self,
        settings: Settings,
        *,
        store: ImageStore | None = None,
        broadcaster: ImageBroadcaster | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._http_client = http_client
        self._timeout = float(settings.request_timeout)
        self.store = store or ImageStore()
        self.broadcaster = broadcaster or ImageBroadcaster()
        self._adhoc_ids = itertools.count(ADHOC_ID_START + 1)
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def _endpoint(self) -> str:
        base = str(self._settings.fal_base_url).rstrip("/")
        return f"{base}/{self._settings.fal_model.strip('/')}"

    async def generate(self, asset_id: int, columns: Any, prompt: str) -> str:
        """Generate one image, record it and notify listeners."""

        key = self._settings.fal_key
        if key is None:
            raise ImageGenerationError("FAL_KEY not configured")

        width = image_width(columns)
        logger.debug("Generating image %s (%spx): %s", asset_id, width, prompt)
        client = await self._get_http_client()
        try:
            response = await client.post(
                self._endpoint,
                headers={"Authorization": f"Key {key.get_secret_value()}"},
                json={"prompt": f"{prompt}{PROMPT_SUFFIX}", "image_size": IMAGE_SIZE},
            )
            response.raise_for_status()
            url = response.json()["images"][0]["url"]
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as exc:
            raise ImageGenerationError(f"Failed to generate image: {exc}") from exc
        if not isinstance(url, str) or not url:
            raise ImageGenerationError("Image response did not include a URL")

        self.store.set(asset_id, url)
        self.broadcaster.publish(asset_id, url)
        return url

    def schedule(self, asset_id: int, columns: Any, prompt: str) -> asyncio.Task[Any]:
        """Generate in the background; the URL arrives through the broadcast feed."""

        task = asyncio.create_task(self._generate_quietly(asset_id, columns, prompt))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _generate_quietly(self, asset_id: int, columns: Any, prompt: str) -> None:
        try:
            await self.generate(asset_id, columns, prompt)
        except ImageGenerationError as exc:
            logger.warning("Deferred image %s failed: %s", asset_id, exc)
            self.broadcaster.publish(asset_id, self._settings.fallback_image_src)

    async def generate_adhoc(self, prompt: str, columns: Any = None) -> tuple[int, str]:
        """Generate an image outside any component stream."""

        asset_id = next(self._adhoc_ids)
        url = await self.generate(asset_id, columns, prompt)
        return asset_id, url

    async def drain(self) -> None:
        """Wait for background generations to settle."""

        if self._tasks:
            await asyncio.gather(*tuple(self._tasks), return_exceptions=True)


__all__ = [
    "ImageBroadcaster",
    "ImageGenerationError",
    "ImageService",
    "ImageStore",
]
