"""Validate, augment and emit completed components in arrival order."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Literal, Protocol

from ..registry import is_known_type, requires_image
from ..schemas.components import Component
from .channel import EventChannel
from .types import RequestContext

logger = logging.getLogger(__name__)

MISSING_CONTENT = "missing content"
DEFAULT_FALLBACK_IMAGE = "/img/default-image.png"


class ImageGenerator(Protocol):
    async def generate(self, asset_id: int, columns: Any, prompt: str) -> str:
        ...

    def schedule(self, asset_id: int, columns: Any, prompt: str) -> Any:
        ...


def _is_absolute_url(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(("http://", "https://"))


class ComponentDispatcher:
    """Write each completed element to the channel, attaching image assets.

    Augmentation of an element finishes (or falls back) before it is written,
    so a slow image never lets a later element overtake an earlier one.
    """

    def __init__(
        self,
        channel: EventChannel,
        context: RequestContext,
        *,
        images: ImageGenerator | None = None,
        delivery: Literal["inline", "deferred"] = "inline",
        fallback_image_src: str = DEFAULT_FALLBACK_IMAGE,
    ) -> None:
        self._channel = channel
        self._context = context
        self._images = images
        self._delivery = delivery
        self._fallback = fallback_image_src
        self.dispatched: list[Component] = []

    async def dispatch(self, elements: Iterable[Any]) -> int:
        """Emit ``elements`` in order and return how many were written."""

        written = 0
        for element in elements:
            if self._channel.disconnected:
                break
            component = Component.from_element(element)
            if component is None:
                logger.warning("Skipping element without a usable type: %.200r", element)
                continue
            if not is_known_type(component.type):
                logger.debug("Forwarding unrecognised component type %r", component.type)
            await self._augment(component)
            if await self._channel.send(component):
                self.dispatched.append(component)
                written += 1
        return written

    async def _augment(self, component: Component) -> None:
        if not requires_image(component.type):
            return
        props = component.props
        if _is_absolute_url(props.get("imageSrc")):
            return

        prompt = props.get("content", MISSING_CONTENT)
        if not isinstance(prompt, str) or not prompt.strip():
            return

        asset_id = self._context.next_image_id()
        props["imageID"] = asset_id
        columns = props.get("columns")

        if self._images is None:
            props["imageSrc"] = self._fallback
            return

        if self._delivery == "deferred":
            props["imageSrc"] = ""
            self._images.schedule(asset_id, columns, prompt)
            return

        try:
            url = await self._images.generate(asset_id, columns, prompt)
        except Exception as exc:
            logger.error("Image %s failed, using fallback: %s", asset_id, exc)
            url = self._fallback
        props["imageSrc"] = url or self._fallback


__all__ = ["ComponentDispatcher", "ImageGenerator", "MISSING_CONTENT"]
