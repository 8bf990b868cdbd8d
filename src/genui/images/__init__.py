"""Image generation, storage and broadcast."""

from .service import ImageBroadcaster, ImageGenerationError, ImageService, ImageStore

__all__ = [
    "ImageBroadcaster",
    "ImageGenerationError",
    "ImageService",
    "ImageStore",
]
