"""Image-ready feed and out-of-band image generation."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from sse_starlette.sse import EventSourceResponse

from ..images import ImageGenerationError, ImageService
from ..schemas.requests import ImageGenerateRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["images"])


def get_image_service(request: Request) -> ImageService:
    return request.app.state.image_service


@router.get("/images/stream", response_model=None, status_code=200)
async def image_stream(
    service: ImageService = Depends(get_image_service),
) -> EventSourceResponse:
    """Push `{imageAssetId, imageUrl}` as images finish generating."""

    async def event_publisher():
        async for message in service.broadcaster.listen():
            yield {"event": "message", "data": json.dumps(message)}

    return EventSourceResponse(event_publisher())


@router.post("/images/generate", status_code=200)
@router.post("/generate-image", status_code=200)
async def generate_image(
    payload: ImageGenerateRequest,
    service: ImageService = Depends(get_image_service),
) -> dict[str, Any]:
    prompt = (payload.prompt or "").strip()
    if not prompt:
        raise HTTPException(status_code=400, detail="Prompt is required")

    try:
        asset_id, url = await service.generate_adhoc(prompt, payload.columns)
    except ImageGenerationError as exc:
        logger.error("Out-of-band image generation failed: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {"imageAssetId": asset_id, "imageUrl": url}
