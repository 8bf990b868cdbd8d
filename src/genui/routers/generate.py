"""Component stream routes."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sse_starlette.sse import EventSourceResponse

from ..prompts import build_button_prompt
from ..schemas.requests import ButtonClickRequest
from ..stream.controller import GenerationRequest, StreamSessionController

router = APIRouter(prefix="/api", tags=["generate"])


def get_stream_controller(request: Request) -> StreamSessionController:
    return request.app.state.stream_controller


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def _button_label(content: Any) -> str | None:
    if content is None or isinstance(content, (dict, list)):
        return None
    label = str(content).strip()
    return label or None


@router.head("/generate", status_code=200)
async def probe_generate() -> Response:
    """Answer the client's pre-flight check without starting a generation."""

    return Response(status_code=200)


@router.get("/generate", response_model=None, status_code=200)
async def generate_components(
    request: Request,
    prompt: Optional[str] = Query(default=None),
    session_id: Optional[int] = Query(default=None),
    controller: StreamSessionController = Depends(get_stream_controller),
) -> EventSourceResponse:
    """Stream UI components for ``prompt`` through Server-Sent Events."""

    if prompt is None or not prompt.strip():
        raise HTTPException(status_code=400, detail="Prompt is required")

    channel = controller.start(
        GenerationRequest(
            prompt=prompt.strip(),
            prior_session_id=session_id,
            client_ip=_client_ip(request),
        )
    )
    return EventSourceResponse(channel.events())


@router.post("/button-click", response_model=None, status_code=200)
async def button_click(
    payload: ButtonClickRequest,
    request: Request,
    controller: StreamSessionController = Depends(get_stream_controller),
) -> EventSourceResponse:
    """Stream a new interface in response to a rendered button being clicked."""

    label = _button_label(payload.content)
    if label is None:
        raise HTTPException(status_code=400, detail="Button content is required")

    channel = controller.start(
        GenerationRequest(
            prompt=build_button_prompt(label),
            kind="button-click",
            client_ip=_client_ip(request),
        )
    )
    return EventSourceResponse(channel.events())
