"""Active model selection routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request

from ..providers import ProviderRouter
from ..schemas.requests import ModelUpdateRequest

router = APIRouter(prefix="/api", tags=["models"])


def get_provider_router(request: Request) -> ProviderRouter:
    return request.app.state.provider_router


def _describe(providers: ProviderRouter) -> dict[str, Any]:
    model, provider = providers.resolve()
    return {"model": model, "provider": provider.name}


@router.get("/model", status_code=200)
async def get_active_model(
    providers: ProviderRouter = Depends(get_provider_router),
) -> dict[str, Any]:
    return _describe(providers)


@router.post("/set-model", status_code=200)
async def set_active_model(
    payload: ModelUpdateRequest,
    providers: ProviderRouter = Depends(get_provider_router),
) -> dict[str, Any]:
    """Switch the model used by subsequent generations."""

    try:
        providers.select(payload.model)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return _describe(providers)
