"""Pydantic models for inbound request bodies."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ButtonClickRequest(BaseModel):
    """Payload posted when a rendered button is clicked."""

    content: Any = None

    model_config = ConfigDict(extra="ignore")


class ImageGenerateRequest(BaseModel):
    prompt: Optional[str] = None
    columns: Optional[str] = None


class ModelUpdateRequest(BaseModel):
    model: str = Field(min_length=1)


__all__ = ["ButtonClickRequest", "ImageGenerateRequest", "ModelUpdateRequest"]
