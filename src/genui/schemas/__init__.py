"""Wire and request schemas."""

from .components import (
    ClearMessage,
    Component,
    ErrorMessage,
    OutboundMessage,
    RemoveMessage,
    serialize_message,
)
from .requests import ButtonClickRequest, ImageGenerateRequest, ModelUpdateRequest

__all__ = [
    "ButtonClickRequest",
    "ClearMessage",
    "Component",
    "ErrorMessage",
    "ImageGenerateRequest",
    "ModelUpdateRequest",
    "OutboundMessage",
    "RemoveMessage",
    "serialize_message",
]
