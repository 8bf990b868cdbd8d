"""Recognised component types and their asset requirements."""

from __future__ import annotations

from typing import Any

COMPONENT_TYPES = frozenset(
    {"header", "text", "button", "image", "input", "list-item"}
)
IMAGE_COMPONENT_TYPES = frozenset({"image", "list-item"})

# Column hint to rendered pixel width
_COLUMN_WIDTHS = {
    "2": 140,
    "3": 220,
    "6": 460,
}
DEFAULT_IMAGE_WIDTH = 220


def is_known_type(component_type: str) -> bool:
    return component_type in COMPONENT_TYPES


def requires_image(component_type: str) -> bool:
    return component_type in IMAGE_COMPONENT_TYPES


def image_width(columns: Any) -> int:
    """Translate a `columns` layout hint into a pixel width."""

    if columns is None:
        return DEFAULT_IMAGE_WIDTH
    return _COLUMN_WIDTHS.get(str(columns).strip(), DEFAULT_IMAGE_WIDTH)


__all__ = [
    "COMPONENT_TYPES",
    "DEFAULT_IMAGE_WIDTH",
    "IMAGE_COMPONENT_TYPES",
    "image_width",
    "is_known_type",
    "requires_image",
]
