"""Pydantic models for the outbound component stream."""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class Component(BaseModel):
    """A renderable UI descriptor produced by the model."""

    type: str = Field(min_length=1)
    props: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="allow")

    @field_validator("props", mode="before")
    @classmethod
    def _coerce_props(cls, value: Any) -> Any:
        if value is None or not isinstance(value, dict):
            return {}
        return value

    @classmethod
    def from_element(cls, element: Any) -> Optional["Component"]:
        """Validate a decoded array element, returning `None` when unusable."""

        if not isinstance(element, dict):
            return None
        try:
            return cls.model_validate(element)
        except ValidationError:
            return None

    @classmethod
    def text(
        cls,
        content: str,
        *,
        component_id: str | None = None,
        columns: str = "6",
    ) -> "Component":
        props: dict[str, Any] = {"content": content, "columns": columns}
        if component_id is not None:
            props["ID"] = component_id
        return cls(type="text", props=props)


class ClearMessage(BaseModel):
    """Discard every component rendered so far."""

    type: Literal["clear"] = "clear"


class RemoveProps(BaseModel):
    ID: str


class RemoveMessage(BaseModel):
    """Delete the rendered component carrying `props.ID`."""

    type: Literal["remove"] = "remove"
    props: RemoveProps

    @classmethod
    def for_id(cls, component_id: str) -> "RemoveMessage":
        return cls(props=RemoveProps(ID=component_id))


class ErrorMessage(BaseModel):
    """Terminal failure notice shown to the user."""

    type: Literal["error"] = "error"
    message: str


OutboundMessage = Union[ClearMessage, RemoveMessage, ErrorMessage, Component]


def serialize_message(message: OutboundMessage) -> str:
    """Render one envelope as the JSON payload of a single event."""

    return message.model_dump_json()


__all__ = [
    "ClearMessage",
    "Component",
    "ErrorMessage",
    "OutboundMessage",
    "RemoveMessage",
    "RemoveProps",
    "serialize_message",
]
