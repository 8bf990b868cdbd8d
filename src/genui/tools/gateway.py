"""Uniform invocation boundary for model-callable tools."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Protocol

from ..schemas.components import Component, RemoveMessage

logger = logging.getLogger(__name__)

LOADING_ID = "loading-tool"
UNKNOWN_TOOL_TEXT = "Sorry, that tool is not available right now."


class ToolError(Exception):
    """Raised by a tool when its downstream service cannot answer."""


@dataclass(frozen=True)
class ToolSpec:
    """Provider-neutral description of one callable tool."""

    name: str
    description: str
    parameters: dict[str, Any]
    loading_text: str = "Working on it..."
    error_text: str = "Sorry, something went wrong. Please try again later."
    continuation_template: str = "Generate UI components with these results: {results}"


class Tool(Protocol):
    spec: ToolSpec

    async def run(self, arguments: dict[str, Any]) -> Any:
        ...


@dataclass
class ToolResult:
    name: str
    ok: bool
    payload: Any = None
    error_component: Component | None = None
    arguments: dict[str, Any] = field(default_factory=dict)

    @property
    def results(self) -> Any:
        if isinstance(self.payload, Mapping) and "results" in self.payload:
            return self.payload["results"]
        return self.payload

    def components(self) -> list[dict[str, Any]]:
        """Return result entries already shaped as renderable components."""

        results = self.results
        if not isinstance(results, list):
            return []
        return [
            item
            for item in results
            if isinstance(item, dict) and isinstance(item.get("type"), str)
        ]


class SideEffectGateway:
    """Route tool calls by name and contain their failures."""

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self._tools[tool.spec.name] = tool

    def specs(self) -> list[ToolSpec]:
        return [tool.spec for tool in self._tools.values()]

    def loading_component(self, name: str) -> Component:
        tool = self._tools.get(name)
        text = tool.spec.loading_text if tool else ToolSpec.loading_text
        return Component.text(text, component_id=LOADING_ID)

    @staticmethod
    def loading_removal() -> RemoveMessage:
        return RemoveMessage.for_id(LOADING_ID)

    def continuation_prompt(self, result: ToolResult) -> str:
        """Render the text handed back to the model alongside the tool result."""

        tool = self._tools.get(result.name)
        template = (
            tool.spec.continuation_template if tool else ToolSpec.continuation_template
        )
        return template.format(results=json.dumps(result.results, default=str))

    async def invoke(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        """Run ``name`` with ``arguments``; failures become an error component."""

        tool = self._tools.get(name)
        if tool is None:
            logger.error("Model requested unknown tool '%s'", name)
            return ToolResult(
                name=name,
                ok=False,
                error_component=Component.text(
                    UNKNOWN_TOOL_TEXT, component_id="tool-error"
                ),
                arguments=arguments,
            )

        try:
            payload = await tool.run(arguments)
        except Exception as exc:
            logger.error("Tool '%s' failed: %s", name, exc)
            return ToolResult(
                name=name,
                ok=False,
                error_component=Component.text(
                    tool.spec.error_text, component_id=f"{name}-error"
                ),
                arguments=arguments,
            )

        logger.info("Tool '%s' completed", name)
        return ToolResult(name=name, ok=True, payload=payload, arguments=arguments)


__all__ = [
    "LOADING_ID",
    "SideEffectGateway",
    "Tool",
    "ToolError",
    "ToolResult",
    "ToolSpec",
]
