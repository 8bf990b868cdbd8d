"""Model-callable tools and the gateway that invokes them."""

from __future__ import annotations

from ..config import Settings
from .business_search import BusinessSearchTool
from .gateway import SideEffectGateway, Tool, ToolError, ToolResult, ToolSpec
from .product_search import ProductSearchTool


def build_gateway(settings: Settings) -> SideEffectGateway:
    """Return a gateway over the enabled tools."""

    if not settings.tools_enabled:
        return SideEffectGateway()
    return SideEffectGateway(
        [BusinessSearchTool(settings), ProductSearchTool(settings)]
    )


__all__ = [
    "BusinessSearchTool",
    "ProductSearchTool",
    "SideEffectGateway",
    "Tool",
    "ToolError",
    "ToolResult",
    "ToolSpec",
    "build_gateway",
]
