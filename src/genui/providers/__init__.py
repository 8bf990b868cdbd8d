"""Model providers and the router choosing between them."""

from __future__ import annotations

import logging

from ..config import Settings
from .anthropic import AnthropicProvider
from .base import ServerSentEvent, StreamingProvider, TOOL_ACKNOWLEDGEMENT, UpstreamError
from .openai_compat import OpenAICompatibleProvider

logger = logging.getLogger(__name__)

ANTHROPIC_MODEL_PREFIX = "claude"


class ProviderRouter:
    """Hold the process-wide active model and map models to providers."""

    def __init__(
        self,
        settings: Settings,
        *,
        openai: StreamingProvider | None = None,
        anthropic: StreamingProvider | None = None,
    ) -> None:
        self._openai = openai or OpenAICompatibleProvider(settings)
        self._anthropic = anthropic or AnthropicProvider(settings)
        self._active_model = settings.default_model

    @property
    def active_model(self) -> str:
        return self._active_model

    def provider_for(self, model: str) -> StreamingProvider:
        if model.strip().lower().startswith(ANTHROPIC_MODEL_PREFIX):
            return self._anthropic
        return self._openai

    def select(self, model: str) -> StreamingProvider:
        model = model.strip()
        if not model:
            raise ValueError("Model name must not be empty")
        provider = self.provider_for(model)
        logger.info("Active model set to %s (%s)", model, provider.name)
        self._active_model = model
        return provider

    def resolve(self, model: str | None = None) -> tuple[str, StreamingProvider]:
        chosen = model or self._active_model
        return chosen, self.provider_for(chosen)


__all__ = [
    "AnthropicProvider",
    "OpenAICompatibleProvider",
    "ProviderRouter",
    "ServerSentEvent",
    "StreamingProvider",
    "TOOL_ACKNOWLEDGEMENT",
    "UpstreamError",
]
