"""Top-level orchestration of one component-stream request."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..config import Settings
from ..providers import ProviderRouter, UpstreamError
from ..providers.anthropic import HTTP_OVERLOADED
from ..schemas.components import ErrorMessage
from ..services.interaction_log import InteractionLogWriter
from ..sessions import SessionStore
from ..tools.gateway import SideEffectGateway, ToolResult
from .channel import EventChannel
from .dispatcher import ComponentDispatcher, ImageGenerator
from .multiplexer import MultiplexOutcome, StreamMultiplexer
from .types import RequestContext, ToolInvocation

logger = logging.getLogger(__name__)

OVERLOADED_MESSAGE = "The model is overloaded right now. Please try again shortly."


class SessionState(str, Enum):
    OPEN = "open"
    STREAMING = "streaming"
    CLOSED = "closed"
    FAILED = "failed"


@dataclass
class GenerationRequest:
    """A prompt to render, as received from the HTTP layer."""

    prompt: str
    kind: str = "generate"
    prior_session_id: int | None = None
    client_ip: str | None = None
    model: str | None = None


@dataclass
class SessionRun:
    session_id: int
    model: str
    state: SessionState = SessionState.OPEN
    outcome: MultiplexOutcome = field(default_factory=MultiplexOutcome)
    error: str | None = None


def _error_text(exc: UpstreamError) -> str:
    if exc.status_code == HTTP_OVERLOADED:
        return OVERLOADED_MESSAGE
    detail = exc.detail
    if isinstance(detail, dict):
        detail = detail.get("message") or json.dumps(detail)
    return f"Error: {detail}"


class StreamSessionController:
    """Own the channel of a request from first byte to terminal sentinel."""

    def __init__(
        self,
        settings: Settings,
        *,
        router: ProviderRouter,
        gateway: SideEffectGateway,
        sessions: SessionStore,
        images: ImageGenerator | None = None,
        interaction_log: InteractionLogWriter | None = None,
    ) -> None:
        self._settings = settings
        self._router = router
        self._gateway = gateway
        self._sessions = sessions
        self._images = images
        self._interaction_log = interaction_log
        self._system_prompt = settings.resolved_system_prompt()
        self._tasks: set[asyncio.Task[Any]] = set()

    def user_content(self, request: GenerationRequest) -> str:
        return f"{self._settings.user_prompt_prefix}{request.prompt}"

    def build_messages(
        self, session_id: int, request: GenerationRequest
    ) -> list[dict[str, Any]]:
        messages = self._sessions.context_for(session_id, request.prior_session_id)
        messages.append({"role": "user", "content": self.user_content(request)})
        return messages

    def start(self, request: GenerationRequest) -> EventChannel:
        """Run ``request`` in the background and return the channel it writes."""

        channel = EventChannel()
        task = asyncio.create_task(self.run(request, channel))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return channel

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*tuple(self._tasks), return_exceptions=True)

    async def run(self, request: GenerationRequest, channel: EventChannel) -> SessionRun:
        session_id = self._sessions.allocate()
        model, provider = self._router.resolve(request.model)
        run = SessionRun(session_id=session_id, model=model)
        logger.info(
            "Session %s: generating with %s (%s) for prompt %.120r",
            session_id,
            model,
            provider.name,
            request.prompt,
        )

        context = RequestContext(
            session_id=session_id,
            prompt=request.prompt,
            model=model,
            client_ip=request.client_ip,
            image_id_start=self._settings.image_id_start,
        )
        messages = self.build_messages(session_id, request)
        tools = self._gateway.specs() or None

        def open_continuation(
            invocation: ToolInvocation, arguments: dict[str, Any], result: ToolResult
        ):
            followup = provider.build_continuation(
                messages,
                invocation,
                arguments,
                self._gateway.continuation_prompt(result),
            )
            return provider.stream_events(
                model=model,
                system=self._system_prompt,
                messages=followup,
                tools=tools,
                allow_tool_calls=False,
            )

        dispatcher = ComponentDispatcher(
            channel,
            context,
            images=self._images,
            delivery=self._settings.image_delivery,
            fallback_image_src=self._settings.fallback_image_src,
        )
        multiplexer = StreamMultiplexer(
            channel,
            dispatcher,
            self._gateway,
            open_continuation=open_continuation,
            clear_on_tool_call=self._settings.clear_on_tool_call,
        )

        try:
            run.state = SessionState.STREAMING
            run.outcome = await multiplexer.run(
                provider.stream_events(
                    model=model,
                    system=self._system_prompt,
                    messages=messages,
                    tools=tools,
                )
            )
        except UpstreamError as exc:
            logger.error(
                "Session %s: upstream failure (%s): %s",
                session_id,
                exc.status_code,
                exc.detail,
            )
            await self._fail(run, channel, _error_text(exc))
            return run
        except asyncio.CancelledError:
            await channel.close()
            raise
        except Exception as exc:
            logger.exception("Session %s: stream failed", session_id)
            await self._fail(run, channel, f"Error: {exc}")
            return run

        await channel.finish()
        run.state = SessionState.CLOSED
        transcript = run.outcome.transcript
        self._sessions.record(session_id, self.user_content(request), transcript)
        await self._log_interaction(request, run, transcript)
        return run

    async def _fail(self, run: SessionRun, channel: EventChannel, message: str) -> None:
        run.state = SessionState.FAILED
        run.error = message
        if not channel.committed:
            await channel.send(ErrorMessage(message=message))
            await channel.finish()
            return
        logger.warning(
            "Session %s: output already sent, closing stream without a sentinel",
            run.session_id,
        )
        await channel.close()

    async def _log_interaction(
        self, request: GenerationRequest, run: SessionRun, transcript: str
    ) -> None:
        if self._interaction_log is None:
            return
        try:
            await self._interaction_log.write(
                kind=request.kind,
                prompt=request.prompt,
                result=transcript,
                model=run.model,
                ip=request.client_ip,
                session_id=run.session_id,
            )
        except OSError as exc:
            logger.warning("Failed to write interaction log: %s", exc)


__all__ = [
    "GenerationRequest",
    "SessionRun",
    "SessionState",
    "StreamSessionController",
]
