"""Application factory for the FastAPI service."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import PROJECT_ROOT, Settings, get_settings
from .http import aclose_http_clients
from .images import ImageService
from .providers import ProviderRouter
from .routers.generate import router as generate_router
from .routers.images import router as images_router
from .routers.models import router as models_router
from .services.interaction_log import InteractionLogWriter
from .sessions import SessionStore
from .stream.controller import StreamSessionController
from .tools import build_gateway


def _configure_logging() -> None:
    """Configure logging based on LOG_LEVEL environment variable."""
    # Load .env file first to ensure LOG_FILE is available
    load_dotenv()

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list[logging.Handler] = []
    log_file = os.getenv("LOG_FILE")
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    logging.getLogger("genui").setLevel(log_level)
    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(log_level)
    logging.getLogger("uvicorn.error").setLevel(log_level)

    if log_level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)


def _interaction_log(settings: Settings) -> InteractionLogWriter | None:
    path = settings.interaction_log_path
    if path is None or str(path) in {"", "."}:
        return None
    if not path.is_absolute():
        path = PROJECT_ROOT / path
    return InteractionLogWriter(path)


def create_app(settings: Settings | None = None) -> FastAPI:
    # Configure logging first thing
    _configure_logging()

    settings = settings or get_settings()

    sessions = SessionStore(window=settings.context_window_turns)
    provider_router = ProviderRouter(settings)
    gateway = build_gateway(settings)
    image_service = ImageService(settings)
    controller = StreamSessionController(
        settings,
        router=provider_router,
        gateway=gateway,
        sessions=sessions,
        images=image_service,
        interaction_log=_interaction_log(settings),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            yield
        finally:
            # Add timeout to prevent hanging during shutdown (especially in tests)
            try:
                await asyncio.wait_for(
                    asyncio.gather(controller.drain(), image_service.drain()),
                    timeout=10.0,
                )
            except asyncio.TimeoutError:
                logging.warning("In-flight streams did not settle within 10s")
            await aclose_http_clients()

    app = FastAPI(
        title="Generative UI Stream Backend",
        version="0.1.0",
        description="Streams model-generated UI components over Server-Sent Events.",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.session_store = sessions
    app.state.provider_router = provider_router
    app.state.tool_gateway = gateway
    app.state.image_service = image_service
    app.state.stream_controller = controller

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(generate_router)
    app.include_router(images_router)
    app.include_router(models_router)

    @app.get("/health", tags=["health"])
    async def healthcheck() -> dict[str, str | None]:
        active_model, provider = provider_router.resolve()
        return {
            "status": "ok",
            "default_model": settings.default_model,
            "active_model": active_model,
            "provider": provider.name,
        }

    return app
