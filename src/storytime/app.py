"""Application factory for the FastAPI service."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Awaitable, Callable

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .completion import CompletionClient
from .config import PROJECT_ROOT, get_settings
from .repository import UserRepository
from .routers.chat import router as chat_router
from .routers.transcription import router as transcription_router
from .services.speech import SpeechSynthesizer
from .services.transcription import Transcriber

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
_SHUTDOWN_TIMEOUT = 10.0

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    """Configure logging based on LOG_LEVEL environment variable."""
    # Load .env file first to ensure LOG_FILE is available
    load_dotenv()

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    handlers: list[logging.Handler] = []

    log_file = os.getenv("LOG_FILE")
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_LOG_DATEFMT))
        handlers.append(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_LOG_DATEFMT))
    handlers.append(console_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    logging.getLogger("storytime").setLevel(log_level)
    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(log_level)
    logging.getLogger("uvicorn.error").setLevel(log_level)

    # httpx logs every request line at INFO
    if log_level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
        logging.getLogger("openai").setLevel(logging.WARNING)


async def _close_client(name: str, close: Callable[[], Awaitable[None]]) -> None:
    try:
        await asyncio.wait_for(close(), timeout=_SHUTDOWN_TIMEOUT)
    except asyncio.TimeoutError:
        logger.warning("Closing %s timed out after %.0fs", name, _SHUTDOWN_TIMEOUT)
    except Exception:
        logger.exception("Failed to close %s", name)


def create_app() -> FastAPI:
    # Configure logging first thing
    _configure_logging()

    settings = get_settings()

    database_path = settings.user_database_path
    if not database_path.is_absolute():
        database_path = (PROJECT_ROOT / database_path).resolve()

    user_repository = UserRepository(database_path)
    completion_client = CompletionClient(settings)
    speech_synthesizer = SpeechSynthesizer(settings)
    transcriber = Transcriber(settings, client=speech_synthesizer.client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await user_repository.initialize()
        try:
            yield
        finally:
            try:
                await _close_client("completion client", completion_client.aclose)
                await _close_client("speech client", speech_synthesizer.aclose)
            finally:
                await user_repository.close()

    app = FastAPI(
        title="Storytime Backend",
        version="0.1.0",
        description="Streaming storytelling chat with per-paragraph speech audio.",
        lifespan=lifespan,
    )

    app.state.user_repository = user_repository
    app.state.completion_client = completion_client
    app.state.speech_synthesizer = speech_synthesizer
    app.state.transcriber = transcriber

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(chat_router)
    app.include_router(transcription_router)

    @app.get("/health", tags=["health"])
    async def healthcheck() -> dict[str, str]:
        return {
            "status": "ok",
            "chat_model": settings.chat_model,
            "tts_model": settings.tts_model,
        }

    return app


__all__ = ["create_app"]
