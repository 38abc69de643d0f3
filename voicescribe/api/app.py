"""
FastAPI application factory.

``create_app()`` wires logging, CORS, error handlers, the REST routers,
the caption WebSocket and the health endpoint. The module-level ``app``
supports ``uvicorn voicescribe.api.app:app --reload``.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from voicescribe import __version__
from voicescribe.api import websocket
from voicescribe.api.middleware.error_handler import register_error_handlers
from voicescribe.api.routes import recording, transcribe
from voicescribe.core.config import get_settings
from voicescribe.core.models import HealthResponse
from voicescribe.core.utils import get_supported_languages
from voicescribe.services.storage.database import close_db, init_db


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create tables on startup; dispose the engine on shutdown."""
    await init_db()
    yield
    await close_db()


def create_app() -> FastAPI:
    """Build and return a fully configured FastAPI application."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="VoiceScribe",
        description="Voice recorder with live captions and hosted transcription.",
        version=__version__,
        lifespan=lifespan,
    )

    # -- CORS --
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -- Error handlers --
    register_error_handlers(app)

    # -- Health check (root-level, also the network probe target) --
    @app.get("/health", response_model=HealthResponse, tags=["system"])
    async def health() -> HealthResponse:
        return HealthResponse(version=__version__, timestamp=datetime.now(UTC))

    @app.get("/api/v1/languages", tags=["system"])
    async def languages() -> list[dict[str, str]]:
        return get_supported_languages()

    # -- REST routes --
    app.include_router(transcribe.router, prefix="/api/v1")
    app.include_router(recording.router, prefix="/api/v1")

    # -- WebSocket --
    app.include_router(websocket.router)

    return app


app = create_app()
