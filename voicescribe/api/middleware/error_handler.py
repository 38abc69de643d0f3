"""
Exception handlers for the FastAPI application.

Domain errors, request validation failures and unexpected exceptions all
leave the server as the same JSON envelope: ``{detail, code, timestamp}``
plus an ``error`` key carrying the human-readable message, which is what
the transcriber clients read.
"""

import logging
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from voicescribe.core.exceptions import VoiceScribeError
from voicescribe.core.models import ErrorResponse

logger = logging.getLogger(__name__)


def _envelope(status_code: int, detail: str, code: str, timestamp: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=detail, detail=detail, code=code, timestamp=timestamp
        ).model_dump(),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Attach the three exception handlers to *app*."""

    @app.exception_handler(VoiceScribeError)
    async def voicescribe_error_handler(_request: Request, exc: VoiceScribeError) -> JSONResponse:
        return _envelope(exc.status_code, exc.detail, exc.code, exc.timestamp)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        _request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return _envelope(422, str(exc), "VALIDATION_ERROR", datetime.now(UTC).isoformat())

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all; tracebacks go to the log, never to the client."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _envelope(500, "Internal server error", "INTERNAL_ERROR", datetime.now(UTC).isoformat())
