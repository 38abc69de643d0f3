"""WebSocket endpoint for live captions.

The client streams raw PCM (16-bit, 16 kHz, mono) over the socket. The
server runs a ``LiveRecognizer`` on the local speech engine and answers
with JSON ``WebSocketMessage`` objects:

- ``connected`` once the socket is accepted
- ``status`` when recognition starts (``listening``) or stops (``stopped``)
- ``transcript`` for every result: ``{text, is_final}``
- ``error`` for recognizer errors, including the restart-limit message
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect

from voicescribe.core.config import get_settings
from voicescribe.core.models import (
    TranscriptionStatus,
    WebSocketMessage,
    WebSocketMessageType,
)
from voicescribe.services.transcription.base import SpeechEngine
from voicescribe.services.transcription.live import LiveRecognizer

logger = logging.getLogger(__name__)

router = APIRouter()


def get_speech_engine() -> SpeechEngine:
    from voicescribe.services.transcription.whisper_engine import WhisperStreamingEngine

    return WhisperStreamingEngine()


async def _send_messages(websocket: WebSocket, outbox: asyncio.Queue) -> None:
    """Forward queued messages in order until the ``None`` sentinel."""
    while True:
        message = await outbox.get()
        if message is None:
            return
        try:
            await websocket.send_json(message.model_dump(mode="json"))
        except (WebSocketDisconnect, RuntimeError):
            logger.info("Client went away; dropping remaining caption messages")
            return


@router.websocket("/ws/transcribe")
async def transcribe_ws(
    websocket: WebSocket,
    language: str | None = Query(None),
    engine: SpeechEngine = Depends(get_speech_engine),
) -> None:
    """Live-captions endpoint.

    Query params:
        language: BCP-47 tag (e.g. "en-US"); ``Settings.transcription_language`` if omitted.
    """
    await websocket.accept()
    resolved_language = language or get_settings().transcription_language
    logger.info("Caption WebSocket connected (language=%s)", resolved_language)

    outbox: asyncio.Queue[WebSocketMessage | None] = asyncio.Queue()
    sender = asyncio.create_task(_send_messages(websocket, outbox))

    def post(kind: WebSocketMessageType, **data) -> None:
        outbox.put_nowait(WebSocketMessage(type=kind, data=data))

    def on_result(text: str, is_final: bool) -> None:
        post(WebSocketMessageType.transcript, text=text, is_final=is_final)

    def on_error(message: str) -> None:
        post(WebSocketMessageType.error, detail=message)

    post(WebSocketMessageType.connected, language=resolved_language)

    recognizer = LiveRecognizer(engine)
    started = await recognizer.start(resolved_language, on_result, on_error)
    try:
        if started:
            post(WebSocketMessageType.status, status=TranscriptionStatus.listening)
            while True:
                data = await websocket.receive_bytes()
                recognizer.engine.feed(data)
    except WebSocketDisconnect:
        logger.info("Caption WebSocket disconnected")
    finally:
        recognizer.stop()
        await recognizer.wait_closed()
        post(WebSocketMessageType.status, status=TranscriptionStatus.stopped)
        outbox.put_nowait(None)
        await sender

    if not started:
        await websocket.close()
