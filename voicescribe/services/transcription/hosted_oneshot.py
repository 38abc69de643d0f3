"""Hosted one-shot transcription: one request, one final transcript.

Used for short or pre-recorded clips. The audio is posted to this server's
``/api/v1/whisper`` proxy, which answers ``{"text": ...}`` or an error
body ``{"error": ...}``. There is no retry at this layer; any non-2xx
response or a body without a transcript is a hard failure.
"""

import logging

import httpx

from voicescribe.core.config import get_settings
from voicescribe.core.models import TranscriptionResult, TranscriptionStrategy
from voicescribe.core.utils import base_language
from voicescribe.services.transcription.base import BaseTranscriber, error_from_response

logger = logging.getLogger(__name__)


class OneShotHostedTranscriber(BaseTranscriber):
    """Single-call client for the hosted one-shot service.

    Args:
        base_url: Base URL of the proxy server (defaults to settings).
        client: Optional ``httpx.AsyncClient``; one is created per call otherwise.
        timeout: Request timeout in seconds.
    """

    strategy = TranscriptionStrategy.hosted_oneshot

    def __init__(
        self,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 120.0,
        settings=None,
    ) -> None:
        settings = settings or get_settings()
        self._base_url = (base_url or settings.api_base_url).rstrip("/")
        self._client = client
        self._timeout = timeout

    async def transcribe(self, audio: bytes, **kwargs) -> TranscriptionResult:
        if self._client is not None:
            return await self._transcribe(self._client, audio, **kwargs)
        async with httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout) as client:
            return await self._transcribe(client, audio, **kwargs)

    async def _transcribe(self, client: httpx.AsyncClient, audio: bytes, **kwargs) -> TranscriptionResult:
        filename = kwargs.get("filename") or "recording.wav"
        form = {}
        language = base_language(kwargs.get("language"))
        if language:
            form["language"] = language

        logger.info("Submitting %d bytes for one-shot transcription", len(audio))
        try:
            response = await client.post(
                "/api/v1/whisper",
                files={"file": (filename, audio, "application/octet-stream")},
                data=form,
            )
        except httpx.HTTPError as exc:
            logger.error("One-shot transcription request failed: %s", exc)
            return self.failure(f"Transcription request failed: {exc}")

        if not response.is_success:
            error = error_from_response(response)
            logger.error("One-shot transcription failed (HTTP %d): %s", response.status_code, error)
            return self.failure(error)

        try:
            body = response.json()
        except ValueError:
            return self.failure("Transcription service returned an invalid response")

        text = body.get("text") if isinstance(body, dict) else None
        if text is None:
            return self.failure("Transcription service response did not include a transcript")

        if not text.strip():
            logger.warning("One-shot transcription returned an empty transcript")
        return TranscriptionResult(transcript=text.strip(), strategy_used=self.strategy)
