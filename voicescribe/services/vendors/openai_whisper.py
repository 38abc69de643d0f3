"""
OpenAI audio transcription client for the hosted one-shot strategy.

Posts the file to ``/audio/transcriptions`` and returns the final text.
"""

import logging

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from voicescribe.core.config import get_settings
from voicescribe.core.exceptions import VendorNotConfiguredError, VendorRequestError
from voicescribe.core.utils import base_language

logger = logging.getLogger(__name__)


class OpenAITranscriptionClient:
    """One-shot transcription via the OpenAI Whisper API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        settings = get_settings()
        self._api_key = api_key if api_key is not None else settings.openai_api_key
        if not self._api_key:
            raise VendorNotConfiguredError("OpenAI", "openai_api_key")
        self._base_url = (base_url or settings.openai_base_url).rstrip("/")
        self._model = model or settings.openai_transcription_model
        self._client = client or httpx.AsyncClient(timeout=120.0)
        self._owns_client = client is None

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type((ConnectionError, TimeoutError)),
        reraise=True,
    )
    async def transcribe(
        self,
        audio: bytes,
        filename: str = "recording.wav",
        language: str | None = None,
    ) -> str:
        """Return the transcript text for *audio*."""
        data = {"model": self._model, "response_format": "json"}
        language_code = base_language(language)
        if language_code:
            data["language"] = language_code

        try:
            response = await self._client.post(
                f"{self._base_url}/audio/transcriptions",
                headers={"authorization": f"Bearer {self._api_key}"},
                files={"file": (filename, audio, "application/octet-stream")},
                data=data,
            )
        except httpx.TimeoutException as exc:
            logger.warning("OpenAI transcription timeout: %s", exc)
            raise TimeoutError(f"OpenAI request timed out: {exc}") from exc
        except httpx.TransportError as exc:
            logger.warning("OpenAI connection error: %s", exc)
            raise ConnectionError(f"Failed to connect to OpenAI: {exc}") from exc

        if not response.is_success:
            try:
                body = response.json()
                detail = body.get("error", {}).get("message") or response.text
            except (ValueError, AttributeError):
                detail = response.text
            logger.error("OpenAI transcription failed (HTTP %d): %s", response.status_code, detail)
            status = response.status_code if response.status_code < 500 else 502
            raise VendorRequestError(detail or f"HTTP {response.status_code}", status_code=status)

        return response.json().get("text", "")
