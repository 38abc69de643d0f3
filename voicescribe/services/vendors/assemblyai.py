"""
AssemblyAI client for the hosted batch strategy.

Three calls back the proxy routes: upload the raw audio, submit a
transcription job (speaker labels on by default), and fetch the job.
httpx transport failures are translated to ``ConnectionError`` /
``TimeoutError`` and retried by tenacity; HTTP error responses are not
retried and surface as ``VendorRequestError``.
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


class AssemblyAIClient:
    """Thin async wrapper over the AssemblyAI v2 REST API.

    Args:
        api_key: API key; ``Settings.assemblyai_api_key`` if omitted.
        base_url: API root; ``Settings.assemblyai_base_url`` if omitted.
        client: Optional ``httpx.AsyncClient`` (tests pass a MockTransport one).
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        speaker_labels: bool | None = None,
    ) -> None:
        settings = get_settings()
        self._api_key = api_key if api_key is not None else settings.assemblyai_api_key
        if not self._api_key:
            raise VendorNotConfiguredError("AssemblyAI", "assemblyai_api_key")
        self._base_url = (base_url or settings.assemblyai_base_url).rstrip("/")
        self._speaker_labels = (
            settings.hosted_speaker_labels if speaker_labels is None else speaker_labels
        )
        self._client = client or httpx.AsyncClient(timeout=60.0)
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
    async def _request(self, method: str, path: str, **kwargs) -> dict:
        headers = {"authorization": self._api_key, **kwargs.pop("headers", {})}
        try:
            response = await self._client.request(
                method, f"{self._base_url}{path}", headers=headers, **kwargs
            )
        except httpx.TimeoutException as exc:
            logger.warning("AssemblyAI timeout on %s %s: %s", method, path, exc)
            raise TimeoutError(f"AssemblyAI request timed out: {exc}") from exc
        except httpx.TransportError as exc:
            logger.warning("AssemblyAI connection error on %s %s: %s", method, path, exc)
            raise ConnectionError(f"Failed to connect to AssemblyAI: {exc}") from exc

        if not response.is_success:
            detail = response.text.strip() or f"HTTP {response.status_code}"
            logger.error("AssemblyAI %s %s failed (HTTP %d)", method, path, response.status_code)
            status = response.status_code if response.status_code < 500 else 502
            raise VendorRequestError(f"AssemblyAI request failed: {detail}", status_code=status)
        return response.json()

    async def upload(self, audio: bytes) -> str:
        """Upload raw audio and return the vendor-hosted URL."""
        logger.info("Uploading %d bytes to AssemblyAI", len(audio))
        data = await self._request(
            "POST",
            "/upload",
            content=audio,
            headers={"content-type": "application/octet-stream"},
        )
        return data["upload_url"]

    async def submit(self, audio_url: str, language: str | None = None) -> dict:
        """Start a transcription job; returns ``{id, status}``."""
        payload: dict = {"audio_url": audio_url, "speaker_labels": self._speaker_labels}
        language_code = base_language(language)
        if language_code:
            payload["language_code"] = language_code
        data = await self._request("POST", "/transcript", json=payload)
        logger.info("AssemblyAI job submitted: %s", data.get("id"))
        return {"id": data["id"], "status": data.get("status", "queued")}

    async def transcribe_upload(self, audio: bytes, language: str | None = None) -> dict:
        """Upload then submit in one call."""
        audio_url = await self.upload(audio)
        return await self.submit(audio_url, language=language)

    async def get_transcript(self, job_id: str) -> dict:
        """Fetch a job: ``{status, text?, error?, words?, utterances?, confidence?}``."""
        return await self._request("GET", f"/transcript/{job_id}")
