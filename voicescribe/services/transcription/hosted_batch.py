"""Hosted batch transcription: submit a job, then poll until it finishes.

The audio goes to this server's ``/api/v1/transcribe`` proxy, which
returns a vendor job id. The job is then polled once per interval until it
reports ``completed`` or ``error``, or until a deadline sized from the
audio length expires:

    timeout = max(60s, 30s + ceil(size_in_MB) * 60s), capped at 5 minutes

Progress is estimated from the job status and the number of polls, since
the vendor does not report it.
"""

import asyncio
import logging
import math
import time
from collections.abc import Awaitable, Callable

import httpx

from voicescribe.core.config import get_settings
from voicescribe.core.models import (
    DiarizedUtterance,
    HostedJobStatus,
    TranscriptionResult,
    TranscriptionStrategy,
    WordTiming,
)
from voicescribe.services.transcription.base import (
    BaseTranscriber,
    ProgressCallback,
    error_from_response,
)

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024
MIN_TIMEOUT_SECONDS = 60.0
BASE_TIMEOUT_SECONDS = 30.0
SECONDS_PER_MB = 60.0


def compute_timeout(size_bytes: int) -> float:
    """Polling deadline for an upload of *size_bytes*."""
    size_mb = math.ceil(size_bytes / BYTES_PER_MB)
    return max(MIN_TIMEOUT_SECONDS, BASE_TIMEOUT_SECONDS + size_mb * SECONDS_PER_MB)


def estimate_progress(status: str, attempt: int, max_attempts: int) -> int:
    """Estimated completion percentage for a job status.

    queued → 10, processing → 10 + up to 80 scaled by polls used,
    completed → 100.
    """
    if status == HostedJobStatus.completed:
        return 100
    if status == HostedJobStatus.processing:
        fraction = attempt / max_attempts if max_attempts > 0 else 0.0
        return int(10 + min(80.0, fraction * 80.0))
    return 10


class _JobFailed(Exception):
    """Fatal job failure carrying the message surfaced to the caller."""


def _json_object(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError as exc:
        raise _JobFailed("Transcription service returned an invalid response") from exc
    if not isinstance(body, dict):
        raise _JobFailed("Transcription service returned an invalid response")
    return body


class HostedJobTranscriber(BaseTranscriber):
    """Submit→poll→complete client for the hosted batch service.

    Args:
        base_url: Base URL of the proxy server (defaults to settings).
        client: Optional ``httpx.AsyncClient``; one is created per call otherwise.
        poll_interval: Seconds between polls.
        max_wait: Hard ceiling on the polling deadline in seconds.
        clock: Monotonic clock used for the deadline (injectable for tests).
        sleep: Awaitable sleep used between polls (injectable for tests).
    """

    strategy = TranscriptionStrategy.hosted_batch

    def __init__(
        self,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        poll_interval: float | None = None,
        max_wait: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        settings=None,
    ) -> None:
        settings = settings or get_settings()
        self._base_url = (base_url or settings.api_base_url).rstrip("/")
        self._client = client
        self._poll_interval = poll_interval or settings.hosted_poll_interval
        self._max_wait = max_wait or settings.hosted_max_wait
        self._clock = clock
        self._sleep = sleep

    def timeout_for(self, size_bytes: int) -> float:
        """Dynamic deadline, bounded by the hard ceiling."""
        return min(compute_timeout(size_bytes), self._max_wait)

    async def transcribe(self, audio: bytes, **kwargs) -> TranscriptionResult:
        on_progress: ProgressCallback | None = kwargs.get("on_progress")
        cancel_event: asyncio.Event | None = kwargs.get("cancel_event")
        filename = kwargs.get("filename") or "recording.wav"
        language: str | None = kwargs.get("language")

        if self._client is not None:
            return await self._transcribe(
                self._client, audio, filename, language, on_progress, cancel_event
            )
        async with httpx.AsyncClient(base_url=self._base_url, timeout=30.0) as client:
            return await self._transcribe(
                client, audio, filename, language, on_progress, cancel_event
            )

    async def _transcribe(
        self,
        client: httpx.AsyncClient,
        audio: bytes,
        filename: str,
        language: str | None,
        on_progress: ProgressCallback | None,
        cancel_event: asyncio.Event | None,
    ) -> TranscriptionResult:
        try:
            job_id = await self._submit(client, audio, filename, language)
            return await self._wait_for_job(client, job_id, len(audio), on_progress, cancel_event)
        except _JobFailed as exc:
            logger.error("Hosted transcription failed: %s", exc)
            return self.failure(str(exc))

    async def _submit(
        self, client: httpx.AsyncClient, audio: bytes, filename: str, language: str | None
    ) -> str:
        logger.info("Submitting %d bytes for hosted transcription", len(audio))
        try:
            response = await client.post(
                "/api/v1/transcribe",
                files={"file": (filename, audio, "application/octet-stream")},
                data={"language": language} if language else None,
            )
        except httpx.HTTPError as exc:
            raise _JobFailed(f"Failed to start transcription: {exc}") from exc

        if not response.is_success:
            raise _JobFailed(error_from_response(response))

        job_id = _json_object(response).get("id")
        if not job_id:
            raise _JobFailed("Failed to start transcription: no job id returned")
        logger.info("Hosted transcription job submitted: %s", job_id)
        return str(job_id)

    async def _wait_for_job(
        self,
        client: httpx.AsyncClient,
        job_id: str,
        size_bytes: int,
        on_progress: ProgressCallback | None,
        cancel_event: asyncio.Event | None,
    ) -> TranscriptionResult:
        timeout = self.timeout_for(size_bytes)
        max_attempts = max(math.ceil(timeout / self._poll_interval), 1)
        started = self._clock()
        attempt = 0
        self._report(on_progress, HostedJobStatus.queued, attempt, max_attempts)

        while self._clock() - started < timeout:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Hosted transcription job %s cancelled", job_id)
                raise _JobFailed("Transcription cancelled")

            attempt += 1
            data = await self._poll(client, job_id, attempt)
            if data is not None:
                status = data.get("status")
                if status == HostedJobStatus.completed:
                    self._report(on_progress, HostedJobStatus.completed, attempt, max_attempts)
                    logger.info("Hosted transcription job %s completed", job_id)
                    try:
                        return self._to_result(data)
                    except (TypeError, ValueError) as exc:
                        raise _JobFailed(f"Malformed transcription result: {exc}") from exc
                if status == HostedJobStatus.error:
                    raise _JobFailed(data.get("error") or "Transcription failed")
                self._report(on_progress, status or HostedJobStatus.queued, attempt, max_attempts)

            await self._sleep(self._poll_interval)

        raise _JobFailed(f"Transcription timed out after {int(timeout)}s")

    async def _poll(self, client: httpx.AsyncClient, job_id: str, attempt: int) -> dict | None:
        """Fetch the job status once; None means a transient failure."""
        try:
            response = await client.get(f"/api/v1/transcribe/{job_id}")
        except httpx.TransportError as exc:
            logger.warning("Poll %d for job %s failed (%s); retrying", attempt, job_id, exc)
            return None

        if response.status_code >= 500:
            logger.warning(
                "Poll %d for job %s returned HTTP %d; retrying",
                attempt,
                job_id,
                response.status_code,
            )
            return None
        if not response.is_success:
            raise _JobFailed(error_from_response(response))
        return _json_object(response)

    @staticmethod
    def _report(
        on_progress: ProgressCallback | None,
        status: str,
        attempt: int,
        max_attempts: int,
    ) -> None:
        if on_progress is not None:
            on_progress(estimate_progress(status, attempt, max_attempts), str(status))

    def _to_result(self, data: dict) -> TranscriptionResult:
        words = None
        if data.get("words"):
            words = sorted(
                (
                    WordTiming(
                        text=w.get("text", ""),
                        start_ms=int(w.get("start", 0)),
                        end_ms=int(w.get("end", 0)),
                        confidence=float(w.get("confidence") or 0.0),
                        speaker=w.get("speaker"),
                    )
                    for w in data["words"]
                ),
                key=lambda w: w.start_ms,
            )

        utterances = None
        if data.get("utterances"):
            utterances = [
                DiarizedUtterance(
                    speaker=str(u.get("speaker", "")),
                    text=u.get("text", ""),
                    start_ms=int(u.get("start", 0)),
                    end_ms=int(u.get("end", 0)),
                )
                for u in data["utterances"]
            ]

        confidence = data.get("confidence")
        return TranscriptionResult(
            transcript=data.get("text") or "",
            strategy_used=self.strategy,
            confidence=float(confidence) if confidence is not None else None,
            diarized_utterances=utterances,
            word_timings=words,
        )
