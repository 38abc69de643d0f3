"""
Abstract interfaces for transcription strategies and local speech engines.

Every strategy (local live, hosted batch, hosted one-shot) implements
``BaseTranscriber`` so the orchestrator can select one at configuration
time and never branch on flags again. Local recognizers implement
``SpeechEngine``: a start/stop capability that publishes an event stream.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable

import httpx

from voicescribe.core.models import (
    RecognizerEvent,
    RecognizerSupportInfo,
    TranscriptionResult,
    TranscriptionStrategy,
)

ResultCallback = Callable[[str, bool], None]
ErrorCallback = Callable[[str], None]
ProgressCallback = Callable[[int, str], None]


class BaseTranscriber(ABC):
    """Interface that every transcription strategy must implement."""

    strategy: TranscriptionStrategy
    supports_live: bool = False

    @abstractmethod
    async def transcribe(self, audio: bytes, **kwargs) -> TranscriptionResult:
        """Transcribe a finished recording.

        Args:
            audio: Encoded audio bytes (WAV/WebM).
            **kwargs: Optional keys: language, filename, on_progress,
                cancel_event, live_transcript.

        Returns:
            A ``TranscriptionResult``; failures are reported in its ``error``
            field instead of being raised.
        """

    async def start_live(
        self,
        language: str,
        on_result: ResultCallback,
        on_error: ErrorCallback,
    ) -> bool:
        """Begin live recognition. Strategies without a live path return False."""
        return False

    async def prepare_live(self) -> None:
        """Load live-recognition resources before ``support_info`` is read."""

    def stop_live(self) -> None:
        """Stop live recognition (idempotent)."""

    async def wait_live_closed(self, timeout: float = 2.0) -> None:
        """Wait for trailing live results after ``stop_live``."""

    def support_info(self) -> RecognizerSupportInfo:
        return RecognizerSupportInfo(
            supported=False,
            message="Live recognition is disabled while a hosted transcription service is selected.",
        )

    def failure(self, error: str) -> TranscriptionResult:
        """Build an error result attributed to this strategy."""
        return TranscriptionResult(transcript="", strategy_used=self.strategy, error=error)


class SpeechEngine(ABC):
    """A continuous local speech recognizer.

    Engines publish ``RecognizerEvent`` objects: ``result`` events with
    interim/final hypotheses, ``error`` events with a short code such as
    ``no-speech`` or ``not-allowed``, and an ``end`` event whenever the
    session stops, whether requested or not.
    """

    @property
    @abstractmethod
    def supported(self) -> bool:
        """Whether the engine can run in this environment."""

    async def ensure_ready(self) -> None:
        """Load models or devices; ``supported`` is settled once this returns."""

    @abstractmethod
    def start(
        self,
        language: str,
        continuous: bool = True,
        interim_results: bool = True,
    ) -> None:
        """Start a recognition session. Raises if the engine cannot start."""

    @abstractmethod
    def stop(self) -> None:
        """Request the session to end; an ``end`` event follows."""

    @abstractmethod
    def events(self) -> AsyncIterator[RecognizerEvent]:
        """Async iterator over the engine's events."""

    def feed(self, pcm: bytes) -> None:
        """Push captured 16 kHz PCM into engines that do not own the microphone."""

    def support_details(self) -> str | None:
        return None


def error_from_response(response: httpx.Response) -> str:
    """Extract a human-readable error from a failed proxy/vendor response."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error = body.get("error") or body.get("detail")
        if isinstance(error, dict):
            error = error.get("message")
        if error:
            return str(error)
    text = response.text.strip() if response.text else ""
    return text or f"HTTP {response.status_code}"
