"""Transcription orchestrator: one contract over three strategies.

``TranscriptionOrchestrator`` selects a single transcriber when it is
built (hosted one-shot, hosted batch, or local live as the fallback) and
exposes ``start_real_time`` / ``stop_real_time`` / ``transcribe_file``
regardless of which one runs. Selecting either hosted strategy suppresses
live local recognition entirely, so partial captions never compete with a
hosted result.

Status only tracks the live-recognition sub-protocol::

    idle --start ok--> listening --error--> error
    any  --"max restart attempts" error--> max-retries-exceeded
    any  --stop_real_time--> idle

Usage::

    orchestrator = TranscriptionOrchestrator(TranscriptionConfig(use_hosted_batch=True))
    await orchestrator.start_real_time()      # no-op for hosted strategies
    result = await orchestrator.transcribe_file(wav_bytes)
"""

import asyncio
import logging
import re
from collections.abc import Callable

from pydantic import BaseModel

from voicescribe.core.models import (
    RecognizerSupportInfo,
    TranscriptionResult,
    TranscriptionStatus,
    TranscriptionStrategy,
)
from voicescribe.services.network import NetworkMonitor
from voicescribe.services.transcription import BaseTranscriber, create_transcriber
from voicescribe.services.transcription.base import ProgressCallback
from voicescribe.services.transcription.live import TranscriptState

logger = logging.getLogger(__name__)

MAX_RETRIES_PATTERN = re.compile(r"max(imum)? restart attempts", re.IGNORECASE)
_NETWORK_ERROR_PATTERN = re.compile(r"network|connection", re.IGNORECASE)


class TranscriptionConfig(BaseModel):
    """Strategy flags chosen by the user."""

    use_hosted_batch: bool = False
    use_hosted_oneshot: bool = False
    language: str = "en-US"

    @property
    def strategy(self) -> TranscriptionStrategy:
        # One-shot wins when both hosted flags are set
        if self.use_hosted_oneshot:
            return TranscriptionStrategy.hosted_oneshot
        if self.use_hosted_batch:
            return TranscriptionStrategy.hosted_batch
        return TranscriptionStrategy.local_live

    @classmethod
    def from_settings(cls, settings) -> "TranscriptionConfig":
        return cls(
            use_hosted_batch=settings.use_hosted_batch,
            use_hosted_oneshot=settings.use_hosted_oneshot,
            language=settings.transcription_language,
        )


class TranscriptionOrchestrator:
    """Coordinates exactly one transcription strategy for one recording session.

    Args:
        config: Strategy flags and language.
        transcriber: Pre-built transcriber (defaults to ``create_transcriber``).
        network_monitor: Connectivity source; a fresh monitor if omitted.
        on_message: Callback receiving user-facing notices (title, description).
    """

    def __init__(
        self,
        config: TranscriptionConfig,
        transcriber: BaseTranscriber | None = None,
        network_monitor: NetworkMonitor | None = None,
        on_message: Callable[[str, str], None] | None = None,
    ) -> None:
        self.config = config
        self._transcriber = transcriber or create_transcriber(config.strategy)
        self.state = TranscriptState()
        self.status = TranscriptionStatus.idle
        self.error: str | None = None
        self.is_transcribing = False
        self.progress = 0
        self._on_message = on_message
        self._live_session = False

        self._network = network_monitor or NetworkMonitor.from_settings()
        self.network_online = self._network.is_online
        self._unsubscribe = self._network.subscribe(self._on_network_change)

    @property
    def strategy(self) -> TranscriptionStrategy:
        return self._transcriber.strategy

    @property
    def transcriber(self) -> BaseTranscriber:
        return self._transcriber

    @property
    def transcript(self) -> str:
        return self.state.text

    @property
    def live_enabled(self) -> bool:
        return self._transcriber.supports_live

    @property
    def support_info(self) -> RecognizerSupportInfo:
        return self._transcriber.support_info()

    # ------------------------------------------------------------------
    # Live recognition
    # ------------------------------------------------------------------

    async def start_real_time(self) -> None:
        """Start live captions; never raises.

        No-op when a hosted strategy is selected. An unsupported local
        recognizer sets status ``error`` and capture continues without it.
        """
        if not self.live_enabled:
            return

        self.error = None
        await self._transcriber.prepare_live()
        info = self.support_info
        if not info.supported:
            logger.warning("Live transcription unavailable: %s", info.message)
            self.error = info.message
            self.status = TranscriptionStatus.error
            self._notify("Transcription Unavailable", info.message)
            return

        self._live_session = True
        try:
            started = await self._transcriber.start_live(
                self.config.language, self._on_live_result, self._on_live_error
            )
        except Exception as exc:
            logger.exception("Live transcription failed to start")
            self._on_live_error(f"Failed to start speech recognition: {exc}")
            return

        if started:
            self.status = TranscriptionStatus.listening
        elif self.status not in (TranscriptionStatus.error, TranscriptionStatus.max_retries_exceeded):
            self.error = self.error or "Speech recognition could not be started."
            self.status = TranscriptionStatus.error

    def stop_real_time(self) -> None:
        """Stop live captions (idempotent) and return to ``idle``."""
        self._live_session = False
        self._transcriber.stop_live()
        self.status = TranscriptionStatus.idle

    async def drain_live(self, timeout: float = 2.0) -> None:
        """Wait for trailing live results after ``stop_real_time``."""
        await self._transcriber.wait_live_closed(timeout)

    def feed_audio(self, pcm: bytes) -> None:
        """Forward captured 16 kHz PCM to a local engine, if one runs."""
        feed = getattr(self._transcriber, "feed", None)
        if feed is not None:
            feed(pcm)

    def _on_live_result(self, text: str, is_final: bool) -> None:
        self.state.set(text)

    def _on_live_error(self, message: str) -> None:
        # Trailing events after stop_real_time must not leave idle
        if not self._live_session:
            logger.info("Live recognition error after stop: %s", message)
            return
        if not self.network_online and _NETWORK_ERROR_PATTERN.search(message):
            logger.info("Suppressing live recognition error while offline: %s", message)
            return

        logger.warning("Live transcription error: %s", message)
        self.error = message
        if MAX_RETRIES_PATTERN.search(message):
            self.status = TranscriptionStatus.max_retries_exceeded
            self._notify("Live Transcription Stopped", message)
        else:
            self.status = TranscriptionStatus.error

    def _on_network_change(self, online: bool) -> None:
        previous = self.network_online
        self.network_online = online
        if previous == online or not self.live_enabled:
            return
        if self.status not in (TranscriptionStatus.listening, TranscriptionStatus.error):
            return
        if online:
            self._notify("Connection Restored", "Live transcription will resume.")
        else:
            self._notify(
                "Connection Lost",
                "Live transcription may pause until the network returns.",
            )

    # ------------------------------------------------------------------
    # File transcription
    # ------------------------------------------------------------------

    async def transcribe_file(
        self,
        audio: bytes,
        on_progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
        filename: str | None = None,
        live_transcript: str | None = None,
    ) -> TranscriptionResult:
        """Transcribe a finished recording with the configured strategy.

        Allowed from any status. Failures come back in ``result.error``;
        a non-empty hosted transcript is cached on ``self.state``.
        ``live_transcript`` pins what the local-live strategy returns, for
        sessions that ended before a new one reset the state.
        """
        self.is_transcribing = True
        self.progress = 0

        def report(percent: int, status: str) -> None:
            self.progress = percent
            if on_progress is not None:
                on_progress(percent, status)

        try:
            result = await self._transcriber.transcribe(
                audio,
                language=self.config.language,
                filename=filename,
                on_progress=report,
                cancel_event=cancel_event,
                live_transcript=self.state.text if live_transcript is None else live_transcript,
            )
        except Exception as exc:
            logger.exception("Transcription failed (%s)", self.strategy)
            result = TranscriptionResult(
                transcript="",
                strategy_used=TranscriptionStrategy.manual,
                error=str(exc) or "Failed to transcribe",
            )
        finally:
            self.is_transcribing = False

        if result.error:
            self.error = result.error
            self._notify("Transcription Error", result.error)
        elif result.transcript and result.strategy_used != TranscriptionStrategy.local_live:
            self.state.set(result.transcript)
        return result

    def reset_transcript(self) -> None:
        self.state.reset()
        self.error = None

    def close(self) -> None:
        """Stop live recognition and detach from the network monitor."""
        self.stop_real_time()
        self._unsubscribe()

    def _notify(self, title: str, description: str) -> None:
        if self._on_message is None:
            return
        try:
            self._on_message(title, description)
        except Exception:
            logger.warning("Message callback failed for %r (non-fatal)", title)
