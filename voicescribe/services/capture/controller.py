"""Recording capture controller.

Owns one capture session at a time: the microphone, the level meter, the
accumulated PCM and the 1 Hz duration timer. ``stop()`` turns the session
into a ``Recording`` and persists it in two phases:

1. save immediately through the store under a bounded retry policy;
2. transcribe in the background and update the saved recording.

A phase 2 failure is reported but never undoes phase 1.
"""

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from voicescribe.core.config import get_settings
from voicescribe.core.exceptions import MicrophoneAccessError, PersistenceError
from voicescribe.core.models import (
    AudioQuality,
    MicrophoneErrorCause,
    Recording,
    RecordingUpdate,
    TranscriptionResult,
)
from voicescribe.core.utils import (
    default_recording_name,
    format_duration,
    validate_transcript,
)
from voicescribe.services.audio import AudioProcessor, LevelMeter
from voicescribe.services.capture.microphone import MicrophoneSource, SoundDeviceMicrophone
from voicescribe.services.retry import RetryPolicy
from voicescribe.services.storage import RecordingStore
from voicescribe.services.transcription.orchestrator import TranscriptionOrchestrator

logger = logging.getLogger(__name__)

MessageCallback = Callable[[str, str], None]


class RecordingCaptureController:
    """Drives start / pause / resume / stop for one recorder.

    Args:
        orchestrator: Transcription orchestrator for this recorder.
        store: Persistence collaborator for finished recordings.
        microphone: Capture source; a ``SoundDeviceMicrophone`` at the
            preset rate if omitted.
        quality: Capture preset; ``Settings.audio_quality`` if omitted.
        retry_policy: Policy wrapping store writes.
        on_message: Receives user-facing notices as (title, description).
        on_warning: Called once per session with the seconds remaining
            before the duration cap.
        tick_interval: Seconds between timer ticks.
        sleep: Awaitable sleep used by the timer (injectable for tests).
    """

    def __init__(
        self,
        orchestrator: TranscriptionOrchestrator,
        store: RecordingStore,
        microphone: MicrophoneSource | None = None,
        quality: AudioQuality | str | None = None,
        retry_policy: RetryPolicy | None = None,
        on_message: MessageCallback | None = None,
        on_warning: Callable[[int], None] | None = None,
        max_seconds: int | None = None,
        warning_lead_seconds: int | None = None,
        tick_interval: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        settings=None,
    ) -> None:
        settings = settings or get_settings()
        self.orchestrator = orchestrator
        self.quality = AudioQuality(quality or settings.audio_quality)
        self.max_seconds = max_seconds or settings.max_recording_seconds
        self.warning_lead_seconds = (
            warning_lead_seconds
            if warning_lead_seconds is not None
            else settings.duration_warning_lead_seconds
        )
        self._store = store
        self._microphone = microphone or SoundDeviceMicrophone(self.quality.sample_rate)
        self._retry = retry_policy or RetryPolicy.from_settings(settings)
        self._on_message = on_message
        self._on_warning = on_warning
        self._tick_interval = tick_interval
        self._sleep = sleep

        self._processor = AudioProcessor(sample_rate=self._microphone.sample_rate)
        self.meter = LevelMeter(self._microphone.sample_rate)
        self._chunks: list[bytes] = []
        self._timer_task: asyncio.Task | None = None
        self._started_at: datetime | None = None
        self._warning_fired = False
        self._auto_stopped = False
        self._cancel_events: dict[str, asyncio.Event] = {}
        self._start_lock = asyncio.Lock()
        # Cleared while stop() is draining the previous session
        self._idle = asyncio.Event()
        self._idle.set()

        self.is_recording = False
        self.is_paused = False
        self.duration_seconds = 0
        self.last_error: MicrophoneErrorCause | None = None
        self.last_save_error: str | None = None
        self.enrichment_task: asyncio.Task | None = None

    @property
    def levels(self) -> list[float]:
        return self.meter.levels

    @property
    def warning_threshold(self) -> int:
        return self.max_seconds - self.warning_lead_seconds

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> bool:
        """Acquire the microphone and begin a session.

        Returns:
            False if the microphone could not be acquired; ``last_error``
            then holds the classified cause.
        """
        async with self._start_lock:
            if self.is_recording:
                logger.info("Stopping the active session before starting a new one")
                await self.stop()
            # A stop() already in flight finishes with the previous session first
            await self._idle.wait()

            self.last_error = None
            try:
                await self._microphone.open(self._on_block)
            except MicrophoneAccessError as exc:
                self.last_error = exc.cause
                self._notify("Microphone Error", exc.detail)
                return False

            self._chunks = []
            self.meter.reset()
            self.duration_seconds = 0
            self._warning_fired = False
            self._auto_stopped = False
            self.is_paused = False
            self.is_recording = True
            self._started_at = datetime.now(UTC)
            self.orchestrator.reset_transcript()

            self._timer_task = asyncio.create_task(self._run_timer())
            await self.orchestrator.start_real_time()
        logger.info("Recording started (%s, %d Hz)", self.quality, self._microphone.sample_rate)
        return True

    def pause(self) -> None:
        """Freeze the timer and the meter; the microphone stays open."""
        if not self.is_recording or self.is_paused:
            return
        self.is_paused = True
        self.meter.freeze()
        logger.info("Recording paused at %s", format_duration(self.duration_seconds))

    def resume(self) -> None:
        if not self.is_recording or not self.is_paused:
            return
        self.is_paused = False
        self.meter.unfreeze()
        logger.info("Recording resumed")

    async def stop(self, name: str | None = None) -> Recording | None:
        """End the session and run the two-phase save.

        Returns:
            The saved recording, or None when nothing was captured or the
            save failed after all retries.
        """
        if not self.is_recording:
            return None
        self.is_recording = False
        self.is_paused = False
        self._stop_timer()
        self._idle.clear()

        # Everything of this session is captured before the first await
        pcm = b"".join(self._chunks)
        self._chunks = []
        duration = self.duration_seconds
        created_at = self._started_at or datetime.now(UTC)
        self._microphone.close()
        self.meter.reset()
        self.orchestrator.stop_real_time()

        try:
            await self.orchestrator.drain_live()
            transcript = self.orchestrator.transcript or None
        finally:
            self._idle.set()

        logger.info("Recording stopped after %s", format_duration(duration))
        if not pcm:
            self._notify("Recording Empty", "No audio was captured.")
            return None

        audio = self._processor.to_wav_bytes(pcm)
        recording = Recording(
            id=uuid.uuid4().hex,
            name=(name or "").strip() or default_recording_name(created_at),
            audio=audio,
            duration_seconds=duration,
            created_at=created_at,
            transcript=transcript,
        )

        saved = await self._save(recording)
        if saved is None:
            return None

        cancel_event = asyncio.Event()
        self._cancel_events[saved.id] = cancel_event
        self.enrichment_task = asyncio.create_task(
            self._enrich(saved, audio, cancel_event, transcript or "")
        )
        return saved

    def cancel_transcription(self, recording_id: str | None = None) -> None:
        """Abandon background hosted transcriptions that are still polling.

        Args:
            recording_id: Only cancel this recording's transcription; all
                pending ones when omitted.
        """
        if recording_id is not None:
            event = self._cancel_events.get(recording_id)
            if event is not None:
                event.set()
            return
        for event in self._cancel_events.values():
            event.set()

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    async def tick(self) -> None:
        """Advance the duration by one second and enforce the thresholds."""
        if not self.is_recording or self.is_paused:
            return
        self.duration_seconds += 1

        if not self._warning_fired and self.duration_seconds >= self.warning_threshold:
            self._warning_fired = True
            remaining = self.max_seconds - self.duration_seconds
            logger.warning("Recording will stop in %ds", remaining)
            if self._on_warning is not None:
                self._on_warning(remaining)
            self._notify(
                "Recording Limit Approaching",
                f"Recording will stop automatically in {format_duration(remaining)}.",
            )

        if not self._auto_stopped and self.duration_seconds >= self.max_seconds:
            self._auto_stopped = True
            logger.info("Maximum recording duration reached, stopping")
            self._notify(
                "Recording Limit Reached",
                f"Recording stopped at the {format_duration(self.max_seconds)} limit.",
            )
            await self.stop()

    async def _run_timer(self) -> None:
        while self.is_recording:
            await self._sleep(self._tick_interval)
            await self.tick()

    def _stop_timer(self) -> None:
        task = self._timer_task
        self._timer_task = None
        # The timer may be the caller (auto-stop); its loop exits on its own
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    # ------------------------------------------------------------------
    # Audio
    # ------------------------------------------------------------------

    def _on_block(self, pcm: bytes) -> None:
        if not self.is_recording or self.is_paused:
            return
        self._chunks.append(pcm)
        self.meter.update(pcm)
        if self.orchestrator.live_enabled:
            self.orchestrator.feed_audio(self._processor.to_recognizer_pcm(pcm))

    # ------------------------------------------------------------------
    # Two-phase save
    # ------------------------------------------------------------------

    async def _save(self, recording: Recording) -> Recording | None:
        self.last_save_error = None
        try:
            saved = await self._retry.run(self._store.save, recording, operation="Save recording")
        except PersistenceError as exc:
            self.last_save_error = exc.detail
            self._notify("Save Failed", exc.detail)
            return None
        self._notify("Recording Saved", f"{saved.name} was saved.")
        return saved

    async def _enrich(
        self,
        saved: Recording,
        audio: bytes,
        cancel_event: asyncio.Event,
        live_transcript: str,
    ) -> TranscriptionResult:
        try:
            result = await self.orchestrator.transcribe_file(
                audio,
                cancel_event=cancel_event,
                filename=f"{saved.id}.wav",
                live_transcript=live_transcript,
            )
        finally:
            self._cancel_events.pop(saved.id, None)

        if result.error:
            logger.warning("Recording %s saved without transcript: %s", saved.id, result.error)
            self._notify(
                "Transcription Failed",
                f"The recording was saved without a transcript: {result.error}",
            )
            return result

        valid, reason = validate_transcript(result.transcript)
        if not valid:
            logger.info("Recording %s keeps no transcript: %s", saved.id, reason)
            return result

        changes = RecordingUpdate(
            transcript=result.transcript,
            diarized_utterances=result.diarized_utterances,
            word_timings=result.word_timings,
        )
        try:
            await self._retry.run(
                self._store.update, saved.id, changes, operation="Update transcript"
            )
        except PersistenceError as exc:
            self._notify("Transcript Not Saved", exc.detail)
            return result
        logger.info("Recording %s enriched with transcript (%s)", saved.id, result.strategy_used)
        return result

    def _notify(self, title: str, description: str) -> None:
        if self._on_message is not None:
            self._on_message(title, description)
