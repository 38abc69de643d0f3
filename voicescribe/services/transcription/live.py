"""Live local recognition with auto-restart.

``LiveRecognizer`` consumes a ``SpeechEngine`` event stream and turns it
into caption callbacks. It accumulates finalized segments into a running
transcript, reports finalized+interim text on every result, restarts the
engine whenever a session ends unexpectedly, and gives up with a
"max restart attempts" message when restarting fails or storms.

``LiveTranscriber`` adapts the recognizer to the ``BaseTranscriber``
strategy interface: its file transcription simply returns what was heard.
"""

import asyncio
import logging

from voicescribe.core.models import (
    RecognizerEvent,
    RecognizerEventKind,
    RecognizerSupportInfo,
    TranscriptionResult,
    TranscriptionStrategy,
)
from voicescribe.services.transcription.base import (
    BaseTranscriber,
    ErrorCallback,
    ResultCallback,
    SpeechEngine,
)

logger = logging.getLogger(__name__)

MAX_RESTART_MESSAGE = (
    "Speech recognition stopped: max restart attempts reached. "
    "Recording continues without live captions."
)
UNSUPPORTED_MESSAGE = (
    "Speech recognition is not supported in this environment. "
    "Recording will continue without transcription."
)

# Expected during pauses; never surfaced
SILENCE_ERROR_CODES = frozenset({"no-speech"})
# Fatal; disable auto-restart
PERMISSION_ERROR_CODES = frozenset({"not-allowed", "service-not-allowed"})

ERROR_MESSAGES = {
    "audio-capture": "Microphone access denied. Please allow microphone access and try again.",
    "not-allowed": "Microphone access denied. Please allow microphone access in your settings.",
    "network": "Network error. Please check your internet connection.",
    "service-not-allowed": "Speech recognition service not allowed. Please check your settings.",
    "language-not-supported": "The selected language is not supported for live recognition.",
    "aborted": "Speech recognition was interrupted.",
}


def describe_error(code: str) -> str:
    """Translate an engine error code into a user-facing message."""
    return ERROR_MESSAGES.get(code, f"Speech recognition error: {code}")


class TranscriptState:
    """Owned holder for the latest transcript of a session.

    Written by live-result callbacks and successful file transcriptions,
    read by file transcription and the UI.
    """

    def __init__(self) -> None:
        self.text = ""

    def set(self, text: str) -> None:
        self.text = text

    def reset(self) -> None:
        self.text = ""


class LiveRecognizer:
    """Drives a ``SpeechEngine`` session with auto-restart.

    Args:
        engine: The local speech engine.
        max_consecutive_restarts: Restarts allowed without any result in
            between before the session is declared a restart storm.
    """

    def __init__(self, engine: SpeechEngine, max_consecutive_restarts: int = 5) -> None:
        self._engine = engine
        self._max_restarts = max_consecutive_restarts
        self._should_restart = False
        self._active = False
        self._language = "en-US"
        self._final_text = ""
        self._restarts = 0
        self._on_result: ResultCallback | None = None
        self._on_error: ErrorCallback | None = None
        self._pump_task: asyncio.Task | None = None

    @property
    def engine(self) -> SpeechEngine:
        return self._engine

    @property
    def should_restart(self) -> bool:
        return self._should_restart

    @property
    def active(self) -> bool:
        return self._active

    @property
    def final_transcript(self) -> str:
        return self._final_text.strip()

    def support_info(self) -> RecognizerSupportInfo:
        if self._engine.supported:
            return RecognizerSupportInfo(
                supported=True,
                message="Speech recognition is supported in this environment",
                details=self._engine.support_details(),
            )
        return RecognizerSupportInfo(
            supported=False,
            message=UNSUPPORTED_MESSAGE,
            details=self._engine.support_details(),
        )

    async def start(
        self,
        language: str,
        on_result: ResultCallback,
        on_error: ErrorCallback,
    ) -> bool:
        """Start a new session, replacing any previous one.

        Returns:
            False if the engine is unsupported or refused to start.
        """
        await self._engine.ensure_ready()
        if not self._engine.supported:
            logger.error("Speech recognition not supported")
            on_error(UNSUPPORTED_MESSAGE)
            return False

        if self._active or self._pump_task is not None:
            # Old session must not restart itself once replaced
            self._should_restart = False
            self._engine.stop()
            await self.wait_closed()
            self._active = False

        self._language = language
        self._on_result = on_result
        self._on_error = on_error
        self._final_text = ""
        self._restarts = 0

        try:
            self._engine.start(language, continuous=True, interim_results=True)
        except Exception as exc:
            logger.exception("Failed to start speech recognition")
            on_error(f"Failed to start speech recognition: {exc}")
            return False

        self._should_restart = True
        self._active = True
        self._pump_task = asyncio.create_task(self._pump())
        logger.info("Speech recognition started (language=%s)", language)
        return True

    def stop(self) -> None:
        """Disable auto-restart and end the session (idempotent)."""
        self._should_restart = False
        if self._active:
            self._engine.stop()
            logger.info("Speech recognition stop requested")

    async def wait_closed(self, timeout: float = 2.0) -> None:
        """Wait for the engine's trailing events after ``stop()``."""
        task = self._pump_task
        if task is None:
            return
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
        except TimeoutError:
            logger.warning("Speech engine did not end within %.1fs; detaching", timeout)
            await self._cancel_pump()
            self._active = False

    async def _cancel_pump(self) -> None:
        task = self._pump_task
        self._pump_task = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _pump(self) -> None:
        try:
            async for event in self._engine.events():
                self.dispatch(event)
                if not self._active:
                    break
        finally:
            if self._pump_task is asyncio.current_task():
                self._pump_task = None

    def dispatch(self, event: RecognizerEvent) -> None:
        """Apply one engine event to the session state."""
        if event.kind == RecognizerEventKind.result:
            self._handle_result(event)
        elif event.kind == RecognizerEventKind.error:
            self._handle_error(event.error_code or "unknown")
        elif event.kind == RecognizerEventKind.end:
            self._handle_end()

    def _handle_result(self, event: RecognizerEvent) -> None:
        self._restarts = 0
        interim = ""
        for alternative in event.results:
            if alternative.is_final:
                self._final_text += alternative.transcript.strip() + " "
                self._emit_result(self._final_text.strip(), True)
            else:
                interim += alternative.transcript
                self._emit_result(self._final_text + interim, False)

    def _handle_error(self, code: str) -> None:
        if code in PERMISSION_ERROR_CODES:
            self._should_restart = False
        if code in SILENCE_ERROR_CODES:
            return
        logger.warning("Speech recognition error: %s", code)
        self._emit_error(describe_error(code))

    def _handle_end(self) -> None:
        if not self._should_restart:
            logger.info("Speech recognition ended")
            self._active = False
            return

        self._restarts += 1
        if self._restarts > self._max_restarts:
            logger.error("Speech recognition restarted %d times without results", self._max_restarts)
            self._give_up()
            return

        logger.info("Auto-restarting speech recognition (attempt %d)", self._restarts)
        try:
            self._engine.start(self._language, continuous=True, interim_results=True)
        except Exception:
            logger.exception("Failed to restart speech recognition")
            self._give_up()

    def _give_up(self) -> None:
        self._should_restart = False
        self._active = False
        self._emit_error(MAX_RESTART_MESSAGE)

    def _emit_result(self, text: str, is_final: bool) -> None:
        if self._on_result is not None:
            self._on_result(text, is_final)

    def _emit_error(self, message: str) -> None:
        if self._on_error is not None:
            self._on_error(message)


class LiveTranscriber(BaseTranscriber):
    """Strategy backed by the local live recognizer.

    File transcription reuses the transcript heard live during the
    session; there is no separate upload path.
    """

    strategy = TranscriptionStrategy.local_live
    supports_live = True

    def __init__(self, recognizer: LiveRecognizer, confidence: float = 0.8) -> None:
        self._recognizer = recognizer
        self._confidence = confidence

    @property
    def recognizer(self) -> LiveRecognizer:
        return self._recognizer

    def support_info(self) -> RecognizerSupportInfo:
        return self._recognizer.support_info()

    async def prepare_live(self) -> None:
        await self._recognizer.engine.ensure_ready()

    async def start_live(
        self,
        language: str,
        on_result: ResultCallback,
        on_error: ErrorCallback,
    ) -> bool:
        return await self._recognizer.start(language, on_result, on_error)

    def stop_live(self) -> None:
        self._recognizer.stop()

    async def wait_live_closed(self, timeout: float = 2.0) -> None:
        await self._recognizer.wait_closed(timeout)

    def feed(self, pcm: bytes) -> None:
        self._recognizer.engine.feed(pcm)

    async def transcribe(self, audio: bytes, **kwargs) -> TranscriptionResult:
        transcript = kwargs.get("live_transcript")
        if transcript is None:
            transcript = self._recognizer.final_transcript
        return TranscriptionResult(
            transcript=transcript.strip(),
            strategy_used=self.strategy,
            confidence=self._confidence,
        )
