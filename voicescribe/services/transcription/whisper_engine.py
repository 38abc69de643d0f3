"""Local streaming speech engine using faster-whisper.

Captured PCM is pushed in with ``feed()``; a background task cuts it into
windows, recognizes each one off the event loop and publishes the results
on the ``SpeechEngine`` event stream. The WhisperModel is loaded lazily and
cached at module level to avoid repeated initialization overhead.
"""

import asyncio
import logging
import threading
from collections.abc import AsyncIterator

import numpy as np
from faster_whisper import WhisperModel

from voicescribe.core.config import get_settings
from voicescribe.core.models import (
    RecognitionAlternative,
    RecognizerEvent,
    RecognizerEventKind,
)
from voicescribe.core.utils import base_language
from voicescribe.services.audio.buffer import AudioBuffer
from voicescribe.services.audio.processor import AudioProcessor
from voicescribe.services.transcription.base import SpeechEngine

logger = logging.getLogger(__name__)

_model_cache: WhisperModel | None = None
_model_lock = threading.Lock()

# Interim hypotheses are refreshed once this much new audio has arrived
_INTERIM_STEP_SECONDS = 1.0


class WhisperStreamingEngine(SpeechEngine):
    """Continuous recognizer over faster-whisper (CTranslate2).

    Args:
        model_size: Whisper model size (tiny, base, small, medium, large-v3).
        device: Computation device ("cpu" or "cuda").
        compute_type: CTranslate2 compute type ("int8", "float16", etc.).
        window_seconds: Audio per final recognition window.
        settings: Optional Settings instance (defaults to get_settings()).
    """

    def __init__(
        self,
        model_size: str | None = None,
        device: str | None = None,
        compute_type: str | None = None,
        window_seconds: float = 3.0,
        settings=None,
    ) -> None:
        self._settings = settings or get_settings()
        self._model_size = model_size or self._settings.whisper_model
        self._device = device or self._settings.whisper_device
        self._compute_type = compute_type or self._settings.whisper_compute_type
        self._window_seconds = window_seconds
        self._processor = AudioProcessor()
        self._supported: bool | None = None
        self._load_error: str | None = None

        self._events: asyncio.Queue[RecognizerEvent] = asyncio.Queue()
        self._audio: asyncio.Queue[bytes | None] | None = None
        self._task: asyncio.Task | None = None
        self._language: str | None = None
        self._continuous = True
        self._interim = True

    def _get_model(self) -> WhisperModel:
        """Return the cached WhisperModel, loading it on first use."""
        global _model_cache  # noqa: PLW0603
        with _model_lock:
            if _model_cache is None:
                logger.info(
                    "Loading Whisper model: %s (device=%s, compute=%s)",
                    self._model_size,
                    self._device,
                    self._compute_type,
                )
                _model_cache = WhisperModel(
                    self._model_size,
                    device=self._device,
                    compute_type=self._compute_type,
                )
            return _model_cache

    async def ensure_ready(self) -> None:
        """Load the model off the event loop; a failed load is remembered."""
        if self._supported is not None:
            return
        try:
            await asyncio.to_thread(self._get_model)
        except Exception as exc:
            logger.warning("Local speech recognition unavailable: %s", exc)
            self._load_error = str(exc)
            self._supported = False
            return
        self._supported = True

    @property
    def supported(self) -> bool:
        """True once ``ensure_ready`` has loaded the model."""
        return bool(self._supported)

    def support_details(self) -> str | None:
        if self._load_error:
            return f"Whisper model '{self._model_size}' failed to load: {self._load_error}"
        return f"Using faster-whisper '{self._model_size}' on {self._device}"

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(
        self,
        language: str,
        continuous: bool = True,
        interim_results: bool = True,
    ) -> None:
        if self.running:
            raise RuntimeError("Recognition session already started")
        self._language = base_language(language)
        self._continuous = continuous
        self._interim = interim_results
        self._audio = asyncio.Queue()
        self._task = asyncio.create_task(self._run(self._audio))
        logger.info("Whisper engine started (language=%s)", self._language or "auto")

    def stop(self) -> None:
        if self._audio is not None:
            self._audio.put_nowait(None)
            self._audio = None

    def feed(self, pcm: bytes) -> None:
        if self._audio is not None:
            self._audio.put_nowait(pcm)

    async def events(self) -> AsyncIterator[RecognizerEvent]:
        while True:
            yield await self._events.get()

    def _run_transcription(self, audio: np.ndarray, beam_size: int) -> str:
        """Run synchronous recognition (CPU-bound); call via asyncio.to_thread()."""
        model = self._get_model()
        segments_iter, _info = model.transcribe(
            audio,
            language=self._language,
            beam_size=beam_size,
            vad_filter=False,
        )
        # Materialize in the worker thread; CTranslate2 iterators are not thread-safe
        return " ".join(seg.text.strip() for seg in segments_iter if seg.text.strip())

    async def _recognize(self, audio: np.ndarray, is_final: bool) -> None:
        if self._processor.is_silent(audio):
            if is_final:
                self._emit_error("no-speech")
            return
        text = await asyncio.to_thread(
            self._run_transcription, audio, 5 if is_final else 1
        )
        if text:
            self._events.put_nowait(
                RecognizerEvent(
                    kind=RecognizerEventKind.result,
                    results=[RecognitionAlternative(transcript=text, is_final=is_final)],
                )
            )

    def _emit_error(self, code: str) -> None:
        self._events.put_nowait(RecognizerEvent(kind=RecognizerEventKind.error, error_code=code))

    async def _run(self, audio_queue: asyncio.Queue) -> None:
        buffer = AudioBuffer(window_seconds=self._window_seconds)
        interim_mark = 0.0
        try:
            while True:
                chunk = await audio_queue.get()
                if chunk is None:
                    break
                buffer.add_bytes(chunk)

                while buffer.has_window():
                    await self._recognize(buffer.next_window(), is_final=True)
                    interim_mark = 0.0
                    if not self._continuous:
                        return

                pending = buffer.buffered_seconds
                if self._interim and pending - interim_mark >= _INTERIM_STEP_SECONDS:
                    interim_mark = pending
                    partial = buffer.peek()
                    if partial is not None:
                        await self._recognize(partial, is_final=False)

            tail = buffer.flush()
            if tail is not None:
                await self._recognize(tail, is_final=True)
        except Exception:
            logger.exception("Whisper engine crashed")
            self._emit_error("aborted")
        finally:
            self._task = None
            self._events.put_nowait(RecognizerEvent(kind=RecognizerEventKind.end))
