"""Microphone sources for the capture controller.

``SoundDeviceMicrophone`` opens a PortAudio input stream through
``sounddevice`` and delivers 16-bit mono PCM blocks on the event loop.
Every acquisition failure is mapped onto ``MicrophoneErrorCause`` and
raised as ``MicrophoneAccessError``.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable

from voicescribe.core.exceptions import MicrophoneAccessError
from voicescribe.core.models import MicrophoneErrorCause

logger = logging.getLogger(__name__)

BlockCallback = Callable[[bytes], None]

# Substrings of PortAudio error texts, checked in order
_PORTAUDIO_CAUSES: list[tuple[str, MicrophoneErrorCause]] = [
    ("permission", MicrophoneErrorCause.permission_denied),
    ("not authorized", MicrophoneErrorCause.permission_denied),
    ("no default input device", MicrophoneErrorCause.no_device),
    ("no input device", MicrophoneErrorCause.no_device),
    ("invalid device", MicrophoneErrorCause.no_device),
    ("device unavailable", MicrophoneErrorCause.device_busy),
    ("device busy", MicrophoneErrorCause.device_busy),
    ("resource busy", MicrophoneErrorCause.device_busy),
    ("invalid sample rate", MicrophoneErrorCause.unsupported_constraints),
    ("invalid number of channels", MicrophoneErrorCause.unsupported_constraints),
    ("sample format not supported", MicrophoneErrorCause.unsupported_constraints),
    ("portaudio library not found", MicrophoneErrorCause.unsupported_environment),
    ("interrupted", MicrophoneErrorCause.aborted),
    ("aborted", MicrophoneErrorCause.aborted),
]


def classify_microphone_error(exc: BaseException) -> MicrophoneErrorCause:
    """Map an exception raised while opening the microphone to a cause."""
    if isinstance(exc, MicrophoneAccessError):
        return exc.cause
    if isinstance(exc, PermissionError):
        return MicrophoneErrorCause.permission_denied
    if isinstance(exc, asyncio.CancelledError):
        return MicrophoneErrorCause.aborted
    text = str(exc).lower()
    for needle, cause in _PORTAUDIO_CAUSES:
        if needle in text:
            return cause
    if isinstance(exc, (ImportError, OSError)):
        return MicrophoneErrorCause.unsupported_environment
    return MicrophoneErrorCause.unknown


class MicrophoneSource(ABC):
    """A capture device producing PCM blocks."""

    sample_rate: int

    @abstractmethod
    async def open(self, on_block: BlockCallback) -> None:
        """Start delivering blocks to *on_block*.

        Raises:
            MicrophoneAccessError: If the device cannot be acquired.
        """

    @abstractmethod
    def close(self) -> None:
        """Release the device (idempotent)."""


class SoundDeviceMicrophone(MicrophoneSource):
    """PortAudio input stream via ``sounddevice.RawInputStream``.

    Args:
        sample_rate: Capture rate in Hz (from the quality preset).
        blocksize: Frames per callback; 100 ms of audio by default.
        device: PortAudio device index or name; system default if None.
    """

    def __init__(
        self,
        sample_rate: int,
        blocksize: int | None = None,
        device: int | str | None = None,
    ) -> None:
        self.sample_rate = sample_rate
        self._blocksize = blocksize or sample_rate // 10
        self._device = device
        self._stream = None

    async def open(self, on_block: BlockCallback) -> None:
        if self._stream is not None:
            raise MicrophoneAccessError(MicrophoneErrorCause.device_busy)

        loop = asyncio.get_running_loop()

        def callback(indata, frames, time_info, status) -> None:
            if status:
                logger.warning("Input stream status: %s", status)
            loop.call_soon_threadsafe(on_block, bytes(indata))

        try:
            # PortAudio is loaded on import and may be missing entirely
            import sounddevice as sd

            stream = sd.RawInputStream(
                samplerate=self.sample_rate,
                channels=1,
                dtype="int16",
                blocksize=self._blocksize,
                device=self._device,
                callback=callback,
            )
            stream.start()
        except Exception as exc:
            cause = classify_microphone_error(exc)
            logger.error("Microphone acquisition failed (%s): %s", cause.name, exc)
            raise MicrophoneAccessError(cause) from exc

        self._stream = stream
        logger.info("Microphone opened at %d Hz", self.sample_rate)

    def close(self) -> None:
        stream = self._stream
        self._stream = None
        if stream is None:
            return
        stream.stop()
        stream.close()
        logger.info("Microphone closed")
