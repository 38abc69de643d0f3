"""Audio processing utilities for PCM data.

Converts raw PCM bytes to numpy arrays, packs captured audio into WAV
containers, resamples capture-rate audio down to the recognizer rate and
provides silence detection.
"""

import io
import wave

import numpy as np

# faster-whisper expects 16 kHz mono float32
RECOGNIZER_SAMPLE_RATE = 16_000


class AudioProcessor:
    """Handles PCM audio data conversion and analysis.

    Args:
        sample_rate: Audio sample rate in Hz.
        sample_width: Bytes per sample (2 = 16-bit signed PCM).
        channels: Number of audio channels (1 = mono).
    """

    def __init__(
        self,
        sample_rate: int = RECOGNIZER_SAMPLE_RATE,
        sample_width: int = 2,
        channels: int = 1,
    ) -> None:
        self.sample_rate = sample_rate
        self.sample_width = sample_width
        self.channels = channels

    @property
    def bytes_per_second(self) -> int:
        return self.sample_rate * self.sample_width * self.channels

    def pcm_to_ndarray(self, pcm_data: bytes) -> np.ndarray:
        """Convert raw PCM bytes (16-bit signed) to float32 numpy array.

        Raises:
            ValueError: If data length is not aligned to sample frame size.
        """
        frame_size = self.sample_width * self.channels
        if len(pcm_data) % frame_size != 0:
            raise ValueError(
                f"PCM data length ({len(pcm_data)}) is not aligned to frame size ({frame_size})"
            )
        return np.frombuffer(pcm_data, dtype=np.int16).astype(np.float32) / 32768.0

    def resample(self, audio: np.ndarray, target_rate: int = RECOGNIZER_SAMPLE_RATE) -> np.ndarray:
        """Linearly resample a float32 signal from ``sample_rate`` to *target_rate*."""
        if self.sample_rate == target_rate or len(audio) == 0:
            return audio
        duration = len(audio) / self.sample_rate
        target_len = max(int(round(duration * target_rate)), 1)
        src_positions = np.linspace(0.0, len(audio) - 1, num=target_len)
        return np.interp(src_positions, np.arange(len(audio)), audio).astype(np.float32)

    def to_recognizer_pcm(self, pcm_data: bytes) -> bytes:
        """Return 16 kHz 16-bit PCM for the local recognizer."""
        if self.sample_rate == RECOGNIZER_SAMPLE_RATE:
            return pcm_data
        audio = self.resample(self.pcm_to_ndarray(pcm_data))
        return (np.clip(audio, -1.0, 1.0) * 32767).astype(np.int16).tobytes()

    def to_wav_bytes(self, pcm_data: bytes) -> bytes:
        """Wrap raw PCM bytes in an in-memory WAV container.

        Raises:
            ValueError: If pcm_data is empty.
        """
        if not pcm_data:
            raise ValueError("Cannot encode empty PCM data as WAV")
        buf = io.BytesIO()
        with wave.open(buf, "wb") as wf:
            wf.setnchannels(self.channels)
            wf.setsampwidth(self.sample_width)
            wf.setframerate(self.sample_rate)
            wf.writeframes(pcm_data)
        return buf.getvalue()

    def is_silent(self, audio: np.ndarray, threshold: float = 0.01) -> bool:
        """Check if an audio segment is silence based on RMS energy."""
        if len(audio) == 0:
            return True
        rms = np.sqrt(np.mean(audio**2))
        return float(rms) < threshold
