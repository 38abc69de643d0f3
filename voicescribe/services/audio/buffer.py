"""PCM accumulation for chunked recognition.

The local engine recognizes fixed-length windows; ``AudioBuffer`` collects
incoming 16-bit PCM and hands out those windows as float32 arrays.
"""

import numpy as np

from voicescribe.services.audio.processor import RECOGNIZER_SAMPLE_RATE, AudioProcessor


class AudioBuffer:
    """Accumulates PCM bytes and yields fixed-duration windows.

    Args:
        window_seconds: Length of each window handed to the recognizer.
        overlap_seconds: Audio carried over into the next window.
        min_tail_seconds: Shortest remainder worth recognizing on flush.
    """

    def __init__(
        self,
        window_seconds: float = 3.0,
        overlap_seconds: float = 0.0,
        min_tail_seconds: float = 0.5,
        sample_rate: int = RECOGNIZER_SAMPLE_RATE,
    ) -> None:
        self._processor = AudioProcessor(sample_rate=sample_rate)
        bps = self._processor.bytes_per_second
        frame = self._processor.sample_width * self._processor.channels
        self._window_bytes = int(window_seconds * bps) // frame * frame
        self._overlap_bytes = int(overlap_seconds * bps) // frame * frame
        self._min_tail_bytes = int(min_tail_seconds * bps)
        self._frame = frame
        self._data = bytearray()

    @property
    def buffered_seconds(self) -> float:
        return len(self._data) / self._processor.bytes_per_second

    def add_bytes(self, data: bytes) -> None:
        self._data.extend(data)

    def has_window(self) -> bool:
        return len(self._data) >= self._window_bytes

    def next_window(self) -> np.ndarray | None:
        """Pop one window, keeping the overlap for the next one."""
        if not self.has_window():
            return None
        window = bytes(self._data[: self._window_bytes])
        del self._data[: self._window_bytes - self._overlap_bytes]
        return self._processor.pcm_to_ndarray(window)

    def peek(self) -> np.ndarray | None:
        """Return the buffered audio without consuming it (for interim results)."""
        usable = len(self._data) - len(self._data) % self._frame
        if usable < self._min_tail_bytes or usable == 0:
            return None
        return self._processor.pcm_to_ndarray(bytes(self._data[:usable]))

    def flush(self) -> np.ndarray | None:
        """Return whatever is left (frame-aligned), or None if too short."""
        usable = len(self._data) - len(self._data) % self._frame
        if usable < self._min_tail_bytes or usable == 0:
            self._data.clear()
            return None
        tail = bytes(self._data[:usable])
        self._data.clear()
        return self._processor.pcm_to_ndarray(tail)

    def reset(self) -> None:
        self._data.clear()
