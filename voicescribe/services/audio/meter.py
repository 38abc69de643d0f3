"""Input level metering for the recording visualizer.

Mirrors an analyser node with a 256-point FFT: each PCM block is reduced to
``bands`` magnitude levels in [0, 1] that a UI can draw as bars.
"""

import numpy as np

from voicescribe.services.audio.processor import AudioProcessor

FFT_SIZE = 256
DEFAULT_BANDS = 40
# Decibel window mapped onto 0..1, as an analyser's byte frequency data does
_MIN_DB = -100.0
_MAX_DB = -30.0


class LevelMeter:
    """Computes frequency-band levels from PCM blocks.

    Args:
        sample_rate: Capture sample rate in Hz.
        bands: Number of levels returned per block.
    """

    def __init__(self, sample_rate: int, bands: int = DEFAULT_BANDS) -> None:
        self._processor = AudioProcessor(sample_rate=sample_rate)
        self._bands = bands
        self._window = np.hanning(FFT_SIZE).astype(np.float32)
        self.levels: list[float] = [0.0] * bands
        self.frozen = False

    def update(self, pcm_block: bytes) -> list[float]:
        """Analyse the most recent ``FFT_SIZE`` samples of *pcm_block*."""
        if self.frozen or not pcm_block:
            return self.levels
        samples = self._processor.pcm_to_ndarray(pcm_block)[-FFT_SIZE:]
        if len(samples) < FFT_SIZE:
            samples = np.pad(samples, (FFT_SIZE - len(samples), 0))
        spectrum = np.abs(np.fft.rfft(samples * self._window)) / FFT_SIZE
        db = 20 * np.log10(np.maximum(spectrum, 1e-12))
        scaled = np.clip((db - _MIN_DB) / (_MAX_DB - _MIN_DB), 0.0, 1.0)
        self.levels = [float(v) for v in scaled[: self._bands]]
        return self.levels

    def freeze(self) -> None:
        self.frozen = True

    def unfreeze(self) -> None:
        self.frozen = False

    def reset(self) -> None:
        self.levels = [0.0] * self._bands
        self.frozen = False
