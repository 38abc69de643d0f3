"""
Audio module - PCM processing, buffering and level metering.
"""

from .buffer import AudioBuffer
from .meter import LevelMeter
from .processor import AudioProcessor

__all__ = ["AudioBuffer", "AudioProcessor", "LevelMeter"]
