from voicescribe.services.capture.controller import RecordingCaptureController
from voicescribe.services.capture.microphone import (
    MicrophoneSource,
    SoundDeviceMicrophone,
    classify_microphone_error,
)

__all__ = [
    "MicrophoneSource",
    "RecordingCaptureController",
    "SoundDeviceMicrophone",
    "classify_microphone_error",
]
