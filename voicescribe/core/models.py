"""
Pydantic v2 models shared by the services and the API layer.

Transcription: strategies, statuses, results, word timings, diarization
Capture: quality presets, microphone failure taxonomy, recordings
API: request / response envelopes, WebSocket messages
"""

from datetime import datetime
from enum import Enum, StrEnum

from pydantic import BaseModel, Field, field_validator

# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str = "ok"
    version: str = "0.1.0"
    timestamp: datetime


# ---------------------------------------------------------------------------
# Transcription
# ---------------------------------------------------------------------------


class TranscriptionStrategy(StrEnum):
    """Which transcriber produced a result."""

    local_live = "local-live"
    hosted_batch = "hosted-batch"
    hosted_oneshot = "hosted-oneshot"
    manual = "manual"


class TranscriptionStatus(StrEnum):
    """Live-recognition status tracked by the orchestrator."""

    idle = "idle"
    listening = "listening"
    error = "error"
    stopped = "stopped"
    max_retries_exceeded = "max-retries-exceeded"


class HostedJobStatus(StrEnum):
    """Lifecycle of a job on the hosted batch service."""

    queued = "queued"
    processing = "processing"
    completed = "completed"
    error = "error"


class WordTiming(BaseModel):
    """A single word with its offsets in milliseconds."""

    text: str
    start_ms: int
    end_ms: int
    confidence: float = 0.0
    speaker: str | None = None


class DiarizedUtterance(BaseModel):
    """A contiguous stretch of speech attributed to one speaker."""

    speaker: str
    text: str
    start_ms: int
    end_ms: int


class TranscriptionResult(BaseModel):
    """Outcome of a file transcription, whatever strategy ran.

    An empty transcript with no error is a valid "nothing said" outcome.
    """

    transcript: str = ""
    strategy_used: TranscriptionStrategy
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    diarized_utterances: list[DiarizedUtterance] | None = None
    word_timings: list[WordTiming] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RecognizerSupportInfo(BaseModel):
    """Capability report for the local live recognizer."""

    supported: bool
    message: str
    details: str | None = None


class RecognizerEventKind(StrEnum):
    """Events emitted by a local speech recognition engine."""

    result = "result"
    error = "error"
    end = "end"


class RecognitionAlternative(BaseModel):
    """Best hypothesis for one recognition result slot."""

    transcript: str
    is_final: bool = False


class RecognizerEvent(BaseModel):
    """One item of the recognizer event stream.

    ``result`` events carry ``results`` starting at ``result_index``;
    ``error`` events carry ``error_code``; ``end`` events carry nothing.
    """

    kind: RecognizerEventKind
    result_index: int = 0
    results: list[RecognitionAlternative] = Field(default_factory=list)
    error_code: str | None = None


# ---------------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------------

_SAMPLE_RATES = {"low": 16_000, "medium": 24_000, "high": 48_000}


class AudioQuality(StrEnum):
    """Microphone quality presets."""

    low = "low"
    medium = "medium"
    high = "high"

    @property
    def sample_rate(self) -> int:
        return _SAMPLE_RATES[self.value]


class MicrophoneErrorCause(Enum):
    """Why the microphone could not be acquired."""

    permission_denied = (
        "Microphone access denied. Please allow microphone access and try again."
    )
    no_device = "No microphone found. Please connect a microphone and try again."
    device_busy = "Microphone is already in use by another application."
    unsupported_constraints = (
        "The microphone does not support the requested audio settings."
    )
    unsupported_environment = "Audio recording is not supported in this environment."
    aborted = "Microphone access was aborted."
    unknown = "Could not access microphone."

    @property
    def message(self) -> str:
        return self.value


class Recording(BaseModel):
    """A captured recording, before and after persistence.

    ``audio`` holds the raw bytes until the store assigns ``audio_url``;
    both may be cached at once.
    """

    id: str
    name: str
    audio: bytes | None = None
    audio_url: str | None = None
    duration_seconds: int = 0
    created_at: datetime
    transcript: str | None = None
    diarized_utterances: list[DiarizedUtterance] | None = None
    word_timings: list[WordTiming] | None = None
    embedding_vector: list[float] | None = None

    @field_validator("word_timings")
    @classmethod
    def _sort_word_timings(cls, value: list[WordTiming] | None) -> list[WordTiming] | None:
        if value is None:
            return None
        return sorted(value, key=lambda w: w.start_ms)


class RecordingUpdate(BaseModel):
    """Partial update applied to a persisted recording."""

    name: str | None = None
    transcript: str | None = None
    diarized_utterances: list[DiarizedUtterance] | None = None
    word_timings: list[WordTiming] | None = None


class RecordingResponse(BaseModel):
    """Standard recording representation returned by the API."""

    id: int
    name: str
    duration_seconds: int = 0
    created_at: datetime
    audio_url: str | None = None
    transcript: str | None = None
    diarized_utterances: list[DiarizedUtterance] | None = None
    word_timings: list[WordTiming] | None = None


# ---------------------------------------------------------------------------
# Transcription proxy
# ---------------------------------------------------------------------------


class TranscribeSubmitResponse(BaseModel):
    """POST /transcribe response: the vendor job handle."""

    id: str
    status: HostedJobStatus = HostedJobStatus.queued


class HostedJobResponse(BaseModel):
    """GET /transcribe/{id} response, relayed from the vendor."""

    id: str | None = None
    status: HostedJobStatus
    text: str | None = None
    error: str | None = None
    words: list[dict] | None = None
    utterances: list[dict] | None = None


class OneShotResponse(BaseModel):
    """POST /whisper response."""

    text: str


# ---------------------------------------------------------------------------
# WebSocket
# ---------------------------------------------------------------------------


class WebSocketMessageType(StrEnum):
    """Discriminator for messages sent over the live-captions WebSocket."""

    connected = "connected"
    transcript = "transcript"
    status = "status"
    error = "error"


class WebSocketMessage(BaseModel):
    """JSON message sent from server to client over WebSocket."""

    type: WebSocketMessageType
    data: dict = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Error
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Standard error envelope returned by the API."""

    error: str
    detail: str
    code: str
    timestamp: str
