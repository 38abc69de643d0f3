"""
VoiceScribe exception hierarchy.

All application-specific exceptions inherit from VoiceScribeError,
enabling centralized error handling in the API middleware layer.
"""

from datetime import UTC, datetime

from voicescribe.core.models import MicrophoneErrorCause


class VoiceScribeError(Exception):
    """Base exception for all VoiceScribe errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred",
        code: str = "VOICESCRIBE_ERROR",
        status_code: int = 500,
    ) -> None:
        self.detail = detail
        self.code = code
        self.status_code = status_code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)


class RecordingNotFoundError(VoiceScribeError):
    """Raised when a recording ID does not exist."""

    def __init__(self, recording_id: int | str) -> None:
        super().__init__(
            detail=f"Recording not found: {recording_id}",
            code="RECORDING_NOT_FOUND",
            status_code=404,
        )


class VendorNotConfiguredError(VoiceScribeError):
    """Raised when a hosted vendor is used without an API key."""

    def __init__(self, vendor: str, setting: str) -> None:
        super().__init__(
            detail=f"{vendor} API key not configured (set {setting.upper()})",
            code="VENDOR_NOT_CONFIGURED",
            status_code=500,
        )


class VendorRequestError(VoiceScribeError):
    """Raised when a hosted vendor rejects a request."""

    def __init__(self, detail: str, status_code: int = 502) -> None:
        super().__init__(detail=detail, code="VENDOR_ERROR", status_code=status_code)


class MicrophoneAccessError(VoiceScribeError):
    """Raised when the microphone cannot be acquired.

    The ``cause`` is part of the contract: callers branch on it to show
    a precise message instead of parsing the detail text.
    """

    def __init__(self, cause: MicrophoneErrorCause, detail: str | None = None) -> None:
        self.cause = cause
        super().__init__(
            detail=detail or cause.message,
            code=f"MICROPHONE_{cause.name.upper()}",
            status_code=400,
        )


class PersistenceError(VoiceScribeError):
    """Raised when saving to the recording store keeps failing."""

    def __init__(self, operation: str, attempts: int, reason: str = "") -> None:
        self.attempts = attempts
        detail = f"{operation} failed after {attempts} attempts"
        if reason:
            detail = f"{detail}: {reason}"
        super().__init__(detail=detail, code="PERSISTENCE_ERROR", status_code=503)
