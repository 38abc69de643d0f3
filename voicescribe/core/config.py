"""
Application configuration via pydantic-settings.

Loads values from .env file with sensible defaults for local development.
Use ``get_settings()`` to obtain the cached singleton instance.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """VoiceScribe application settings loaded from environment / .env file.

    All settings can be overridden via environment variables or a `.env` file.
    Field names map directly to env var names (case-insensitive).

    Attributes:
        use_hosted_batch: Transcribe finished recordings with the job-based vendor.
        use_hosted_oneshot: Transcribe finished recordings with the one-shot vendor.
        audio_quality: Capture preset ("low", "medium", "high").
        database_url: Async SQLAlchemy connection string for SQLite.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore unrecognized env vars
    )

    # --- Strategy selection ---
    # Either hosted flag suppresses local live recognition entirely
    use_hosted_batch: bool = False
    use_hosted_oneshot: bool = False
    transcription_language: str = "en-US"

    # --- Hosted batch (AssemblyAI) ---
    assemblyai_api_key: str = ""  # Required when use_hosted_batch=True
    assemblyai_base_url: str = "https://api.assemblyai.com/v2"
    hosted_poll_interval: float = 1.0  # Seconds between job status polls
    hosted_max_wait: float = 300.0  # Hard ceiling on top of the size-based timeout
    hosted_speaker_labels: bool = True

    # --- Hosted one-shot (OpenAI Whisper API) ---
    openai_api_key: str = ""  # Required when use_hosted_oneshot=True
    openai_base_url: str = "https://api.openai.com/v1"
    openai_transcription_model: str = "whisper-1"

    # --- Internal proxy ---
    # Transcriber clients reach the vendors only through this server
    api_base_url: str = "http://localhost:8000"

    # --- Local live recognizer (faster-whisper) ---
    whisper_model: str = "base"  # Model size: tiny, base, small, medium, large-v3
    whisper_device: str = "cpu"
    whisper_compute_type: str = "int8"

    # --- Capture ---
    audio_quality: str = "medium"  # low=16 kHz, medium=24 kHz, high=48 kHz
    max_recording_seconds: int = 7200  # Hard cap, recording auto-stops here
    duration_warning_lead_seconds: int = 180  # Warn this long before the cap

    # --- Network ---
    network_probe_url: str = ""  # Empty = {api_base_url}/health
    network_probe_interval: float = 5.0

    # --- Application ---
    app_host: str = "0.0.0.0"  # Bind address for the FastAPI server
    app_port: int = 8000
    log_level: str = "INFO"  # Python logging level

    # --- Storage ---
    # Paths are relative to the project root; absolute paths also supported
    database_url: str = "sqlite+aiosqlite:///data/voicescribe.db"
    recordings_dir: str = "data/recordings"  # Audio file storage directory
    save_max_attempts: int = 3
    save_base_delay: float = 1.0  # Backoff doubles per attempt: 1s, 2s, 4s


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings singleton.

    Uses ``functools.lru_cache`` so the .env file is read only once.
    Subsequent calls return the same ``Settings`` instance.

    Returns:
        Settings: The application-wide configuration object.
    """
    return Settings()
