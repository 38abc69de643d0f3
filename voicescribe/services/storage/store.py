"""
Recording store: the persistence boundary used by capture and the API.

``RecordingStore`` is the contract (save / update / delete / list / get).
``SqlRecordingStore`` implements it with audio files under
``Settings.recordings_dir`` and metadata rows in SQLite. A saved recording
gets a canonical numeric id and an ``audio_url`` served by the recordings
API; the in-memory ``audio`` bytes are dropped once written.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from pathlib import Path

from voicescribe.core.config import get_settings
from voicescribe.core.models import Recording, RecordingUpdate
from voicescribe.core.utils import default_recording_name
from voicescribe.services.storage import models_db
from voicescribe.services.storage.database import get_session
from voicescribe.services.storage.repository import RecordingRepository

logger = logging.getLogger(__name__)


def audio_url_for(recording_id: int | str) -> str:
    return f"/api/v1/recordings/{recording_id}/audio"


def to_model(row: models_db.Recording) -> Recording:
    """Convert an ORM row to the shared ``Recording`` model."""
    return Recording(
        id=str(row.id),
        name=row.name,
        audio_url=audio_url_for(row.id) if row.audio_path else None,
        duration_seconds=row.duration_seconds,
        created_at=row.created_at,
        transcript=row.transcript,
        diarized_utterances=row.diarized_utterances,
        word_timings=row.word_timings,
    )


class RecordingStore(ABC):
    """Persistence collaborator for finished recordings."""

    @abstractmethod
    async def save(self, recording: Recording) -> Recording:
        """Persist *recording* and return it with its canonical id and URL."""

    @abstractmethod
    async def update(self, recording_id: str, changes: RecordingUpdate) -> Recording:
        """Apply partial changes to a saved recording."""

    @abstractmethod
    async def delete(self, recording_id: str) -> None:
        """Remove the recording's metadata and its audio."""

    @abstractmethod
    async def list_all(self) -> list[Recording]:
        """All saved recordings, newest first."""

    @abstractmethod
    async def get(self, recording_id: str) -> Recording:
        """One saved recording; raises ``RecordingNotFoundError`` if absent."""


class SqlRecordingStore(RecordingStore):
    """SQLite metadata plus audio files on local disk.

    Args:
        recordings_dir: Directory for audio files (defaults to settings).
    """

    def __init__(self, recordings_dir: str | Path | None = None) -> None:
        self._dir = Path(recordings_dir or get_settings().recordings_dir)

    @property
    def recordings_dir(self) -> Path:
        return self._dir

    async def save(self, recording: Recording) -> Recording:
        audio_path: Path | None = None
        if recording.audio is not None:
            audio_path = self._dir / f"{uuid.uuid4().hex}.wav"
            await asyncio.to_thread(self._write_audio, audio_path, recording.audio)

        try:
            async with get_session() as session:
                repo = RecordingRepository(session)
                row = await repo.create_recording(
                    name=recording.name.strip() or default_recording_name(recording.created_at),
                    duration_seconds=recording.duration_seconds,
                    created_at=recording.created_at,
                    audio_path=str(audio_path) if audio_path else None,
                    transcript=recording.transcript,
                )
                saved = to_model(row)
        except Exception:
            if audio_path is not None:
                audio_path.unlink(missing_ok=True)
            raise

        logger.info("Saved recording %s (%ds)", saved.id, saved.duration_seconds)
        return saved

    async def update(self, recording_id: str, changes: RecordingUpdate) -> Recording:
        fields = changes.model_dump(exclude_none=True, mode="json")
        async with get_session() as session:
            row = await RecordingRepository(session).update_recording(int(recording_id), **fields)
            return to_model(row)

    async def delete(self, recording_id: str) -> None:
        async with get_session() as session:
            audio_path = await RecordingRepository(session).delete_recording(int(recording_id))
        if audio_path:
            try:
                Path(audio_path).unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Failed to delete audio %s: %s", audio_path, exc)

    async def list_all(self) -> list[Recording]:
        async with get_session() as session:
            rows = await RecordingRepository(session).list_recordings()
            return [to_model(row) for row in rows]

    async def get(self, recording_id: str) -> Recording:
        async with get_session() as session:
            row = await RecordingRepository(session).get_recording(int(recording_id))
            return to_model(row)

    async def audio_path(self, recording_id: str) -> Path | None:
        """Path of the stored audio file, or None if it has none."""
        async with get_session() as session:
            row = await RecordingRepository(session).get_recording(int(recording_id))
            return Path(row.audio_path) if row.audio_path else None

    @staticmethod
    def _write_audio(path: Path, audio: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(audio)
