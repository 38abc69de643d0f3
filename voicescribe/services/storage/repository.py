"""
CRUD repository for the ``recordings`` table.

``RecordingRepository`` wraps an ``AsyncSession``. It calls ``flush()``
rather than ``commit()``, so the caller (normally :func:`get_session`)
decides where the transaction ends.
"""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from voicescribe.core.exceptions import RecordingNotFoundError
from voicescribe.services.storage.models_db import Recording

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = frozenset(
    {"name", "transcript", "diarized_utterances", "word_timings", "audio_path"}
)


class RecordingRepository:
    """Data-access layer for recordings.

    Args:
        session: An active SQLAlchemy ``AsyncSession``.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_recording(
        self,
        name: str,
        duration_seconds: int = 0,
        created_at: datetime | None = None,
        audio_path: str | None = None,
        transcript: str | None = None,
    ) -> Recording:
        """Insert a recording and return it with its assigned id."""
        recording = Recording(
            name=name,
            duration_seconds=duration_seconds,
            audio_path=audio_path,
            transcript=transcript,
        )
        if created_at is not None:
            recording.created_at = created_at
        self._session.add(recording)
        await self._session.flush()
        return recording

    async def get_recording(self, recording_id: int) -> Recording:
        """Return a recording by id or raise :class:`RecordingNotFoundError`."""
        recording = await self._session.get(Recording, recording_id)
        if recording is None:
            raise RecordingNotFoundError(recording_id)
        return recording

    async def list_recordings(self, limit: int = 100, offset: int = 0) -> list[Recording]:
        """Return recordings, newest first."""
        stmt = (
            select(Recording)
            .order_by(Recording.created_at.desc(), Recording.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def update_recording(self, recording_id: int, **fields: object) -> Recording:
        """Apply a partial update; ``None`` values are left untouched.

        Raises:
            ValueError: If a field is not updatable.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        recording = await self.get_recording(recording_id)
        for key, value in fields.items():
            if value is not None:
                setattr(recording, key, value)
        await self._session.flush()
        return recording

    async def delete_recording(self, recording_id: int) -> str | None:
        """Delete a recording row and return its audio path for cleanup."""
        recording = await self.get_recording(recording_id)
        audio_path = recording.audio_path
        await self._session.delete(recording)
        await self._session.flush()
        logger.info("Deleted recording %d", recording_id)
        return audio_path
