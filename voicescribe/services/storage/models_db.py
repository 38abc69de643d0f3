"""
SQLAlchemy ORM model for persisted recordings.

One table, ``recordings``. Audio bytes live on disk under
``Settings.recordings_dir``; the row keeps the file path plus the
transcription enrichment written after the background transcription.
"""

from datetime import UTC, datetime

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from voicescribe.services.storage.database import Base


class Recording(Base):
    """A saved recording and its (optional) transcription.

    ``diarized_utterances`` and ``word_timings`` hold lists of plain dicts
    shaped like ``DiarizedUtterance`` / ``WordTiming``.
    """

    __tablename__ = "recordings"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255))
    duration_seconds: Mapped[int] = mapped_column(default=0)
    created_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(UTC), index=True)
    audio_path: Mapped[str | None] = mapped_column(String(512), nullable=True)
    transcript: Mapped[str | None] = mapped_column(Text, nullable=True)
    diarized_utterances: Mapped[list | None] = mapped_column(JSON, nullable=True)
    word_timings: Mapped[list | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<Recording id={self.id} name={self.name!r}>"
