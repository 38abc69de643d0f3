"""Shared pytest fixtures for the VoiceScribe test suite.

Provides PCM samples, a scriptable local speech engine, a fake microphone,
an in-memory recording store and in-memory SQLite database fixtures.
"""

import asyncio
import math
import struct

import pytest

from voicescribe.core.models import (
    RecognitionAlternative,
    RecognizerEvent,
    RecognizerEventKind,
    Recording,
    RecordingUpdate,
)
from voicescribe.core.exceptions import RecordingNotFoundError
from voicescribe.services.capture.microphone import MicrophoneSource
from voicescribe.services.storage.store import RecordingStore
from voicescribe.services.transcription.base import SpeechEngine

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeSpeechEngine(SpeechEngine):
    """Speech engine whose events are pushed by the test.

    ``stop()`` behaves like a real engine: it ends the session with an
    ``end`` event. With ``echo_feed`` set, every fed block produces a
    final result carrying ``echo_text``.
    """

    def __init__(self, supported: bool = True, echo_text: str | None = None) -> None:
        self._supported = supported
        self.echo_text = echo_text
        self.fail_start = False
        self.start_calls: list[str] = []
        self.stop_calls = 0
        self.ready_calls = 0
        self.fed: list[bytes] = []
        self._queue: asyncio.Queue[RecognizerEvent] = asyncio.Queue()

    @property
    def supported(self) -> bool:
        return self._supported

    async def ensure_ready(self) -> None:
        self.ready_calls += 1

    def support_details(self) -> str | None:
        return "fake engine"

    def start(self, language: str, continuous: bool = True, interim_results: bool = True) -> None:
        if self.fail_start:
            raise RuntimeError("engine busy")
        self.start_calls.append(language)

    def stop(self) -> None:
        self.stop_calls += 1
        self.emit_end()

    async def events(self):
        while True:
            yield await self._queue.get()

    def feed(self, pcm: bytes) -> None:
        self.fed.append(pcm)
        if self.echo_text is not None:
            self.emit_result(self.echo_text)

    def emit_result(self, text: str, is_final: bool = True) -> None:
        self._queue.put_nowait(
            RecognizerEvent(
                kind=RecognizerEventKind.result,
                results=[RecognitionAlternative(transcript=text, is_final=is_final)],
            )
        )

    def emit_error(self, code: str) -> None:
        self._queue.put_nowait(RecognizerEvent(kind=RecognizerEventKind.error, error_code=code))

    def emit_end(self) -> None:
        self._queue.put_nowait(RecognizerEvent(kind=RecognizerEventKind.end))


class FakeMicrophone(MicrophoneSource):
    """Microphone that the test drives with ``push()``."""

    def __init__(self, sample_rate: int = 16_000, error: Exception | None = None) -> None:
        self.sample_rate = sample_rate
        self.error = error
        self.open_calls = 0
        self.close_calls = 0
        self._on_block = None

    async def open(self, on_block) -> None:
        self.open_calls += 1
        if self.error is not None:
            raise self.error
        self._on_block = on_block

    def close(self) -> None:
        self.close_calls += 1
        self._on_block = None

    def push(self, pcm: bytes) -> None:
        if self._on_block is not None:
            self._on_block(pcm)


class InMemoryRecordingStore(RecordingStore):
    """Dict-backed store that assigns sequential ids."""

    def __init__(self) -> None:
        self.recordings: dict[str, Recording] = {}
        self.save_calls = 0
        self.update_calls: list[tuple[str, RecordingUpdate]] = []
        self._next_id = 1

    async def save(self, recording: Recording) -> Recording:
        self.save_calls += 1
        saved = recording.model_copy(
            update={
                "id": str(self._next_id),
                "audio_url": f"/api/v1/recordings/{self._next_id}/audio",
            }
        )
        self._next_id += 1
        self.recordings[saved.id] = saved
        return saved

    async def update(self, recording_id: str, changes: RecordingUpdate) -> Recording:
        self.update_calls.append((recording_id, changes))
        current = await self.get(recording_id)
        fields = {name: value for name, value in changes if value is not None}
        updated = current.model_copy(update=fields)
        self.recordings[recording_id] = updated
        return updated

    async def delete(self, recording_id: str) -> None:
        await self.get(recording_id)
        del self.recordings[recording_id]

    async def list_all(self) -> list[Recording]:
        return list(self.recordings.values())

    async def get(self, recording_id: str) -> Recording:
        if recording_id not in self.recordings:
            raise RecordingNotFoundError(recording_id)
        return self.recordings[recording_id]


# ---------------------------------------------------------------------------
# Engine / capture fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_engine():
    """A supported, scriptable speech engine."""
    return FakeSpeechEngine()


@pytest.fixture
def unsupported_engine():
    """An engine reporting ``supported=False``."""
    return FakeSpeechEngine(supported=False)


@pytest.fixture
def fake_microphone():
    return FakeMicrophone()


@pytest.fixture
def memory_store():
    return InMemoryRecordingStore()


# ---------------------------------------------------------------------------
# Audio Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_pcm_bytes():
    """1 second of 440 Hz sine-wave PCM audio (16 kHz, 16-bit, mono)."""
    sample_rate = 16000
    amplitude = 16000  # ~50% of max int16
    samples = [
        struct.pack("<h", int(amplitude * math.sin(2 * math.pi * 440.0 * i / sample_rate)))
        for i in range(sample_rate)
    ]
    return b"".join(samples)


@pytest.fixture
def silent_pcm_bytes():
    """1 second of silence as PCM audio (16 kHz, 16-bit, mono)."""
    return b"\x00\x00" * 16000


# ---------------------------------------------------------------------------
# Database Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def db_engine():
    """In-memory SQLite async engine with tables, disposed after the test."""
    from sqlalchemy.ext.asyncio import create_async_engine

    from voicescribe.services.storage import models_db  # noqa: F401
    from voicescribe.services.storage.database import Base

    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine):
    """AsyncSession bound to the test engine; rolled back after the test."""
    from sqlalchemy.ext.asyncio import async_sessionmaker

    factory = async_sessionmaker(db_engine, expire_on_commit=False)
    async with factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def repository(db_session):
    """RecordingRepository bound to the test session."""
    from voicescribe.services.storage.repository import RecordingRepository

    return RecordingRepository(db_session)


@pytest.fixture
def use_test_db(db_engine):
    """Point ``get_session()`` at the in-memory engine for the test."""
    from voicescribe.services.storage import database

    database._engine = db_engine
    database._session_factory = None
    yield db_engine
    database.reset_engine()


@pytest.fixture
def caption_engine():
    """Speech engine that answers every audio block with "hello"."""
    return FakeSpeechEngine(echo_text="hello")
