"""Integration test fixtures for VoiceScribe.

Provides an async HTTP client backed by in-memory SQLite, a recordings
store under ``tmp_path`` and a sync TestClient for the caption WebSocket.
"""

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.testclient import TestClient

from voicescribe.api.app import create_app
from voicescribe.api.routes import recording
from voicescribe.api.websocket import get_speech_engine
from voicescribe.services.storage import SqlRecordingStore, database


@pytest.fixture
def app():
    """Create a fresh FastAPI application instance."""
    return create_app()


@pytest.fixture
def recordings_dir(tmp_path):
    return tmp_path / "recordings"


@pytest.fixture
async def async_client(app, db_engine, recordings_dir):
    """AsyncClient backed by the in-memory test engine.

    Injects the test engine into the database module so that all routes
    use the same in-memory SQLite with tables already created, and keeps
    audio files under the test's temporary directory.
    """
    database._engine = db_engine
    database._session_factory = None
    app.dependency_overrides[recording.get_store] = lambda: SqlRecordingStore(recordings_dir)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
    database.reset_engine()


@pytest.fixture
def test_client(app, caption_engine):
    """Synchronous TestClient for WebSocket tests.

    The lifespan is not run; the caption endpoint needs no database.
    """
    app.dependency_overrides[get_speech_engine] = lambda: caption_engine
    yield TestClient(app)
    app.dependency_overrides.clear()

