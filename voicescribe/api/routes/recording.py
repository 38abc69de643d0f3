"""
Recording REST endpoints.

CRUD over saved recordings plus audio download. All persistence goes
through ``SqlRecordingStore``; no business logic lives here.
"""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse

from voicescribe.core.exceptions import RecordingNotFoundError, VoiceScribeError
from voicescribe.core.models import Recording, RecordingResponse, RecordingUpdate
from voicescribe.core.utils import default_recording_name
from voicescribe.services.storage import SqlRecordingStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recordings", tags=["recordings"])


def get_store() -> SqlRecordingStore:
    return SqlRecordingStore()


def _to_response(recording: Recording) -> RecordingResponse:
    return RecordingResponse(
        id=int(recording.id),
        name=recording.name,
        duration_seconds=recording.duration_seconds,
        created_at=recording.created_at,
        audio_url=recording.audio_url,
        transcript=recording.transcript,
        diarized_utterances=recording.diarized_utterances,
        word_timings=recording.word_timings,
    )


@router.post("", response_model=RecordingResponse, status_code=201)
async def create_recording(
    file: UploadFile = File(...),
    name: str = Form(""),
    duration_seconds: int = Form(0, ge=0),
    transcript: str | None = Form(None),
    store: SqlRecordingStore = Depends(get_store),
):
    """Save an uploaded recording (audio plus metadata)."""
    audio = await file.read()
    if not audio:
        raise VoiceScribeError(detail="No file provided", code="NO_FILE", status_code=400)

    created_at = datetime.now(UTC)
    recording = Recording(
        id="pending",
        name=name.strip() or default_recording_name(created_at),
        audio=audio,
        duration_seconds=duration_seconds,
        created_at=created_at,
        transcript=transcript,
    )
    saved = await store.save(recording)
    return _to_response(saved)


@router.get("", response_model=list[RecordingResponse])
async def list_recordings(store: SqlRecordingStore = Depends(get_store)):
    """List all recordings, newest first."""
    return [_to_response(r) for r in await store.list_all()]


@router.get("/{recording_id}", response_model=RecordingResponse)
async def get_recording(recording_id: int, store: SqlRecordingStore = Depends(get_store)):
    return _to_response(await store.get(str(recording_id)))


@router.patch("/{recording_id}", response_model=RecordingResponse)
async def update_recording(
    recording_id: int,
    body: RecordingUpdate,
    store: SqlRecordingStore = Depends(get_store),
):
    """Rename a recording or attach transcription results."""
    updated = await store.update(str(recording_id), body)
    return _to_response(updated)


@router.delete("/{recording_id}", status_code=204)
async def delete_recording(recording_id: int, store: SqlRecordingStore = Depends(get_store)):
    """Delete the recording and its audio file."""
    await store.delete(str(recording_id))


@router.get("/{recording_id}/audio")
async def download_audio(recording_id: int, store: SqlRecordingStore = Depends(get_store)):
    """Stream the stored WAV file."""
    path = await store.audio_path(str(recording_id))
    if path is None or not path.exists():
        raise RecordingNotFoundError(recording_id)
    return FileResponse(path, media_type="audio/wav", filename=path.name)
