"""
Transcription proxy endpoints.

Vendor API keys stay on the server: the hosted transcribers post audio
here and these routes call AssemblyAI or OpenAI on their behalf.

- ``POST /transcribe`` uploads and submits a batch job, returning ``{id, status}``.
- ``GET /transcribe/{job_id}`` relays the vendor job status.
- ``POST /whisper`` runs a one-shot transcription, returning ``{text}``.
"""

import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile

from voicescribe.core.exceptions import VoiceScribeError
from voicescribe.core.models import OneShotResponse, TranscribeSubmitResponse
from voicescribe.services.vendors import AssemblyAIClient, OpenAITranscriptionClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["transcription"])


def get_assemblyai_client() -> AssemblyAIClient:
    return AssemblyAIClient()


def get_openai_client() -> OpenAITranscriptionClient:
    return OpenAITranscriptionClient()


async def _read_upload(file: UploadFile) -> bytes:
    audio = await file.read()
    if not audio:
        raise VoiceScribeError(detail="No file provided", code="NO_FILE", status_code=400)
    return audio


@router.post("/transcribe", response_model=TranscribeSubmitResponse)
async def submit_transcription(
    file: UploadFile = File(...),
    language: str | None = Form(None),
    client: AssemblyAIClient = Depends(get_assemblyai_client),
):
    """Upload audio to the batch vendor and start a transcription job."""
    audio = await _read_upload(file)
    logger.info("Proxying %d bytes (%s) to the batch vendor", len(audio), file.content_type)
    try:
        job = await client.transcribe_upload(audio, language=language)
    finally:
        await client.close()
    return TranscribeSubmitResponse(id=job["id"], status=job["status"])


@router.get("/transcribe/{job_id}")
async def get_transcription(
    job_id: str,
    client: AssemblyAIClient = Depends(get_assemblyai_client),
) -> dict:
    """Relay the vendor's job document unchanged."""
    try:
        return await client.get_transcript(job_id)
    finally:
        await client.close()


@router.post("/whisper", response_model=OneShotResponse)
async def whisper_transcription(
    file: UploadFile = File(...),
    language: str | None = Form(None),
    client: OpenAITranscriptionClient = Depends(get_openai_client),
):
    """Transcribe audio in a single vendor call."""
    audio = await _read_upload(file)
    try:
        text = await client.transcribe(
            audio, filename=file.filename or "recording.wav", language=language
        )
    finally:
        await client.close()
    return OneShotResponse(text=text)
