"""Hosted transcription vendor clients used by the proxy routes."""

from voicescribe.services.vendors.assemblyai import AssemblyAIClient
from voicescribe.services.vendors.openai_whisper import OpenAITranscriptionClient

__all__ = ["AssemblyAIClient", "OpenAITranscriptionClient"]
