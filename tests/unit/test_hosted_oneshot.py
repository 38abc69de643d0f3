"""Tests for OneShotHostedTranscriber."""

import httpx
import pytest

from voicescribe.core.models import TranscriptionStrategy
from voicescribe.services.transcription.hosted_oneshot import OneShotHostedTranscriber


def _transcriber(handler) -> OneShotHostedTranscriber:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")
    return OneShotHostedTranscriber(client=client)


class TestOneShot:
    async def test_success_returns_stripped_text(self) -> None:
        transcriber = _transcriber(lambda req: httpx.Response(200, json={"text": "  hello  "}))
        result = await transcriber.transcribe(b"audio")
        assert result.transcript == "hello"
        assert result.error is None
        assert result.strategy_used == TranscriptionStrategy.hosted_oneshot

    async def test_server_error_surfaced_verbatim(self) -> None:
        """HTTP 500 with {error: "server down"} → empty transcript, error "server down"."""
        transcriber = _transcriber(
            lambda req: httpx.Response(500, json={"error": "server down"})
        )
        result = await transcriber.transcribe(b"audio")
        assert result.transcript == ""
        assert result.error == "server down"

    async def test_non_json_error_body_uses_text(self) -> None:
        transcriber = _transcriber(lambda req: httpx.Response(502, text="Bad Gateway"))
        result = await transcriber.transcribe(b"audio")
        assert result.error == "Bad Gateway"

    async def test_missing_text_field_is_failure(self) -> None:
        transcriber = _transcriber(lambda req: httpx.Response(200, json={"duration": 3}))
        result = await transcriber.transcribe(b"audio")
        assert result.error == "Transcription service response did not include a transcript"

    async def test_empty_text_is_valid_nothing_said(self) -> None:
        transcriber = _transcriber(lambda req: httpx.Response(200, json={"text": ""}))
        result = await transcriber.transcribe(b"audio")
        assert result.transcript == ""
        assert result.error is None

    async def test_transport_error_is_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        result = await _transcriber(handler).transcribe(b"audio")
        assert result.error.startswith("Transcription request failed")

    @pytest.mark.parametrize(("language", "expected"), [("en-US", b"en"), ("pt-BR", b"pt")])
    async def test_language_sent_as_base_code(self, language, expected) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"text": "ok"})

        await _transcriber(handler).transcribe(b"audio", language=language, filename="a.wav")
        body = seen[0].content
        assert seen[0].url.path == "/api/v1/whisper"
        assert b'name="language"' in body
        assert b"\r\n\r\n" + expected + b"\r\n" in body
        assert b'filename="a.wav"' in body
