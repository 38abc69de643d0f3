"""Tests for TranscriptionOrchestrator: strategy selection, status machine,
file transcription and network notices."""

from unittest.mock import MagicMock

import httpx
import pytest

from voicescribe.core.models import (
    RecognitionAlternative,
    RecognizerEvent,
    RecognizerEventKind,
    TranscriptionResult,
    TranscriptionStatus,
    TranscriptionStrategy,
)
from voicescribe.services.network import NetworkMonitor
from voicescribe.services.transcription.base import BaseTranscriber
from voicescribe.services.transcription.hosted_oneshot import OneShotHostedTranscriber
from voicescribe.services.transcription.live import (
    MAX_RESTART_MESSAGE,
    LiveRecognizer,
    LiveTranscriber,
)
from voicescribe.services.transcription.orchestrator import (
    TranscriptionConfig,
    TranscriptionOrchestrator,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _Messages:
    def __init__(self) -> None:
        self.items: list[tuple[str, str]] = []

    def __call__(self, title: str, description: str) -> None:
        self.items.append((title, description))

    @property
    def titles(self) -> list[str]:
        return [t for t, _ in self.items]


def _event_error(code: str) -> RecognizerEvent:
    return RecognizerEvent(kind=RecognizerEventKind.error, error_code=code)


def _event_end() -> RecognizerEvent:
    return RecognizerEvent(kind=RecognizerEventKind.end)


def _event_result(text: str) -> RecognizerEvent:
    return RecognizerEvent(
        kind=RecognizerEventKind.result,
        results=[RecognitionAlternative(transcript=text, is_final=True)],
    )


class _StaticTranscriber(BaseTranscriber):
    """Hosted-style transcriber returning a canned result."""

    strategy = TranscriptionStrategy.hosted_batch

    def __init__(self, result: TranscriptionResult | None = None, exc: Exception | None = None):
        self.result = result
        self.exc = exc
        self.calls: list[dict] = []

    async def transcribe(self, audio: bytes, **kwargs) -> TranscriptionResult:
        self.calls.append(kwargs)
        if self.exc is not None:
            raise self.exc
        return self.result


@pytest.fixture
def messages():
    return _Messages()


@pytest.fixture
def monitor():
    return NetworkMonitor()


@pytest.fixture
def live_orchestrator(fake_engine, monitor, messages):
    transcriber = LiveTranscriber(LiveRecognizer(fake_engine))
    orchestrator = TranscriptionOrchestrator(
        TranscriptionConfig(),
        transcriber=transcriber,
        network_monitor=monitor,
        on_message=messages,
    )
    yield orchestrator
    orchestrator.close()


# ===================================================================
# Configuration
# ===================================================================


class TestStrategySelection:
    @pytest.mark.parametrize(
        ("batch", "oneshot", "expected"),
        [
            (False, False, TranscriptionStrategy.local_live),
            (True, False, TranscriptionStrategy.hosted_batch),
            (False, True, TranscriptionStrategy.hosted_oneshot),
            (True, True, TranscriptionStrategy.hosted_oneshot),
        ],
    )
    def test_flags(self, batch, oneshot, expected) -> None:
        config = TranscriptionConfig(use_hosted_batch=batch, use_hosted_oneshot=oneshot)
        assert config.strategy == expected

    def test_factory_builds_hosted_transcriber(self) -> None:
        orchestrator = TranscriptionOrchestrator(TranscriptionConfig(use_hosted_oneshot=True))
        assert isinstance(orchestrator.transcriber, OneShotHostedTranscriber)
        assert orchestrator.live_enabled is False


# ===================================================================
# Live status machine
# ===================================================================


class TestStartRealTime:
    async def test_unsupported_sets_error_without_raising(
        self, unsupported_engine, messages
    ) -> None:
        """Capability check reports unsupported → status error, supported False."""
        orchestrator = TranscriptionOrchestrator(
            TranscriptionConfig(),
            transcriber=LiveTranscriber(LiveRecognizer(unsupported_engine)),
            on_message=messages,
        )
        await orchestrator.start_real_time()

        assert orchestrator.status == TranscriptionStatus.error
        assert orchestrator.support_info.supported is False
        assert orchestrator.error == orchestrator.support_info.message
        assert messages.titles == ["Transcription Unavailable"]
        assert unsupported_engine.start_calls == []

    async def test_supported_sets_listening(self, live_orchestrator, fake_engine) -> None:
        await live_orchestrator.start_real_time()
        assert live_orchestrator.status == TranscriptionStatus.listening
        assert fake_engine.start_calls == ["en-US"]

    async def test_engine_prepared_before_capability_check(
        self, live_orchestrator, fake_engine
    ) -> None:
        await live_orchestrator.start_real_time()
        assert fake_engine.ready_calls >= 1

    async def test_hosted_strategy_is_noop(self) -> None:
        transcriber = _StaticTranscriber()
        orchestrator = TranscriptionOrchestrator(
            TranscriptionConfig(use_hosted_batch=True), transcriber=transcriber
        )
        await orchestrator.start_real_time()
        assert orchestrator.status == TranscriptionStatus.idle
        assert orchestrator.support_info.supported is False

    async def test_engine_start_failure_sets_error(self, live_orchestrator, fake_engine) -> None:
        fake_engine.fail_start = True
        await live_orchestrator.start_real_time()
        assert live_orchestrator.status == TranscriptionStatus.error
        assert "Failed to start" in live_orchestrator.error


class TestLiveErrors:
    async def test_recognizer_error_sets_error(self, live_orchestrator, fake_engine) -> None:
        await live_orchestrator.start_real_time()
        live_orchestrator.transcriber.recognizer.dispatch(
            _event_error("audio-capture")
        )
        assert live_orchestrator.status == TranscriptionStatus.error

    async def test_max_restart_message_sets_max_retries(
        self, live_orchestrator, fake_engine, messages
    ) -> None:
        await live_orchestrator.start_real_time()
        fake_engine.fail_start = True
        live_orchestrator.transcriber.recognizer.dispatch(_event_end())
        assert live_orchestrator.status == TranscriptionStatus.max_retries_exceeded
        assert live_orchestrator.error == MAX_RESTART_MESSAGE
        assert "Live Transcription Stopped" in messages.titles

    async def test_live_results_update_transcript(self, live_orchestrator) -> None:
        await live_orchestrator.start_real_time()
        live_orchestrator.transcriber.recognizer.dispatch(_event_result("good morning"))
        assert live_orchestrator.transcript == "good morning"


class TestStopRealTime:
    async def test_stop_twice_is_idempotent(self, live_orchestrator) -> None:
        await live_orchestrator.start_real_time()
        live_orchestrator.stop_real_time()
        assert live_orchestrator.status == TranscriptionStatus.idle
        live_orchestrator.stop_real_time()
        assert live_orchestrator.status == TranscriptionStatus.idle
        await live_orchestrator.drain_live(timeout=0.5)

    def test_stop_without_start(self, live_orchestrator) -> None:
        live_orchestrator.stop_real_time()
        live_orchestrator.stop_real_time()
        assert live_orchestrator.status == TranscriptionStatus.idle

    async def test_queued_error_after_stop_keeps_idle(
        self, live_orchestrator, fake_engine
    ) -> None:
        await live_orchestrator.start_real_time()
        fake_engine.emit_error("aborted")
        fake_engine.emit_result("last words")
        live_orchestrator.stop_real_time()
        assert live_orchestrator.status == TranscriptionStatus.idle

        await live_orchestrator.drain_live(timeout=0.5)
        assert live_orchestrator.status == TranscriptionStatus.idle
        assert live_orchestrator.error is None
        assert live_orchestrator.transcript == "last words"

    async def test_restart_after_stop_reports_errors_again(
        self, live_orchestrator, fake_engine
    ) -> None:
        await live_orchestrator.start_real_time()
        live_orchestrator.stop_real_time()
        await live_orchestrator.drain_live(timeout=0.5)

        await live_orchestrator.start_real_time()
        live_orchestrator.transcriber.recognizer.dispatch(_event_error("audio-capture"))
        assert live_orchestrator.status == TranscriptionStatus.error

    async def test_stop_from_error_returns_idle(self, unsupported_engine) -> None:
        orchestrator = TranscriptionOrchestrator(
            TranscriptionConfig(),
            transcriber=LiveTranscriber(LiveRecognizer(unsupported_engine)),
        )
        await orchestrator.start_real_time()
        orchestrator.stop_real_time()
        assert orchestrator.status == TranscriptionStatus.idle


# ===================================================================
# transcribe_file
# ===================================================================


class TestTranscribeFile:
    async def test_local_live_returns_accumulated_transcript(self, live_orchestrator) -> None:
        await live_orchestrator.start_real_time()
        live_orchestrator.transcriber.recognizer.dispatch(_event_result("live words"))
        live_orchestrator.stop_real_time()
        result = await live_orchestrator.transcribe_file(b"wav")
        assert result.transcript == "live words"
        assert result.strategy_used == TranscriptionStrategy.local_live

    async def test_success_caches_transcript(self) -> None:
        transcriber = _StaticTranscriber(
            TranscriptionResult(transcript="hosted text", strategy_used="hosted-batch")
        )
        orchestrator = TranscriptionOrchestrator(
            TranscriptionConfig(use_hosted_batch=True), transcriber=transcriber
        )
        result = await orchestrator.transcribe_file(b"wav")
        assert result.transcript == "hosted text"
        assert orchestrator.transcript == "hosted text"
        assert orchestrator.is_transcribing is False

    async def test_error_result_reported(self, messages) -> None:
        transcriber = _StaticTranscriber(
            TranscriptionResult(strategy_used="hosted-batch", error="quota exceeded")
        )
        orchestrator = TranscriptionOrchestrator(
            TranscriptionConfig(use_hosted_batch=True),
            transcriber=transcriber,
            on_message=messages,
        )
        result = await orchestrator.transcribe_file(b"wav")
        assert result.error == "quota exceeded"
        assert orchestrator.transcript == ""
        assert messages.items == [("Transcription Error", "quota exceeded")]

    async def test_exception_becomes_manual_result(self) -> None:
        transcriber = _StaticTranscriber(exc=RuntimeError("boom"))
        orchestrator = TranscriptionOrchestrator(
            TranscriptionConfig(use_hosted_batch=True), transcriber=transcriber
        )
        result = await orchestrator.transcribe_file(b"wav")
        assert result.strategy_used == TranscriptionStrategy.manual
        assert result.error == "boom"
        assert result.transcript == ""

    async def test_passes_language_progress_and_cancel(self) -> None:
        transcriber = _StaticTranscriber(
            TranscriptionResult(transcript="x", strategy_used="hosted-batch")
        )
        orchestrator = TranscriptionOrchestrator(
            TranscriptionConfig(use_hosted_batch=True, language="fr-FR"), transcriber=transcriber
        )
        on_progress = MagicMock()
        await orchestrator.transcribe_file(b"wav", on_progress=on_progress, filename="f.wav")
        kwargs = transcriber.calls[0]
        assert kwargs["language"] == "fr-FR"
        assert kwargs["filename"] == "f.wav"
        assert kwargs["cancel_event"] is None
        assert callable(kwargs["on_progress"])

    async def test_oneshot_through_orchestrator(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"text": "done"})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")
        orchestrator = TranscriptionOrchestrator(
            TranscriptionConfig(use_hosted_oneshot=True),
            transcriber=OneShotHostedTranscriber(client=client),
        )
        result = await orchestrator.transcribe_file(b"wav")
        assert result.transcript == "done"

    async def test_reset_transcript(self, live_orchestrator) -> None:
        live_orchestrator.state.set("old")
        live_orchestrator.reset_transcript()
        assert live_orchestrator.transcript == ""


# ===================================================================
# Network
# ===================================================================


class TestNetwork:
    async def test_no_notice_on_subscribe(self, live_orchestrator, messages) -> None:
        assert messages.items == []
        assert live_orchestrator.network_online is True

    async def test_connection_lost_and_restored(
        self, live_orchestrator, monitor, messages
    ) -> None:
        await live_orchestrator.start_real_time()
        monitor.set_online(False)
        monitor.set_online(True)
        assert messages.titles == ["Connection Lost", "Connection Restored"]

    async def test_network_error_suppressed_while_offline(
        self, live_orchestrator, monitor
    ) -> None:
        await live_orchestrator.start_real_time()
        monitor.set_online(False)
        live_orchestrator.transcriber.recognizer.dispatch(_event_error("network"))
        assert live_orchestrator.status == TranscriptionStatus.listening
        assert live_orchestrator.error is None

    async def test_close_unsubscribes(self, fake_engine, monitor, messages) -> None:
        orchestrator = TranscriptionOrchestrator(
            TranscriptionConfig(),
            transcriber=LiveTranscriber(LiveRecognizer(fake_engine)),
            network_monitor=monitor,
            on_message=messages,
        )
        await orchestrator.start_real_time()
        orchestrator.close()
        monitor.set_online(False)
        assert messages.items == []


