"""Tests for LiveRecognizer: result accumulation, error handling, auto-restart."""

import pytest

from voicescribe.core.models import (
    RecognitionAlternative,
    RecognizerEvent,
    RecognizerEventKind,
    TranscriptionStrategy,
)
from voicescribe.services.transcription.live import (
    MAX_RESTART_MESSAGE,
    UNSUPPORTED_MESSAGE,
    LiveRecognizer,
    LiveTranscriber,
    describe_error,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _result(*parts: tuple[str, bool]) -> RecognizerEvent:
    return RecognizerEvent(
        kind=RecognizerEventKind.result,
        results=[RecognitionAlternative(transcript=t, is_final=f) for t, f in parts],
    )


def _error(code: str) -> RecognizerEvent:
    return RecognizerEvent(kind=RecognizerEventKind.error, error_code=code)


_END = RecognizerEvent(kind=RecognizerEventKind.end)


class _Sink:
    """Collects recognizer callbacks."""

    def __init__(self) -> None:
        self.results: list[tuple[str, bool]] = []
        self.errors: list[str] = []

    def on_result(self, text: str, is_final: bool) -> None:
        self.results.append((text, is_final))

    def on_error(self, message: str) -> None:
        self.errors.append(message)


@pytest.fixture
def sink():
    return _Sink()


@pytest.fixture
async def started(fake_engine, sink):
    """A recognizer with an active session on the fake engine."""
    recognizer = LiveRecognizer(fake_engine)
    assert await recognizer.start("en-US", sink.on_result, sink.on_error)
    yield recognizer
    recognizer.stop()
    await recognizer.wait_closed(timeout=0.5)


# ===================================================================
# Start
# ===================================================================


class TestStart:
    async def test_unsupported_engine_returns_false(self, unsupported_engine, sink) -> None:
        recognizer = LiveRecognizer(unsupported_engine)
        ok = await recognizer.start("en-US", sink.on_result, sink.on_error)
        assert ok is False
        assert sink.errors == [UNSUPPORTED_MESSAGE]
        assert unsupported_engine.start_calls == []

    async def test_start_failure_reports_error(self, fake_engine, sink) -> None:
        fake_engine.fail_start = True
        recognizer = LiveRecognizer(fake_engine)
        ok = await recognizer.start("en-US", sink.on_result, sink.on_error)
        assert ok is False
        assert recognizer.active is False
        assert sink.errors[0].startswith("Failed to start speech recognition")

    async def test_start_sets_restart_flag(self, started, fake_engine) -> None:
        assert started.should_restart is True
        assert started.active is True
        assert fake_engine.start_calls == ["en-US"]

    async def test_restart_session_stops_previous_first(self, started, fake_engine, sink) -> None:
        """A new session disables auto-restart on the old one before stopping it."""
        ok = await started.start("de-DE", sink.on_result, sink.on_error)
        assert ok is True
        assert fake_engine.stop_calls == 1
        # The old session's end event must not have triggered a restart
        assert fake_engine.start_calls == ["en-US", "de-DE"]

    def test_support_info(self, unsupported_engine) -> None:
        info = LiveRecognizer(unsupported_engine).support_info()
        assert info.supported is False
        assert info.message == UNSUPPORTED_MESSAGE


# ===================================================================
# Results
# ===================================================================


class TestResults:
    async def test_final_segments_accumulate(self, started, sink) -> None:
        started.dispatch(_result(("hello", True)))
        started.dispatch(_result(("world", True)))
        assert sink.results == [("hello", True), ("hello world", True)]
        assert started.final_transcript == "hello world"

    async def test_interim_appended_to_finalized_text(self, started, sink) -> None:
        started.dispatch(_result(("hello", True)))
        started.dispatch(_result(("wor", False)))
        assert sink.results[-1] == ("hello wor", False)
        assert started.final_transcript == "hello"

    async def test_events_flow_through_pump(self, fake_engine, sink) -> None:
        recognizer = LiveRecognizer(fake_engine)
        await recognizer.start("en-US", sink.on_result, sink.on_error)
        fake_engine.emit_result("streamed")
        recognizer.stop()
        await recognizer.wait_closed(timeout=1.0)
        assert sink.results == [("streamed", True)]
        assert recognizer.active is False


# ===================================================================
# Errors and restarts
# ===================================================================


class TestErrors:
    async def test_no_speech_is_swallowed(self, started, sink) -> None:
        started.dispatch(_error("no-speech"))
        assert sink.errors == []
        assert started.should_restart is True

    async def test_network_error_translated(self, started, sink) -> None:
        started.dispatch(_error("network"))
        assert sink.errors == [describe_error("network")]
        assert started.should_restart is True

    async def test_unknown_code_gets_generic_message(self) -> None:
        assert describe_error("weird") == "Speech recognition error: weird"

    @pytest.mark.parametrize("code", ["not-allowed", "service-not-allowed"])
    async def test_permission_error_clears_restart_flag(self, started, sink, code) -> None:
        started.dispatch(_error(code))
        assert started.should_restart is False
        assert len(sink.errors) == 1


class TestAutoRestart:
    async def test_end_triggers_restart(self, started, fake_engine) -> None:
        started.dispatch(_END)
        assert fake_engine.start_calls == ["en-US", "en-US"]
        assert started.active is True

    async def test_no_restart_after_permission_denied(self, started, fake_engine) -> None:
        started.dispatch(_error("not-allowed"))
        started.dispatch(_END)
        assert fake_engine.start_calls == ["en-US"]
        assert started.active is False

    async def test_no_restart_after_stop(self, fake_engine, sink) -> None:
        recognizer = LiveRecognizer(fake_engine)
        await recognizer.start("en-US", sink.on_result, sink.on_error)
        recognizer.stop()
        await recognizer.wait_closed(timeout=1.0)
        assert fake_engine.start_calls == ["en-US"]
        assert sink.errors == []

    async def test_restart_failure_gives_up(self, started, fake_engine, sink) -> None:
        fake_engine.fail_start = True
        started.dispatch(_END)
        assert sink.errors == [MAX_RESTART_MESSAGE]
        assert started.should_restart is False
        assert started.active is False

    async def test_restart_storm_gives_up(self, fake_engine, sink) -> None:
        recognizer = LiveRecognizer(fake_engine, max_consecutive_restarts=2)
        await recognizer.start("en-US", sink.on_result, sink.on_error)
        for _ in range(3):
            recognizer.dispatch(_END)
        assert len(fake_engine.start_calls) == 3  # initial + 2 restarts
        assert sink.errors == [MAX_RESTART_MESSAGE]
        await recognizer.wait_closed(timeout=0.5)

    async def test_results_reset_restart_counter(self, fake_engine, sink) -> None:
        recognizer = LiveRecognizer(fake_engine, max_consecutive_restarts=1)
        await recognizer.start("en-US", sink.on_result, sink.on_error)
        for _ in range(3):
            recognizer.dispatch(_END)
            recognizer.dispatch(_result(("still here", True)))
        assert sink.errors == []
        recognizer.stop()
        await recognizer.wait_closed(timeout=0.5)


# ===================================================================
# LiveTranscriber
# ===================================================================


class TestLiveTranscriber:
    async def test_transcribe_uses_live_transcript(self, fake_engine) -> None:
        transcriber = LiveTranscriber(LiveRecognizer(fake_engine))
        result = await transcriber.transcribe(b"audio", live_transcript=" heard live ")
        assert result.transcript == "heard live"
        assert result.strategy_used == TranscriptionStrategy.local_live
        assert result.confidence == 0.8
        assert result.error is None

    async def test_transcribe_falls_back_to_recognizer(self, started, fake_engine) -> None:
        started.dispatch(_result(("from recognizer", True)))
        transcriber = LiveTranscriber(started)
        result = await transcriber.transcribe(b"audio")
        assert result.transcript == "from recognizer"

    async def test_feed_forwards_to_engine(self, fake_engine) -> None:
        transcriber = LiveTranscriber(LiveRecognizer(fake_engine))
        transcriber.feed(b"\x01\x02")
        assert fake_engine.fed == [b"\x01\x02"]

    async def test_stop_live_is_idempotent(self, fake_engine) -> None:
        transcriber = LiveTranscriber(LiveRecognizer(fake_engine))
        transcriber.stop_live()
        transcriber.stop_live()
        await transcriber.wait_live_closed(timeout=0.1)
        assert fake_engine.stop_calls == 0
