"""
Transcription module - strategy abstraction layer.

Factory function for creating the transcriber that matches a configured
strategy. Exactly one strategy runs per orchestrator.
"""

from voicescribe.core.models import TranscriptionStrategy

from .base import BaseTranscriber, SpeechEngine

__all__ = ["BaseTranscriber", "SpeechEngine", "create_transcriber"]


def create_transcriber(strategy: TranscriptionStrategy | str, **kwargs) -> BaseTranscriber:
    """
    Factory function to create a transcriber for *strategy*.

    Args:
        strategy: "local-live", "hosted-batch" or "hosted-oneshot".
        **kwargs: Strategy-specific configuration. ``engine`` may be passed
            for local-live to override the default faster-whisper engine.

    Returns:
        BaseTranscriber implementation instance

    Raises:
        ValueError: If strategy is unknown
    """
    strategy = TranscriptionStrategy(strategy)
    if strategy == TranscriptionStrategy.hosted_batch:
        from .hosted_batch import HostedJobTranscriber

        return HostedJobTranscriber(**kwargs)
    elif strategy == TranscriptionStrategy.hosted_oneshot:
        from .hosted_oneshot import OneShotHostedTranscriber

        return OneShotHostedTranscriber(**kwargs)
    elif strategy == TranscriptionStrategy.local_live:
        from .live import LiveRecognizer, LiveTranscriber

        engine = kwargs.pop("engine", None)
        if engine is None:
            from .whisper_engine import WhisperStreamingEngine

            engine = WhisperStreamingEngine(**kwargs)
        return LiveTranscriber(LiveRecognizer(engine))
    else:
        raise ValueError(f"Unknown transcription strategy: {strategy}")
