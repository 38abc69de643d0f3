"""Shared utility functions for VoiceScribe."""

from datetime import datetime

SUPPORTED_LANGUAGES: dict[str, str] = {
    "en-US": "English (US)",
    "en": "English",
    "en-GB": "English (UK)",
    "es-ES": "Spanish (Spain)",
    "es": "Spanish",
    "es-MX": "Spanish (Mexico)",
    "fr-FR": "French",
    "fr": "French",
    "de-DE": "German",
    "de": "German",
    "it-IT": "Italian",
    "it": "Italian",
    "pt-BR": "Portuguese (Brazil)",
    "pt-PT": "Portuguese (Portugal)",
    "pt": "Portuguese",
    "ru-RU": "Russian",
    "ru": "Russian",
    "ja-JP": "Japanese",
    "ja": "Japanese",
    "ko-KR": "Korean",
    "ko": "Korean",
    "zh-CN": "Chinese (Simplified)",
    "zh-TW": "Chinese (Traditional)",
    "zh": "Chinese",
    "ar-SA": "Arabic",
    "ar": "Arabic",
    "hi-IN": "Hindi",
    "hi": "Hindi",
    "nl-NL": "Dutch",
    "nl": "Dutch",
    "sv-SE": "Swedish",
    "no-NO": "Norwegian",
    "da-DK": "Danish",
    "fi-FI": "Finnish",
    "pl-PL": "Polish",
    "tr-TR": "Turkish",
    "he-IL": "Hebrew",
    "th-TH": "Thai",
    "vi-VN": "Vietnamese",
}


def get_supported_languages() -> list[dict[str, str]]:
    """Return the language catalogue as ``[{"code", "name"}]`` entries."""
    return [{"code": code, "name": name} for code, name in SUPPORTED_LANGUAGES.items()]


def base_language(tag: str | None) -> str | None:
    """Reduce a BCP-47 tag like ``en-US`` to its ISO 639-1 part (``en``)."""
    if not tag:
        return None
    return tag.split("-", 1)[0].lower()


def format_duration(seconds: int) -> str:
    """Format a duration as ``m:ss``."""
    mins, secs = divmod(int(seconds), 60)
    return f"{mins}:{secs:02d}"


def validate_transcript(transcript: str | None) -> tuple[bool, str]:
    """Check that a transcript holds something worth keeping."""
    if not transcript or not transcript.strip():
        return False, "No transcript available"
    if len(transcript.strip()) < 3:
        return False, "Transcript too short"
    return True, "Transcript is valid"


def default_recording_name(timestamp: datetime) -> str:
    """Name used when the user leaves the recording name blank."""
    return timestamp.strftime("Recording %Y-%m-%d %H.%M.%S")
