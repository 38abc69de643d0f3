from voicescribe.services.storage.store import RecordingStore, SqlRecordingStore

__all__ = ["RecordingStore", "SqlRecordingStore"]
