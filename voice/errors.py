from __future__ import annotations  # Adapter error types


class SpeechError(RuntimeError):  # Speech synthesis or playback failed
    pass


class CaptureError(RuntimeError):  # Microphone could not be opened or read
    pass


class TranscriptionError(RuntimeError):  # Transcription job failed
    pass


class TranscriptionTimeout(TranscriptionError):  # Polling ceiling reached without a result
    pass


__all__ = ["CaptureError", "SpeechError", "TranscriptionError", "TranscriptionTimeout"]
