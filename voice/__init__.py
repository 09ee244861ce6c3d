from __future__ import annotations  # Voice adapter exports

from .capture import AudioCapture, PyAudioCapture, rms_level
from .errors import CaptureError, SpeechError, TranscriptionError, TranscriptionTimeout
from .speech import EdgeTtsSpeech, SpeechOutput, split_sentences
from .transcription import AssemblyAiTranscriber, TranscriptPoll, Transcriber, transcribe

__all__ = [
    "AssemblyAiTranscriber",
    "AudioCapture",
    "CaptureError",
    "EdgeTtsSpeech",
    "PyAudioCapture",
    "SpeechError",
    "SpeechOutput",
    "TranscriptPoll",
    "Transcriber",
    "TranscriptionError",
    "TranscriptionTimeout",
    "rms_level",
    "split_sentences",
    "transcribe",
]
