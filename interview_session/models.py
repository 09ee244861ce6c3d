from __future__ import annotations  # Session phases, transitions and published events

import time
from typing import Any, Dict, Literal, Optional, Tuple

from pydantic import BaseModel, Field

Phase = Literal[
    "setup",
    "greeting",
    "asking",
    "listening",
    "transcribing",
    "persisting",
    "advance",
    "evaluating",
    "aborting",
    "done",
]

VALID_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    "setup": ("greeting", "aborting"),
    "greeting": ("asking", "aborting"),
    "asking": ("listening", "persisting", "aborting"),
    "listening": ("transcribing", "persisting", "aborting"),
    "transcribing": ("persisting", "aborting"),
    "persisting": ("advance", "aborting"),
    "advance": ("asking", "evaluating", "aborting"),
    "aborting": ("evaluating", "done"),
    "evaluating": ("done",),
    "done": (),
}

NO_ANSWER_REASONS = (
    "timeout",
    "skipped",
    "capture_failed",
    "empty_audio",
    "transcription_failed",
    "transcription_timeout",
    "empty_transcript",
)


class SessionStateError(RuntimeError):  # Illegal transition or API misuse
    pass


class SessionAborted(Exception):  # Raised inside the loop once abort() has been requested
    pass


class SessionEvent(BaseModel):  # What observers receive
    kind: str
    session_id: Optional[str] = None
    phase: Phase
    question_index: Optional[int] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    ts: float = Field(default_factory=time.time)


__all__ = [
    "NO_ANSWER_REASONS",
    "Phase",
    "SessionAborted",
    "SessionEvent",
    "SessionStateError",
    "VALID_TRANSITIONS",
]
