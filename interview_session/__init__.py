from __future__ import annotations  # Session orchestrator exports

from .models import NO_ANSWER_REASONS, VALID_TRANSITIONS, Phase, SessionAborted, SessionEvent, SessionStateError
from .orchestrator import SessionOrchestrator

__all__ = [
    "NO_ANSWER_REASONS",
    "Phase",
    "SessionAborted",
    "SessionEvent",
    "SessionOrchestrator",
    "SessionStateError",
    "VALID_TRANSITIONS",
]
