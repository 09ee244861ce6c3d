"""Live orchestrators and the adapters they are built from."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable, Dict, List, Optional

from interview_evaluation import EvaluationEngine
from interview_session import SessionOrchestrator
from question_source import QuestionSource
from voice import AssemblyAiTranscriber, EdgeTtsSpeech, PyAudioCapture
from voice.capture import AudioCapture
from voice.speech import SpeechOutput
from voice.transcription import Transcriber

logger = logging.getLogger(__name__)


@dataclass
class SessionAdapters:  # Collaborators for one orchestrator
    question_source: QuestionSource
    speech: SpeechOutput
    capture: AudioCapture
    transcriber: Transcriber
    engine: Optional[EvaluationEngine] = None


AdapterFactory = Callable[[], SessionAdapters]


def default_adapters() -> SessionAdapters:  # Device-backed adapters for a real interview
    return SessionAdapters(
        question_source=QuestionSource(),
        speech=EdgeTtsSpeech(),
        capture=PyAudioCapture(),
        transcriber=AssemblyAiTranscriber(),
        engine=EvaluationEngine(),
    )


def build_orchestrator(adapters: SessionAdapters) -> SessionOrchestrator:
    return SessionOrchestrator(
        question_source=adapters.question_source,
        speech=adapters.speech,
        capture=adapters.capture,
        transcriber=adapters.transcriber,
        engine=adapters.engine,
    )


@dataclass
class LiveSession:  # Orchestrator bundle kept while the loop runs
    orchestrator: SessionOrchestrator
    adapters: SessionAdapters
    task: Optional["asyncio.Task[Any]"] = None


class InMemoryLiveSessions:  # Thread-safe registry of running orchestrators
    def __init__(self) -> None:
        self._sessions: Dict[str, LiveSession] = {}
        self._lock = RLock()

    def add(self, session_id: str, live: LiveSession) -> None:
        with self._lock:
            self._sessions[session_id] = live

    def get(self, session_id: str) -> LiveSession:
        with self._lock:
            stored = self._sessions.get(session_id)
        if stored is None:
            raise KeyError(session_id)
        return stored

    def find(self, session_id: str) -> Optional[LiveSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def all(self) -> List[LiveSession]:
        with self._lock:
            return list(self._sessions.values())


async def run_session(live: LiveSession) -> None:  # Drive the loop and release the transcription client
    orchestrator = live.orchestrator
    try:
        await orchestrator.run()
    except Exception:  # noqa: BLE001
        logger.exception("Session %s loop crashed", orchestrator.session_id)
    finally:
        await close_transcriber(live.adapters, orchestrator.session_id or "-")


async def close_transcriber(adapters: SessionAdapters, label: str) -> None:
    closer = getattr(adapters.transcriber, "aclose", None)
    if closer is None:
        return
    try:
        await closer()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Closing transcriber for %s failed: %s", label, exc)


__all__ = [
    "AdapterFactory",
    "InMemoryLiveSessions",
    "LiveSession",
    "SessionAdapters",
    "build_orchestrator",
    "close_transcriber",
    "default_adapters",
    "run_session",
]
