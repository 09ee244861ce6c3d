"""In-memory adapters and a scripted candidate for driving the orchestrator in tests."""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence

from interview_session import SessionEvent, SessionOrchestrator, SessionStateError
from storage.models import JobRole
from voice.errors import CaptureError, SpeechError, TranscriptionError
from voice.transcription import TranscriptPoll

BACKEND = JobRole(
    id="backend-developer",
    title="Backend Developer",
    category="Technology",
    required_skills=["Python", "SQL", "APIs"],
)


class FakeSpeech:
    def __init__(self, *, fail: bool = False, delay: float = 0.0) -> None:
        self.spoken: List[str] = []
        self.rates: List[Optional[float]] = []
        self.stops = 0
        self.fail = fail
        self.delay = delay

    async def speak(self, text: str, rate: Optional[float] = None) -> None:
        if self.fail:
            raise SpeechError("speaker unplugged")
        await asyncio.sleep(self.delay)
        self.spoken.append(text)
        self.rates.append(rate)

    async def stop(self) -> None:
        self.stops += 1


class FakeCapture:
    def __init__(self, *, available: bool = True, fail_start: bool = False, audio: Optional[bytes] = b"RIFFfake") -> None:
        self.available = available
        self.fail_start = fail_start
        self.audio = audio
        self.started = 0
        self.stopped = 0
        self.closed = 0

    def is_available(self) -> bool:
        return self.available

    async def start(self) -> Any:
        if self.fail_start:
            raise CaptureError("microphone busy")
        self.started += 1
        return self.started

    async def stop(self, handle: Any) -> Optional[bytes]:
        self.stopped += 1
        return self.audio

    def amplitude(self, handle: Any) -> float:
        return 0.5

    async def close(self) -> None:
        self.closed += 1

    @property
    def open_handles(self) -> int:
        return self.started - self.stopped


class FakeTranscriber:
    """Answers each submitted job with the next scripted text; ``None`` fails the job."""

    def __init__(self, texts: Sequence[Optional[str]] = (), *, pending_polls: int = 0) -> None:
        self.texts = list(texts)
        self.pending_polls = pending_polls
        self.jobs: Dict[str, Optional[str]] = {}
        self.polls: Dict[str, int] = {}
        self.closed = False

    async def submit(self, audio: bytes) -> str:
        job_id = f"job-{len(self.jobs) + 1}"
        self.jobs[job_id] = self.texts.pop(0) if self.texts else "A default answer."
        self.polls[job_id] = 0
        return job_id

    async def poll(self, job_id: str) -> TranscriptPoll:
        self.polls[job_id] += 1
        if self.polls[job_id] <= self.pending_polls:
            return TranscriptPoll(status="pending")
        text = self.jobs[job_id]
        if text is None:
            return TranscriptPoll(status="failed", error="audio unintelligible")
        return TranscriptPoll(status="done", text=text)

    async def aclose(self) -> None:
        self.closed = True


class FlakyTranscriber(FakeTranscriber):
    """Raises on the first ``errors`` polls of every job before answering."""

    def __init__(self, texts: Sequence[Optional[str]] = (), *, errors: int = 1) -> None:
        super().__init__(texts)
        self.errors = errors

    async def poll(self, job_id: str) -> TranscriptPoll:
        if self.polls[job_id] < self.errors:
            self.polls[job_id] += 1
            raise TranscriptionError("503 from upstream")
        return await super().poll(job_id)


class ScriptedCandidate:
    """Reacts to each listening phase with the next scripted action.

    Actions: ``answer`` (done speaking), ``skip``, ``silent`` (let the listen
    timeout fire) and ``abort``.
    """

    def __init__(self, orchestrator: SessionOrchestrator, actions: Sequence[str]) -> None:
        self.orchestrator = orchestrator
        self.actions = list(actions)
        self.turn = 0
        self.tasks: List[asyncio.Task] = []
        self.unsubscribe = orchestrator.subscribe(self._on_event)

    def _on_event(self, event: SessionEvent) -> None:
        if event.kind != "phase_changed" or event.phase != "listening":
            return
        action = self.actions[self.turn] if self.turn < len(self.actions) else "answer"
        self.turn += 1
        if action == "silent":
            return
        if action == "abort":
            self.orchestrator.abort()
            return
        self.tasks.append(asyncio.get_running_loop().create_task(self._signal(action)))

    async def _signal(self, action: str) -> None:
        for _ in range(200):
            await asyncio.sleep(0.005)
            try:
                if action == "skip":
                    self.orchestrator.skip()
                else:
                    self.orchestrator.done_speaking()
                return
            except SessionStateError:
                if self.orchestrator.phase != "listening":
                    return


def build(
    *,
    question_source: Any,
    speech: Optional[FakeSpeech] = None,
    capture: Optional[FakeCapture] = None,
    transcriber: Optional[FakeTranscriber] = None,
    engine: Any = None,
) -> SessionOrchestrator:
    return SessionOrchestrator(
        question_source=question_source,
        speech=speech or FakeSpeech(),
        capture=capture or FakeCapture(),
        transcriber=transcriber or FakeTranscriber(),
        engine=engine,
    )


def good_evaluation(**_: Any) -> Dict[str, Any]:
    return {
        "overall_score": 7.5,
        "technical_score": 8,
        "communication_score": "7",
        "problem_solving_score": 7.6,
        "confidence_score": 6,
        "strengths_analysis": ["Clear structure", "Concrete examples"],
        "areas_for_improvement": "- Quantify impact\n- Slow down",
        "ai_summary": "Solid interview with room to tighten answers.",
    }
