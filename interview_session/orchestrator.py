from __future__ import annotations

import asyncio
import logging
from collections import deque
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Deque, Dict, List, Optional, Tuple

from config import settings
from interview_evaluation import EvaluationEngine
from observability import log_event, span
from question_source import QuestionSource
from storage.answers import count_answers, save_answer
from storage.models import NO_ANSWER, Answer, EvaluationResult, JobRole, Question, Session
from storage.sessions import attach_questions, create_session, finish_session, get_session, mark_active, set_current_index
from voice.capture import AudioCapture
from voice.errors import TranscriptionTimeout
from voice.speech import SpeechOutput
from voice.transcription import Transcriber, transcribe

from .models import NO_ANSWER_REASONS, VALID_TRANSITIONS, Phase, SessionAborted, SessionEvent, SessionStateError

logger = logging.getLogger(__name__)

Listener = Callable[[SessionEvent], Any]

CAPTURE_FAILED_MESSAGE = (
    "I couldn't access your microphone for this question, so I'll mark it as unanswered and move on."
)
ANSWER_PROMPT = "Please take your time to answer this question."
CLOSING_MESSAGE = "Thank you for completing the interview! I am now preparing your detailed feedback."


class _Take:  # Audio collected by one recording scope
    def __init__(self, handle: Any) -> None:
        self.handle = handle
        self.audio: Optional[bytes] = None


class SessionOrchestrator:
    """Drive one interview: speak, listen, transcribe, persist, advance, evaluate.

    Exactly one of speaking, listening, transcribing and persisting is in
    flight at a time. ``done_speaking``, ``skip`` and ``abort`` are signals
    from the presentation layer; observers registered with ``subscribe`` see
    every phase change but never touch session state.
    """

    def __init__(
        self,
        *,
        question_source: QuestionSource,
        speech: SpeechOutput,
        capture: AudioCapture,
        transcriber: Transcriber,
        engine: Optional[EvaluationEngine] = None,
        transcribe_fn: Callable[..., Awaitable[str]] = transcribe,
    ) -> None:
        self._question_source = question_source
        self._speech = speech
        self._capture = capture
        self._transcriber = transcriber
        self._engine = engine or EvaluationEngine()
        self._transcribe = transcribe_fn

        self._phase: Phase = "setup"
        self._session: Optional[Session] = None
        self._role: Optional[JobRole] = None
        self._questions: List[Question] = []
        self._index = 0
        self._running = False
        self._abort_requested = asyncio.Event()
        self._answer_signal: Optional[asyncio.Future] = None
        self._skip_pending = False
        self._finish_pending = False
        self._recording_handle: Any = None
        self._result: Optional[EvaluationResult] = None
        self._listeners: List[Listener] = []
        self._events: List[Dict[str, Any]] = []
        self._history: Deque[SessionEvent] = deque(maxlen=100)

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def session_id(self) -> Optional[str]:
        return self._session.id if self._session else None

    @property
    def questions(self) -> List[Question]:
        return list(self._questions)

    @property
    def question_index(self) -> int:
        return self._index

    @property
    def events(self) -> List[Dict[str, Any]]:
        return list(self._events)

    @property
    def history(self) -> List[SessionEvent]:
        return list(self._history)

    @property
    def result(self) -> Optional[EvaluationResult]:
        return self._result

    @property
    def amplitude(self) -> float:
        """Input level in [0, 1] of the answer being recorded; 0.0 when not listening."""

        handle = self._recording_handle
        if self._phase != "listening" or handle is None:
            return 0.0
        try:
            level = float(self._capture.amplitude(handle))
        except Exception:  # noqa: BLE001
            return 0.0
        return min(max(level, 0.0), 1.0)

    def subscribe(self, listener: Listener) -> Callable[[], None]:  # Register an observer
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def setup(self, role: JobRole, difficulty: str, question_count: int, candidate_id: str) -> Session:
        """Resolve questions, create the session row and move to greeting.

        ``QuestionSourceError`` propagates: a session without questions never starts.
        """

        if self._phase != "setup" or self._session is not None:
            raise SessionStateError(f"setup() is not allowed in phase {self._phase}")
        if question_count < 1:
            raise ValueError("question_count must be at least 1")

        with span(self._events, "question_source"):
            questions = await self._question_source.get_questions(
                role, difficulty, question_count, trace_id=candidate_id
            )
        if len(questions) < question_count:
            log_event("questions_short", candidate_id, count=len(questions), requested=question_count)

        session = await asyncio.to_thread(
            create_session, candidate_id=candidate_id, role=role, difficulty=difficulty
        )
        await asyncio.to_thread(attach_questions, session.id, [question.id for question in questions])
        self._session = await asyncio.to_thread(get_session, session.id)
        self._role = role
        self._questions = list(questions)
        self._transition("greeting", total=len(questions))
        return self._session

    async def run(self) -> Optional[EvaluationResult]:
        """Run the question loop to a terminal phase and return the evaluation, if any."""

        if self._session is None:
            raise SessionStateError("run() called before setup()")
        if self._phase == "done":
            if self._finish_pending:
                self._finish_pending = False
                self._session = await asyncio.to_thread(finish_session, self._session.id, "aborted")
            return self._result
        if self._running or self._phase != "greeting":
            raise SessionStateError(f"run() is not allowed in phase {self._phase}")

        self._running = True
        status = "completed"
        try:
            await asyncio.to_thread(mark_active, self._session.id)
            self._check_abort()
            await self._greet()
            self._transition("asking", question_index=0)
            while True:
                await self._ask_and_record(self._index)
                self._check_abort()
                self._transition("advance")
                self._index += 1
                if self._index >= len(self._questions):
                    await self._say(CLOSING_MESSAGE)
                    break
                self._transition("asking", question_index=self._index)
        except SessionAborted:
            status = "aborted"
            self._transition("aborting", reason="user")
        except Exception as exc:  # noqa: BLE001
            logger.exception("Session %s failed unexpectedly", self._session.id)
            log_event("session_error", self._session.id, level=logging.ERROR, reason=type(exc).__name__)
            status = "aborted"
            self._transition("aborting", reason="error")
        finally:
            await self._release_devices()

        return await self._finish(status)

    def done_speaking(self) -> None:
        """Candidate finished the answer; stop recording and transcribe."""

        if self._phase != "listening" or self._answer_signal is None:
            raise SessionStateError(f"done_speaking() is not allowed in phase {self._phase}")
        if not self._answer_signal.done():
            self._answer_signal.set_result("done")

    def skip(self) -> None:
        """Skip the current question; recorded exactly like a listening timeout."""

        if self._phase == "asking":
            self._skip_pending = True
            return
        if self._phase != "listening" or self._answer_signal is None:
            raise SessionStateError(f"skip() is not allowed in phase {self._phase}")
        if not self._answer_signal.done():
            self._answer_signal.set_result("skip")

    def abort(self) -> None:
        """End the interview from any phase; no-op once evaluation has started."""

        if self._phase in ("aborting", "evaluating", "done"):
            return
        if self._running:
            if not self._abort_requested.is_set():
                log_event("abort_requested", self.session_id or "-", phase=self._phase)
            self._abort_requested.set()
            return
        # Not started yet: nothing was answered, so there is nothing to evaluate.
        # run() records the aborted status in the store.
        self._abort_requested.set()
        self._finish_pending = self._session is not None
        self._transition("aborting", reason="user")
        self._transition("done", status="aborted")

    async def _greet(self) -> None:
        assert self._role is not None
        rate = settings.GREETING_SPEECH_RATE
        total = len(self._questions)
        capture_ok = await asyncio.to_thread(self._capture_available)
        await self._say(f"Hello! Welcome to your voice interview for the position of {self._role.title}.", rate)
        await self._say(
            f"I'll be asking you {total} question{'s' if total != 1 else ''} today to learn more about "
            "your experience and skills.",
            rate,
        )
        await self._say(
            "Here's how it works: I'll ask you a question, then you'll have time to think and answer. "
            "Take your time and speak clearly, and tell me when you are done.",
            rate,
        )
        if not capture_ok:
            await self._say(
                "It seems that audio recording is not available on your device. You can still take part, "
                "but your answers cannot be recorded.",
                rate,
            )
        await self._say("You can end the interview at any time. Let's start with the first question.", rate)

    def _capture_available(self) -> bool:
        try:
            return bool(self._capture.is_available())
        except Exception:  # noqa: BLE001
            logger.warning("Capture availability check failed", exc_info=True)
            return False

    async def _ask_and_record(self, index: int) -> Answer:
        assert self._session is not None
        question = self._questions[index]
        self._skip_pending = False
        await asyncio.to_thread(set_current_index, self._session.id, index)
        self._emit("question_asked", question_id=question.id, text=question.text)

        await self._say(f"Question {index + 1} of {len(self._questions)}:")
        await self._say(question.text)
        await self._say(ANSWER_PROMPT)
        self._check_abort()

        if self._skip_pending:
            return await self._persist(question, None, reason="skipped", duration_s=0.0)

        self._transition("listening")
        audio, reason, duration = await self._listen()
        if audio is None:
            return await self._persist(question, None, reason=reason, duration_s=duration)

        self._transition("transcribing")
        text, reason = await self._transcribe_audio(audio)
        return await self._persist(question, text, reason=reason, duration_s=duration)

    async def _listen(self) -> Tuple[Optional[bytes], str, float]:
        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            handle = await self._interruptible(self._capture.start(), timeout=settings.SPEECH_TIMEOUT_S)
        except SessionAborted:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.warning("Capture start failed for session %s: %s", self.session_id, exc)
            await self._say(CAPTURE_FAILED_MESSAGE)
            return None, "capture_failed", 0.0

        async with self._recording(handle) as take:
            with span(self._events, "listen", question_index=self._index):
                outcome = await self._await_answer_signal()
        duration = round(loop.time() - started, 2)

        if outcome == "timeout":
            return None, "timeout", duration
        if outcome == "skip":
            return None, "skipped", duration
        if not take.audio:
            return None, "empty_audio", duration
        return take.audio, "", duration

    @asynccontextmanager
    async def _recording(self, handle: Any) -> AsyncIterator[_Take]:  # Guarantee the handle is stopped
        take = _Take(handle)
        self._recording_handle = handle
        try:
            yield take
        finally:
            self._recording_handle = None
            try:
                take.audio = await asyncio.wait_for(self._capture.stop(handle), timeout=settings.SPEECH_TIMEOUT_S)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Capture stop failed for session %s: %s", self.session_id, exc)
                take.audio = None

    async def _await_answer_signal(self) -> str:
        self._answer_signal = asyncio.get_running_loop().create_future()
        try:
            return await self._interruptible(self._answer_signal, timeout=settings.LISTEN_TIMEOUT_S)
        except asyncio.TimeoutError:
            return "timeout"
        finally:
            self._answer_signal = None

    async def _transcribe_audio(self, audio: bytes) -> Tuple[Optional[str], str]:
        try:
            with span(self._events, "transcribe", question_index=self._index):
                text = await self._interruptible(self._transcribe(self._transcriber, audio))
        except SessionAborted:
            raise
        except TranscriptionTimeout:
            return None, "transcription_timeout"
        except Exception as exc:  # noqa: BLE001
            logger.warning("Transcription failed for session %s: %s", self.session_id, exc)
            return None, "transcription_failed"
        if not text or not text.strip():
            return None, "empty_transcript"
        return text.strip(), ""

    async def _persist(self, question: Question, text: Optional[str], *, reason: str, duration_s: float) -> Answer:
        assert self._session is not None
        self._transition("persisting")
        no_answer = text is None
        if no_answer and reason not in NO_ANSWER_REASONS:
            raise SessionStateError(f"Unknown no-answer reason: {reason}")
        if no_answer:
            log_event("no_answer", self._session.id, question_index=self._index, reason=reason)
        with span(self._events, "persist", question_index=self._index):
            answer = await asyncio.to_thread(
                save_answer,
                session_id=self._session.id,
                question_id=question.id,
                text=NO_ANSWER if no_answer else text,
                is_no_answer=no_answer,
                duration_s=max(duration_s, 0.0),
            )
        self._emit(
            "answer_saved",
            question_id=question.id,
            is_no_answer=no_answer,
            reason=reason or None,
        )
        return answer

    async def _say(self, text: str, rate: Optional[float] = None) -> None:
        try:
            with span(self._events, "speak", question_index=self._index):
                await self._interruptible(
                    self._speech.speak(text, rate if rate is not None else settings.SPEECH_RATE),
                    timeout=settings.SPEECH_TIMEOUT_S,
                )
        except SessionAborted:
            await self._stop_speech()
            raise
        except asyncio.TimeoutError:
            log_event("speech_timeout", self.session_id or "-", level=logging.WARNING, phase=self._phase)
            await self._stop_speech()
        except Exception as exc:  # noqa: BLE001
            log_event(
                "speech_failed",
                self.session_id or "-",
                level=logging.WARNING,
                phase=self._phase,
                reason=type(exc).__name__,
            )

    async def _stop_speech(self) -> None:
        try:
            await asyncio.wait_for(self._speech.stop(), timeout=5.0)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Speech stop failed for session %s: %s", self.session_id, exc)

    async def _interruptible(self, awaitable: Awaitable[Any], timeout: Optional[float] = None) -> Any:
        """Await ``awaitable`` unless abort() or ``timeout`` wins first; the loser is cancelled."""

        op = asyncio.ensure_future(awaitable)
        if self._abort_requested.is_set():
            op.cancel()
            await self._drain(op)
            raise SessionAborted()
        stopper = asyncio.ensure_future(self._abort_requested.wait())
        try:
            done, _ = await asyncio.wait({op, stopper}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopper.cancel()
        if op in done:
            return op.result()
        op.cancel()
        await self._drain(op)
        if self._abort_requested.is_set():
            raise SessionAborted()
        raise asyncio.TimeoutError()

    @staticmethod
    async def _drain(op: "asyncio.Future[Any]") -> None:
        try:
            await op
        except asyncio.CancelledError:
            pass
        except Exception as exc:  # noqa: BLE001
            logger.debug("Cancelled operation ended with %s", exc)

    def _check_abort(self) -> None:
        if self._abort_requested.is_set():
            raise SessionAborted()

    async def _release_devices(self) -> None:
        try:
            await asyncio.wait_for(self._capture.close(), timeout=5.0)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Releasing audio device failed for session %s: %s", self.session_id, exc)

    async def _finish(self, status: str) -> Optional[EvaluationResult]:
        assert self._session is not None
        session_id = self._session.id
        self._session = await asyncio.to_thread(finish_session, session_id, status)
        answered = await asyncio.to_thread(count_answers, session_id)
        log_event("session_finished", session_id, status=status, count=answered)

        if answered > 0:
            self._transition("evaluating", answered=answered)
            try:
                with span(self._events, "evaluate"):
                    self._result = await self._engine.evaluate(session_id)
            except Exception:  # noqa: BLE001
                logger.exception("Evaluation for session %s failed", session_id)
                self._result = None
        self._session = await asyncio.to_thread(get_session, session_id)
        self._transition("done", status=status, graded=self._result is not None)
        self._running = False
        return self._result

    def _transition(self, phase: Phase, **payload: Any) -> None:
        allowed = VALID_TRANSITIONS.get(self._phase, ())
        if phase not in allowed:
            raise SessionStateError(f"Invalid transition {self._phase} -> {phase}")
        previous = self._phase
        self._phase = phase
        question_index = payload.pop("question_index", self._index)
        log_event(
            "phase",
            self.session_id or "-",
            phase=phase,
            question_index=question_index,
            previous=previous,
            **payload,
        )
        self._emit("phase_changed", previous=previous, **payload)

    def _emit(self, kind: str, **payload: Any) -> None:
        event = SessionEvent(
            kind=kind,
            session_id=self.session_id,
            phase=self._phase,
            question_index=self._index if self._questions else None,
            payload=payload,
        )
        self._history.append(event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:  # noqa: BLE001
                logger.exception("Session listener failed on %s", kind)


__all__ = [
    "ANSWER_PROMPT",
    "CAPTURE_FAILED_MESSAGE",
    "CLOSING_MESSAGE",
    "SessionOrchestrator",
]
