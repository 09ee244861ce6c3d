"""Evaluation Engine: grade a session once from its persisted answers."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from config import EVALUATION_KEY, get_model, settings
from observability import log_event
from storage.answers import load_transcript
from storage.models import EvaluationResult, ScoreCard, TranscriptEntry
from storage.results import get_result, insert_result
from storage.sessions import get_session

from .scoring import normalize_payload, placeholder_card

logger = logging.getLogger(__name__)


def transcript_payload(entries: List[TranscriptEntry]) -> List[Dict[str, str]]:
    return [
        {"question": entry.question, "answer": entry.answer, "question_type": entry.question_type}
        for entry in entries
    ]


class EvaluationEngine:
    """Build the transcript, call the evaluator and persist exactly one result.

    The evaluator is ``fn(*, transcript, role_title) -> payload`` where the
    payload is a mapping or JSON text. When no evaluator is injected the one
    bound under ``models.session_evaluator`` is used.
    """

    def __init__(
        self,
        *,
        evaluator: Optional[Callable[..., Any]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._evaluator = evaluator
        self._sleep = sleep

    def _resolve_evaluator(self) -> Callable[..., Any]:
        if self._evaluator is not None:
            return self._evaluator
        return get_model(EVALUATION_KEY)

    async def evaluate(self, session_id: str) -> Optional[EvaluationResult]:
        """Grade ``session_id``; returns None when it has no answers."""

        existing = await asyncio.to_thread(get_result, session_id)
        if existing is not None:
            return existing

        session = await asyncio.to_thread(get_session, session_id)
        if session is None:
            raise KeyError(f"Unknown session: {session_id}")
        entries = await asyncio.to_thread(load_transcript, session_id)
        if not entries:
            log_event("evaluation_skipped", session_id, reason="no_answers")
            return None

        transcript = transcript_payload(entries)
        card = await self._score(session_id, transcript, session.role_title)
        placeholder = card is None
        if card is None:
            card = placeholder_card()
            log_event("evaluation_placeholder", session_id, level=logging.WARNING, count=len(entries))
        result = await asyncio.to_thread(
            insert_result,
            session_id,
            card,
            answers_evaluated=len(entries),
            is_placeholder=placeholder,
        )
        log_event("evaluation_saved", session_id, count=len(entries), status="placeholder" if placeholder else "scored")
        return result

    async def _score(self, session_id: str, transcript: List[Dict[str, str]], role_title: str) -> Optional[ScoreCard]:
        attempts = settings.EVALUATION_MAX_ATTEMPTS
        for attempt in range(1, attempts + 1):
            log_event("evaluation_attempt", session_id, attempt=attempt)
            try:
                evaluator = self._resolve_evaluator()
                payload = await asyncio.wait_for(
                    asyncio.to_thread(evaluator, transcript=transcript, role_title=role_title),
                    timeout=settings.EVALUATION_TIMEOUT_S,
                )
                return normalize_payload(payload)
            except asyncio.TimeoutError:
                log_event("evaluation_failed", session_id, level=logging.WARNING, attempt=attempt, reason="timeout")
            except Exception as exc:  # noqa: BLE001
                logger.warning("Evaluation attempt %d for %s failed: %s", attempt, session_id, exc)
                log_event(
                    "evaluation_failed",
                    session_id,
                    level=logging.WARNING,
                    attempt=attempt,
                    reason=type(exc).__name__,
                )
            if attempt < attempts:
                await self._sleep(settings.EVALUATION_RETRY_BACKOFF_S * attempt)
        return None


__all__ = ["EvaluationEngine", "transcript_payload"]
