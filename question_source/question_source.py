"""Resolve the ordered question list for a session: cache, then generator, then the static pool."""
from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Callable, Iterable, List, Optional

from pydantic import ValidationError

from config import QUESTION_GEN_KEY, get_model, settings
from observability import log_event
from storage.models import JobRole, Question
from storage.questions import fetch_cached_questions, get_or_create_question, insert_question

from .fallback_pool import static_questions
from .models import QuestionDraft

logger = logging.getLogger(__name__)


class QuestionSourceError(RuntimeError):  # No questions obtainable from any tier
    pass


class QuestionSource:
    """Question tiers for one role and difficulty.

    Every question handed out has already been persisted, so callers can use
    ``Question.id`` as a foreign key right away.
    """

    def __init__(
        self,
        *,
        generator: Optional[Callable[..., Iterable[Any]]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._generator = generator
        self._rng = rng or random.Random()

    async def get_questions(self, role: JobRole, difficulty: str, count: int, *, trace_id: str = "-") -> List[Question]:
        if count < 1:
            raise ValueError("count must be at least 1")

        fresh = await asyncio.to_thread(
            fetch_cached_questions,
            role.id,
            difficulty,
            max_age_days=settings.QUESTION_CACHE_MAX_AGE_DAYS,
        )
        if len(fresh) >= count:
            log_event("question_tier", trace_id, tier="cache", count=count)
            return self._rng.sample(fresh, count)

        questions = await self._generated(role, difficulty, count, trace_id)
        if len(questions) < count:
            leftovers = await asyncio.to_thread(
                fetch_cached_questions,
                role.id,
                difficulty,
                exclude_ids=[question.id for question in questions],
            )
            topped = _distinct(questions, leftovers, count)
            if len(topped) > len(questions):
                log_event("question_tier", trace_id, tier="cache_topup", count=len(topped) - len(questions))
            questions = topped
        if len(questions) < count:
            pooled = await asyncio.to_thread(self._persist_static, role, difficulty, count, questions)
            if pooled:
                log_event("question_tier", trace_id, tier="static", count=len(pooled))
            questions = questions + pooled

        if not questions:
            log_event("question_tier", trace_id, level=logging.ERROR, tier="none", count=0)
            raise QuestionSourceError(f"No questions available for role {role.id} ({difficulty})")
        return questions

    async def _generated(self, role: JobRole, difficulty: str, count: int, trace_id: str) -> List[Question]:
        generator = self._generator
        if generator is None:
            try:
                generator = get_model(QUESTION_GEN_KEY)
            except KeyError:
                log_event("question_tier", trace_id, level=logging.WARNING, tier="generated", reason="unbound")
                return []
        try:
            raw = await asyncio.wait_for(
                asyncio.to_thread(generator, role=role, difficulty=difficulty, count=count),
                timeout=settings.QUESTION_GENERATION_TIMEOUT_S,
            )
        except asyncio.TimeoutError:
            log_event("question_tier", trace_id, level=logging.WARNING, tier="generated", reason="timeout")
            return []
        except Exception as exc:  # noqa: BLE001
            logger.warning("Question generation failed for role %s: %s", role.id, exc)
            log_event("question_tier", trace_id, level=logging.WARNING, tier="generated", reason="error")
            return []

        drafts = _valid_drafts(raw or [])
        persisted: List[Question] = []
        seen = set()
        for draft in drafts:
            if len(persisted) >= count:
                break
            if draft.text.lower() in seen:
                continue
            seen.add(draft.text.lower())
            fields = draft.store_fields(role_id=role.id, difficulty=difficulty, source="generated")
            persisted.append(await asyncio.to_thread(insert_question, **fields))
        log_event("question_tier", trace_id, tier="generated", count=len(persisted))
        return persisted

    def _persist_static(self, role: JobRole, difficulty: str, count: int, taken: List[Question]) -> List[Question]:
        used = {question.text.lower() for question in taken}
        pooled: List[Question] = []
        for draft in static_questions(role.category):
            if len(taken) + len(pooled) >= count:
                break
            if draft.text.lower() in used:
                continue
            used.add(draft.text.lower())
            fields = draft.store_fields(role_id=role.id, difficulty=difficulty, source="static")
            pooled.append(get_or_create_question(**fields))
        return pooled


def _valid_drafts(raw: Any) -> List[QuestionDraft]:
    if isinstance(raw, dict):
        raw = raw.get("questions") or []
    drafts: List[QuestionDraft] = []
    for item in raw:
        if isinstance(item, QuestionDraft):
            drafts.append(item)
            continue
        try:
            drafts.append(QuestionDraft.model_validate(item))
        except ValidationError:
            logger.debug("Dropping unusable question draft: %r", item)
    return drafts


def _distinct(base: List[Question], extra: List[Question], count: int) -> List[Question]:
    merged = list(base)
    texts = {question.text.lower() for question in base}
    for question in extra:
        if len(merged) >= count:
            break
        if question.text.lower() in texts:
            continue
        texts.add(question.text.lower())
        merged.append(question)
    return merged


__all__ = ["QuestionSource", "QuestionSourceError"]
