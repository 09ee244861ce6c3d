import asyncio
import random
import time

import pytest

from config.registry import QUESTION_GEN_KEY, bind_model
from question_source import QuestionDraft, QuestionSource, QuestionSourceError, static_questions
from question_source.fallback_pool import DEFAULT_CATEGORY, categories
from storage.models import JobRole
from storage.questions import fetch_cached_questions, get_question, insert_question

ROLE = JobRole(id="backend", title="Backend Developer", category="Technology")


def _drafts(n, prefix="Generated"):
    return [{"questionText": f"{prefix} question {i}?", "questionType": "technical"} for i in range(n)]


def _get(source, count, role=ROLE, difficulty="medium"):
    return asyncio.run(source.get_questions(role, difficulty, count))


def _assert_persisted(questions):
    for question in questions:
        stored = get_question(question.id)
        assert stored is not None and stored.text == question.text


def test_cache_tier_used_when_enough_fresh_questions():
    for i in range(4):
        insert_question(role_id=ROLE.id, text=f"Cached {i}", difficulty="medium")

    def _boom(**_):
        raise AssertionError("generator must not be called")

    questions = _get(QuestionSource(generator=_boom, rng=random.Random(1)), 3)
    assert len(questions) == 3
    assert len({q.id for q in questions}) == 3
    assert all(q.text.startswith("Cached") for q in questions)


def test_generated_questions_are_persisted_before_return():
    source = QuestionSource(generator=lambda **kw: _drafts(kw["count"]))
    questions = _get(source, 3)
    assert [q.source for q in questions] == ["generated"] * 3
    assert all(q.question_type == "technical" for q in questions)
    assert all(q.time_limit_seconds == 120 for q in questions)
    _assert_persisted(questions)
    # the next session for the same role can now be served from the cache
    assert len(fetch_cached_questions(ROLE.id, "medium", max_age_days=30)) == 3


def test_registry_generator_used_when_none_injected(fake_models):
    questions = _get(QuestionSource(), 2)
    assert [q.text for q in questions] == [
        "Backend Developer question 1 (medium)",
        "Backend Developer question 2 (medium)",
    ]


def test_partial_generation_is_topped_up_from_cache_then_pool():
    insert_question(role_id=ROLE.id, text="Old cached question", difficulty="medium")
    source = QuestionSource(generator=lambda **_: _drafts(2) + [{"text": "   "}, "junk"])
    questions = _get(source, 5)
    assert len(questions) == 5
    assert [q.source for q in questions[:3]] == ["generated", "generated", "generated"]
    assert questions[2].text == "Old cached question"
    assert [q.source for q in questions[3:]] == ["static", "static"]
    assert len({q.text.lower() for q in questions}) == 5
    _assert_persisted(questions)


def test_generation_failure_falls_back_to_static_pool():
    def _fail(**_):
        raise RuntimeError("LLM down")

    questions = _get(QuestionSource(generator=_fail), 3)
    pool = [draft.text for draft in static_questions("Technology")]
    assert [q.text for q in questions] == pool[:3]
    _assert_persisted(questions)

    # static rows are reused rather than duplicated
    again = _get(QuestionSource(generator=_fail), 3)
    assert [q.id for q in again] == [q.id for q in questions]


def test_generation_timeout_falls_back(monkeypatch):
    from config.settings import settings

    monkeypatch.setattr(settings, "QUESTION_GENERATION_TIMEOUT_S", 0.05)

    def _slow(**kw):
        time.sleep(0.3)
        return _drafts(kw["count"])

    questions = _get(QuestionSource(generator=_slow), 2)
    assert [q.source for q in questions] == ["static", "static"]


def test_unbound_generator_uses_pool_and_short_pool_is_accepted():
    questions = _get(QuestionSource(), 50, role=JobRole(id="d1", title="Designer", category="Design"))
    assert len(questions) == len(static_questions("Design"))


def test_unknown_category_uses_default_pool():
    role = JobRole(id="x", title="Astronaut", category="Space")
    assert [d.text for d in static_questions("Space")] == [d.text for d in static_questions(DEFAULT_CATEGORY)]
    questions = _get(QuestionSource(), 1, role=role)
    assert questions[0].text == static_questions(DEFAULT_CATEGORY)[0].text
    assert set(categories()) >= {"Technology", "Marketing", "Sales", "Design", "Finance", "General"}


def test_no_questions_anywhere_raises(monkeypatch):
    import question_source.question_source as module

    monkeypatch.setattr(module, "static_questions", lambda category: [])
    with pytest.raises(QuestionSourceError):
        _get(QuestionSource(generator=lambda **_: []), 3)


def test_count_must_be_positive():
    with pytest.raises(ValueError):
        _get(QuestionSource(), 0)


def test_question_draft_is_lenient():
    draft = QuestionDraft.model_validate(
        {"question": "  Why?  ", "type": "Riddle", "keywords": "a, b ,", "timeLimitSeconds": -4}
    )
    assert draft.text == "Why?"
    assert draft.question_type == "general"
    assert draft.expected_keywords == ["a", "b"]
    assert draft.time_limit_seconds is None
    fields = draft.store_fields(role_id="r", difficulty="easy", source="generated")
    assert fields["time_limit_seconds"] == 120


def test_registry_binding_via_model_key():
    bind_model(QUESTION_GEN_KEY, lambda **kw: {"questions": _drafts(kw["count"], prefix="Wrapped")})
    questions = _get(QuestionSource(), 2)
    assert all(q.text.startswith("Wrapped") for q in questions)
