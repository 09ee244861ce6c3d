"""End-to-end interview runs over the real store, question source and evaluation engine."""
import asyncio

from config.registry import EVALUATION_KEY, bind_model
from fakes import BACKEND, FakeCapture, FakeSpeech, FakeTranscriber, ScriptedCandidate, build
from interview_evaluation import EvaluationEngine
from question_source import QuestionSource
from storage.answers import count_answers, list_answers
from storage.models import NO_ANSWER
from storage.results import get_result
from storage.sessions import get_session


def _run_interview(actions, *, count=3, speech=None, capture=None, transcriber=None, hook=None):
    orchestrator = build(
        question_source=QuestionSource(),
        speech=speech or FakeSpeech(),
        capture=capture or FakeCapture(),
        transcriber=transcriber or FakeTranscriber(["I design APIs with care.", "I profile before optimizing."]),
        engine=EvaluationEngine(),
    )
    observed = []

    def _observe(event):
        session_id = orchestrator.session_id
        if session_id is not None and event.kind == "answer_saved":
            observed.append((get_session(session_id).questions_answered, count_answers(session_id)))

    orchestrator.subscribe(_observe)
    if hook is not None:
        orchestrator.subscribe(lambda event: hook(orchestrator, event))

    async def _go():
        await orchestrator.setup(BACKEND, "medium", count, "cand-42")
        ScriptedCandidate(orchestrator, actions)
        return await orchestrator.run()

    result = asyncio.run(_go())
    return orchestrator, result, observed


def test_backend_developer_three_questions_with_timeout_on_last(fake_models):
    orchestrator, result, observed = _run_interview(["answer", "answer", "silent"])

    session = get_session(orchestrator.session_id)
    assert session.status == "completed"
    assert session.total_questions == 3
    assert session.questions_answered == 3

    answers = list_answers(session.id)
    assert [a.text for a in answers[:2]] == ["I design APIs with care.", "I profile before optimizing."]
    assert [a.text for a in answers if a.is_no_answer] == [NO_ANSWER]
    assert answers[2].is_no_answer

    assert result is not None and not result.is_placeholder
    assert result.answers_evaluated == 3
    for score in (result.overall_score, result.technical_score, result.communication_score,
                  result.problem_solving_score, result.confidence_score):
        assert 0.0 <= score <= 10.0
    assert get_result(session.id).id == result.id

    # counter equals persisted answers at every observation point
    assert observed == [(1, 1), (2, 2), (3, 3)]


def test_every_answer_references_a_persisted_question_through_all_tiers():
    # no generator bound: every question comes from the static pool
    bind_model(EVALUATION_KEY, lambda **_: {"overall_score": 6})
    orchestrator, result, _ = _run_interview(["answer", "answer", "answer"])
    issued = {q.id for q in orchestrator.questions}
    answers = list_answers(orchestrator.session_id)
    assert len(answers) == 3
    assert {a.question_id for a in answers} == issued
    assert all(q.source == "static" for q in orchestrator.questions)
    assert result.overall_score == 6.0


def test_abort_after_one_answer_grades_only_that_answer(fake_models):
    capture = FakeCapture()
    orchestrator, result, _ = _run_interview(["answer", "abort"], capture=capture)

    session = get_session(orchestrator.session_id)
    assert session.status == "aborted"
    assert session.questions_answered == 1
    assert result is not None
    assert result.answers_evaluated == 1
    assert get_result(session.id).answers_evaluated == 1
    assert capture.open_handles == 0 and capture.closed == 1
    assert orchestrator.phase == "done"


def test_abort_before_any_answer_yields_no_result(fake_models):
    orchestrator, result, _ = _run_interview(["abort"])
    session = get_session(orchestrator.session_id)
    assert result is None
    assert session.status == "aborted"
    assert session.questions_answered == 0
    assert get_result(session.id) is None


def test_abort_while_speaking_stops_playback(fake_models):
    speech = FakeSpeech(delay=0.2)

    def _abort_on_first_question(orchestrator, event):
        if event.kind == "question_asked":
            orchestrator.abort()

    orchestrator, result, _ = _run_interview([], speech=speech, hook=_abort_on_first_question)
    assert result is None
    assert speech.stops >= 1
    assert get_session(orchestrator.session_id).status == "aborted"


def test_evaluation_outage_still_produces_placeholder(fake_models):
    def _down(**_):
        raise ConnectionError("evaluation service unreachable")

    bind_model(EVALUATION_KEY, _down)
    orchestrator, result, _ = _run_interview(["answer", "skip", "answer"])
    assert result.is_placeholder
    assert result.answers_evaluated == 3
    assert get_session(orchestrator.session_id).status == "completed"
