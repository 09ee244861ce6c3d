import json

import httpx
import pytest

from config import AppConfig, LlmRoute, resolve_registry, route_for
from config.registry import EVALUATION_KEY, QUESTION_GEN_KEY, get_model
from interview_evaluation import ScorePayload, bind_session_evaluator
from llm_gateway import LlmGatewayError, call, extract_json_text
from question_source import GeneratedQuestions, bind_question_generator
from storage.models import JobRole

ROUTE = LlmRoute(
    name="test",
    base_url="https://llm.test",
    endpoint="/v1/chat/completions",
    model="m",
    timeout_s=5,
    max_retries=1,
    api_key_env="TEST_LLM_KEY",
)


def _client(replies, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if seen is not None:
            seen.append((request, body))
        reply = replies.pop(0)
        if isinstance(reply, int):
            return httpx.Response(reply, text="error")
        return httpx.Response(200, json={"choices": [{"message": {"content": reply}}]})

    return httpx.Client(transport=httpx.MockTransport(handler))


def test_call_validates_schema_and_sends_auth(monkeypatch):
    monkeypatch.setenv("TEST_LLM_KEY", "sk-test")
    seen = []
    reply = "```json\n{\"questions\": [{\"question\": \"Why Python?\"}]}\n```"
    parsed = call("make questions", GeneratedQuestions, cfg=ROUTE, client=_client([reply], seen))
    assert parsed.questions == [{"question": "Why Python?"}]
    request, body = seen[0]
    assert request.headers["Authorization"] == "Bearer sk-test"
    assert body["model"] == "m"
    assert body["messages"][0]["role"] == "system"
    assert body["messages"][-1] == {"role": "user", "content": "make questions"}


def test_call_retries_after_invalid_json():
    seen = []
    parsed = call("go", GeneratedQuestions, cfg=ROUTE, client=_client(["not json", "[]"], seen))
    assert parsed.questions == []
    assert len(seen) == 2
    assert "failed validation" in seen[1][1]["messages"][-1]["content"]


def test_call_gives_up_after_retries():
    with pytest.raises(LlmGatewayError):
        call("go", GeneratedQuestions, cfg=ROUTE, client=_client(["nope", "still nope"]))


def test_http_error_status_raises():
    with pytest.raises(LlmGatewayError):
        call("go", GeneratedQuestions, cfg=ROUTE, client=_client([503]))


def test_extract_json_text_strips_prose():
    assert extract_json_text('Sure! {"a": 1} Thanks') == '{"a": 1}'
    assert extract_json_text("[1, 2]") == "[1, 2]"
    assert extract_json_text("plain") == "plain"


def _config():
    return AppConfig(
        llm_routes={"main": ROUTE},
        registry={QUESTION_GEN_KEY: "main", EVALUATION_KEY: "main"},
    )


def test_registry_resolution_errors():
    cfg = _config()
    assert route_for(cfg, QUESTION_GEN_KEY) == ROUTE
    with pytest.raises(KeyError):
        route_for(cfg, "models.unknown")
    with pytest.raises(KeyError):
        route_for(AppConfig(llm_routes={}, registry={QUESTION_GEN_KEY: "missing"}), QUESTION_GEN_KEY)
    with pytest.raises(TypeError):
        resolve_registry(cfg, {QUESTION_GEN_KEY: dict})


def test_binders_register_llm_backed_models(monkeypatch):
    import interview_evaluation.llm as eval_llm
    import question_source.generation as generation

    captured = {}

    def _fake_call(task, schema, *, cfg):
        captured[schema.__name__] = task
        if schema is GeneratedQuestions:
            return GeneratedQuestions(questions=[{"question": "Q?"}])
        return ScorePayload(overall_score=8)

    monkeypatch.setattr(generation, "call", _fake_call)
    monkeypatch.setattr(eval_llm, "call", _fake_call)
    bind_question_generator(_config())
    bind_session_evaluator(_config())

    role = JobRole(id="r", title="Data Engineer", required_skills=["Spark"])
    assert get_model(QUESTION_GEN_KEY)(role=role, difficulty="hard", count=1) == [{"question": "Q?"}]
    assert "Data Engineer" in captured["GeneratedQuestions"]
    assert "Spark" in captured["GeneratedQuestions"]

    payload = get_model(EVALUATION_KEY)(
        transcript=[{"question": "Q?", "answer": "A.", "question_type": "technical"}],
        role_title="Data Engineer",
    )
    assert payload == {"overall_score": 8}
    assert "Q?" in captured["ScorePayload"] and "A." in captured["ScorePayload"]
