from __future__ import annotations  # LLM-backed session evaluator

from textwrap import dedent
from typing import Any, Callable, Dict, List, Sequence

from pydantic import BaseModel, ConfigDict

from config import AppConfig, EVALUATION_KEY, LlmRoute, bind_model, resolve_registry
from llm_gateway import call


class ScorePayload(BaseModel):  # Permissive envelope; values are coerced later
    model_config = ConfigDict(extra="allow")

    overall_score: Any = None
    technical_score: Any = None
    communication_score: Any = None
    problem_solving_score: Any = None
    confidence_score: Any = None
    strengths_analysis: Any = None
    areas_for_improvement: Any = None
    ai_summary: Any = None


def evaluate_transcript(
    transcript: Sequence[Dict[str, str]], role_title: str, *, route: LlmRoute
) -> Dict[str, Any]:  # Call LLM evaluator
    task = _build_task(transcript, role_title)
    return call(task, ScorePayload, cfg=route).model_dump(exclude_none=True)


def bind_session_evaluator(cfg: AppConfig) -> Callable[..., Dict[str, Any]]:
    resolved = resolve_registry(cfg, {EVALUATION_KEY: ScorePayload})
    route, _ = resolved[EVALUATION_KEY]

    def _evaluator(*, transcript: Sequence[Dict[str, str]], role_title: str) -> Dict[str, Any]:
        return evaluate_transcript(transcript, role_title, route=route)

    bind_model(EVALUATION_KEY, _evaluator)
    return _evaluator


def format_transcript(transcript: Sequence[Dict[str, str]]) -> str:
    lines: List[str] = []
    for index, item in enumerate(transcript, start=1):
        lines.append(f"Q{index} ({item.get('question_type', 'general')}): {item.get('question', '')}")
        lines.append(f"A{index}: {item.get('answer', '')}")
        lines.append("")
    return "\n".join(lines).strip()


def _build_task(transcript: Sequence[Dict[str, str]], role_title: str) -> str:  # Compose evaluation prompt
    body = format_transcript(transcript)
    return dedent(
        """
        You are an expert interviewer evaluating a complete interview session for a {role_title} position.

        Analyze the transcript below and give one holistic evaluation. Answers recorded as
        "[No response provided]" mean the candidate did not answer that question.

        INTERVIEW TRANSCRIPT:
        {body}

        Return a JSON object with these fields:
        - overall_score: overall performance, 0-10.
        - technical_score: technical knowledge and accuracy, 0-10.
        - communication_score: clarity and structure, 0-10.
        - problem_solving_score: analytical approach, 0-10.
        - confidence_score: confidence and professionalism, 0-10.
        - strengths_analysis: list of specific strengths shown across the answers.
        - areas_for_improvement: list of concrete, actionable improvements.
        - ai_summary: two or three paragraph summary with a final recommendation.
        """
    ).strip().format(role_title=role_title, body=body)


__all__ = ["ScorePayload", "bind_session_evaluator", "evaluate_transcript", "format_transcript"]
