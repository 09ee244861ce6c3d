from __future__ import annotations  # LLM-backed question generation tier

from textwrap import dedent
from typing import Any, Callable, Dict, List

from config import AppConfig, LlmRoute, QUESTION_GEN_KEY, bind_model, resolve_registry
from llm_gateway import call
from storage.models import JobRole

from .models import GeneratedQuestions


def generate_questions(role: JobRole, difficulty: str, count: int, *, route: LlmRoute) -> List[Dict[str, Any]]:
    """Ask the configured route for ``count`` question drafts."""

    task = _build_task(role, difficulty, count)
    reply = call(task, GeneratedQuestions, cfg=route)
    return reply.questions


def bind_question_generator(cfg: AppConfig) -> Callable[..., List[Dict[str, Any]]]:
    """Resolve the generator route from ``cfg`` and bind it in the model registry."""

    resolved = resolve_registry(cfg, {QUESTION_GEN_KEY: GeneratedQuestions})
    route, _ = resolved[QUESTION_GEN_KEY]

    def _generator(*, role: JobRole, difficulty: str, count: int) -> List[Dict[str, Any]]:
        return generate_questions(role, difficulty, count, route=route)

    bind_model(QUESTION_GEN_KEY, _generator)
    return _generator


def _build_task(role: JobRole, difficulty: str, count: int) -> str:  # Compose generation prompt
    skills = ", ".join(role.required_skills) or "(not specified)"
    description = f"- Job Description: {role.description}" if role.description else ""
    return dedent(
        f"""
        You are an experienced HR professional and technical interviewer. Generate {count} realistic
        interview questions for the following job role.

        JOB ROLE DETAILS:
        - Position: {role.title}
        - Category: {role.category}
        - Difficulty Level: {difficulty}
        - Required Skills: {skills}
        {description}

        QUESTION REQUIREMENTS:
        - Mix question types: technical (about 40%), behavioral (30%), situational (20%), general (10%).
        - Easy means fundamentals, medium means practical application, hard means complex scenarios.
        - Each question must be answerable out loud in two or three minutes.

        Return a JSON object with a "questions" array. Each item has:
        - questionText: the question as it will be spoken.
        - questionType: one of technical, behavioral, situational, general.
        - difficultyLevel: {difficulty}.
        - expectedAnswerKeywords: short list of keywords a strong answer mentions.
        - timeLimitSeconds: suggested answer time in seconds.
        """
    ).strip()


__all__ = ["bind_question_generator", "generate_questions"]
