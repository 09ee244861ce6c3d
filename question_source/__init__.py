from __future__ import annotations  # Question source package exports

from .fallback_pool import static_questions
from .generation import bind_question_generator, generate_questions
from .models import GeneratedQuestions, QuestionDraft
from .question_source import QuestionSource, QuestionSourceError

__all__ = [
    "GeneratedQuestions",
    "QuestionDraft",
    "QuestionSource",
    "QuestionSourceError",
    "bind_question_generator",
    "generate_questions",
    "static_questions",
]
