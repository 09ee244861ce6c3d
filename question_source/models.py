from __future__ import annotations  # Question draft schemas for the generation tier

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from config import settings
from storage.models import QUESTION_TYPES

_ALIASES = {
    "questionText": "text",
    "question_text": "text",
    "question": "text",
    "questionType": "question_type",
    "type": "question_type",
    "difficultyLevel": "difficulty",
    "difficulty_level": "difficulty",
    "expectedAnswerKeywords": "expected_keywords",
    "expected_answer_keywords": "expected_keywords",
    "keywords": "expected_keywords",
    "sampleAnswer": "sample_answer",
    "timeLimitSeconds": "time_limit_seconds",
}


class QuestionDraft(BaseModel):  # Unpersisted question as produced by the generator
    text: str = Field(min_length=1)
    question_type: str = "general"
    difficulty: Optional[str] = None
    expected_keywords: List[str] = Field(default_factory=list)
    sample_answer: Optional[str] = None
    time_limit_seconds: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def _rename_aliases(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        renamed: Dict[str, Any] = {}
        for key, value in data.items():
            renamed.setdefault(_ALIASES.get(key, key), value)
        return renamed

    @field_validator("text", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> str:
        return str(value or "").strip()

    @field_validator("question_type", mode="before")
    @classmethod
    def _known_type(cls, value: Any) -> str:
        text = str(value or "").strip().lower()
        return text if text in QUESTION_TYPES else "general"

    @field_validator("expected_keywords", mode="before")
    @classmethod
    def _keyword_list(cls, value: Any) -> List[str]:
        if isinstance(value, str):
            value = value.split(",")
        if not isinstance(value, (list, tuple)):
            return []
        return [str(item).strip() for item in value if str(item).strip()]

    @field_validator("time_limit_seconds", mode="before")
    @classmethod
    def _positive_limit(cls, value: Any) -> Optional[int]:
        try:
            limit = int(value)
        except (TypeError, ValueError):
            return None
        return limit if limit > 0 else None

    def store_fields(self, *, role_id: str, difficulty: str, source: str) -> Dict[str, Any]:
        """Keyword arguments for the question insert helpers."""

        return {
            "role_id": role_id,
            "text": self.text,
            "question_type": self.question_type,
            "difficulty": difficulty,
            "expected_keywords": self.expected_keywords,
            "sample_answer": self.sample_answer,
            "time_limit_seconds": self.time_limit_seconds or settings.DEFAULT_TIME_LIMIT_S,
            "source": source,
        }


class GeneratedQuestions(BaseModel):  # Raw generator reply; items are validated one by one
    questions: List[Dict[str, Any]] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _accept_bare_list(cls, data: Any) -> Any:
        if isinstance(data, list):
            return {"questions": data}
        return data


__all__ = ["GeneratedQuestions", "QuestionDraft"]
