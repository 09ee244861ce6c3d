"""Row models returned by the persistence helpers."""
from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

SessionStatus = Literal["pending", "active", "completed", "aborted"]
QuestionType = Literal["technical", "behavioral", "situational", "general"]
QuestionSourceTier = Literal["generated", "static"]

QUESTION_TYPES = ("technical", "behavioral", "situational", "general")
SCORE_FIELDS = (
    "overall_score",
    "technical_score",
    "communication_score",
    "problem_solving_score",
    "confidence_score",
)

NO_ANSWER = "[No response provided]"


class JobRole(BaseModel):  # Role the candidate is interviewing for
    id: str
    title: str
    category: str = "Technology"
    required_skills: List[str] = Field(default_factory=list)
    description: str = ""


class Question(BaseModel):  # Persisted question; id is the store's row id
    id: int
    role_id: str
    text: str
    question_type: QuestionType = "general"
    difficulty: str
    expected_keywords: List[str] = Field(default_factory=list)
    sample_answer: Optional[str] = None
    time_limit_seconds: int = 120
    source: QuestionSourceTier = "generated"
    created_at: str = ""


class Session(BaseModel):  # One interview attempt
    id: str
    candidate_id: str
    role_id: str
    role_title: str
    difficulty: str
    status: SessionStatus = "pending"
    total_questions: int = 0
    questions_answered: int = 0
    current_index: int = 0
    created_at: str
    started_at: Optional[str] = None
    ended_at: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "aborted")


class Answer(BaseModel):  # Raw answer keyed by (session, question)
    id: int
    session_id: str
    question_id: int
    text: str
    is_no_answer: bool = False
    duration_s: float = 0.0
    created_at: str


class TranscriptEntry(BaseModel):  # Answer joined with its question, in issuance order
    position: int
    question_id: int
    question: str
    question_type: str
    answer: str
    is_no_answer: bool = False


class ScoreCard(BaseModel):  # Normalized evaluation payload
    overall_score: float = Field(ge=0.0, le=10.0)
    technical_score: float = Field(ge=0.0, le=10.0)
    communication_score: float = Field(ge=0.0, le=10.0)
    problem_solving_score: float = Field(ge=0.0, le=10.0)
    confidence_score: float = Field(ge=0.0, le=10.0)
    strengths: List[str] = Field(default_factory=list)
    improvement_areas: List[str] = Field(default_factory=list)
    summary: str = ""


class EvaluationResult(ScoreCard):  # Persisted grade for one session
    id: int
    session_id: str
    answers_evaluated: int
    is_placeholder: bool = False
    created_at: str


__all__ = [
    "Answer",
    "EvaluationResult",
    "JobRole",
    "NO_ANSWER",
    "QUESTION_TYPES",
    "Question",
    "QuestionSourceTier",
    "QuestionType",
    "SCORE_FIELDS",
    "ScoreCard",
    "Session",
    "SessionStatus",
    "TranscriptEntry",
]
