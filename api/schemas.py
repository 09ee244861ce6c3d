"""Pydantic schemas for the interview session API."""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from storage.models import JobRole, Session


Difficulty = Literal["easy", "medium", "hard"]


class StartReq(BaseModel):
    candidate_id: str = Field(min_length=1)
    role: JobRole
    difficulty: Difficulty = "medium"
    question_count: int = Field(default=5, ge=1, le=20)


class QuestionView(BaseModel):
    id: int
    text: str
    question_type: str
    time_limit_seconds: int


class StartResp(BaseModel):
    session_id: str
    status: str
    phase: str
    questions: List[QuestionView] = Field(default_factory=list)


class SignalResp(BaseModel):
    session_id: str
    phase: str


class EventView(BaseModel):
    kind: str
    phase: str
    question_index: Optional[int] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    ts: float


class SessionResp(BaseModel):
    session: Session
    phase: Optional[str] = None
    live: bool = False
    amplitude: float = 0.0
    events: List[EventView] = Field(default_factory=list)
