from __future__ import annotations  # Result report assembled from the store

from typing import List, Optional

from pydantic import BaseModel, Field

from storage.answers import load_transcript
from storage.models import EvaluationResult, Session, TranscriptEntry
from storage.results import get_result
from storage.sessions import get_session


class ResultReport(BaseModel):  # Graded session with its ordered transcript
    session: Session
    result: EvaluationResult
    transcript: List[TranscriptEntry] = Field(default_factory=list)


def load_report(session_id: str) -> Optional[ResultReport]:
    """Return the report for a graded session, or None while it is ungraded."""

    session = get_session(session_id)
    if session is None:
        return None
    result = get_result(session_id)
    if result is None:
        return None
    return ResultReport(session=session, result=result, transcript=load_transcript(session_id))


__all__ = ["ResultReport", "load_report"]
