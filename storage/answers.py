"""Persistence helpers for candidate answers."""
from __future__ import annotations

import datetime as dt
import sqlite3
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from .models import Answer, TranscriptEntry
from .sqlite import get_conn


class AnswerPayload(BaseModel):
    session_id: str = Field(min_length=1)
    question_id: int
    text: str
    is_no_answer: bool = False
    duration_s: float = Field(default=0.0, ge=0.0)


def _now() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


def _row_to_answer(row: sqlite3.Row) -> Answer:
    return Answer(
        id=row["id"],
        session_id=row["session_id"],
        question_id=row["question_id"],
        text=row["answer_text"],
        is_no_answer=bool(row["is_no_answer"]),
        duration_s=row["duration_s"],
        created_at=row["created_at"],
    )


def save_answer(**data: Any) -> Answer:
    """Store one answer per (session, question) and refresh the session's answered count.

    A second save for the same pair keeps the first row and returns it. The
    question must already be issued to the session.
    """

    payload = AnswerPayload(**data)
    with get_conn() as conn:
        issued = conn.execute(
            "SELECT 1 FROM session_questions WHERE session_id = ? AND question_id = ?",
            (payload.session_id, payload.question_id),
        ).fetchone()
        if issued is None:
            raise ValueError(
                f"Question {payload.question_id} was not issued to session {payload.session_id}"
            )
        conn.execute(
            """INSERT OR IGNORE INTO interview_answers
               (session_id, question_id, answer_text, is_no_answer, duration_s, created_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                payload.session_id,
                payload.question_id,
                payload.text,
                int(payload.is_no_answer),
                payload.duration_s,
                _now(),
            ),
        )
        conn.execute(
            """UPDATE interview_sessions
               SET questions_answered = (SELECT COUNT(*) FROM interview_answers WHERE session_id = ?)
               WHERE id = ?""",
            (payload.session_id, payload.session_id),
        )
        row = conn.execute(
            "SELECT * FROM interview_answers WHERE session_id = ? AND question_id = ?",
            (payload.session_id, payload.question_id),
        ).fetchone()
    return _row_to_answer(row)


def get_answer(session_id: str, question_id: int) -> Optional[Answer]:
    with get_conn() as conn:
        row = conn.execute(
            "SELECT * FROM interview_answers WHERE session_id = ? AND question_id = ?",
            (session_id, question_id),
        ).fetchone()
    return _row_to_answer(row) if row else None


def count_answers(session_id: str) -> int:
    with get_conn() as conn:
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM interview_answers WHERE session_id = ?",
            (session_id,),
        ).fetchone()
    return int(row["n"])


def list_answers(session_id: str) -> List[Answer]:
    with get_conn() as conn:
        rows = conn.execute(
            """SELECT a.* FROM interview_answers a
               JOIN session_questions sq
                 ON sq.session_id = a.session_id AND sq.question_id = a.question_id
               WHERE a.session_id = ?
               ORDER BY sq.position""",
            (session_id,),
        ).fetchall()
    return [_row_to_answer(row) for row in rows]


def load_transcript(session_id: str) -> List[TranscriptEntry]:
    """Answered questions of a session joined with their text, in issuance order."""

    with get_conn() as conn:
        rows = conn.execute(
            """SELECT sq.position, q.id AS question_id, q.question_text, q.question_type,
                      a.answer_text, a.is_no_answer
               FROM interview_answers a
               JOIN session_questions sq
                 ON sq.session_id = a.session_id AND sq.question_id = a.question_id
               JOIN interview_questions q ON q.id = a.question_id
               WHERE a.session_id = ?
               ORDER BY sq.position""",
            (session_id,),
        ).fetchall()
    return [
        TranscriptEntry(
            position=row["position"],
            question_id=row["question_id"],
            question=row["question_text"],
            question_type=row["question_type"],
            answer=row["answer_text"],
            is_no_answer=bool(row["is_no_answer"]),
        )
        for row in rows
    ]


def recent_answers(limit: int = 20) -> List[Answer]:
    with get_conn() as conn:
        rows = conn.execute(
            "SELECT * FROM interview_answers ORDER BY id DESC LIMIT ?",
            (limit,),
        ).fetchall()
    return [_row_to_answer(row) for row in rows]


__all__ = [
    "AnswerPayload",
    "count_answers",
    "get_answer",
    "list_answers",
    "load_transcript",
    "recent_answers",
    "save_answer",
]
