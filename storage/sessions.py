"""Persistence helpers for interview sessions."""
from __future__ import annotations

import datetime as dt
import sqlite3
import uuid
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from .models import JobRole, Session, SessionStatus
from .sqlite import get_conn


class SessionPayload(BaseModel):
    candidate_id: str = Field(min_length=1)
    role_id: str = Field(min_length=1)
    role_title: str
    difficulty: str = Field(min_length=1)


def _now() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


def _row_to_session(row: sqlite3.Row) -> Session:
    return Session(**dict(row))


def create_session(*, candidate_id: str, role: JobRole, difficulty: str) -> Session:
    """Insert a pending session and return it with its store-minted id."""

    payload = SessionPayload(
        candidate_id=candidate_id,
        role_id=role.id,
        role_title=role.title,
        difficulty=difficulty,
    )
    session_id = uuid.uuid4().hex
    with get_conn() as conn:
        conn.execute(
            """INSERT INTO interview_sessions
               (id, candidate_id, role_id, role_title, difficulty, status, created_at)
               VALUES (?, ?, ?, ?, ?, 'pending', ?)""",
            (
                session_id,
                payload.candidate_id,
                payload.role_id,
                payload.role_title,
                payload.difficulty,
                _now(),
            ),
        )
        row = conn.execute("SELECT * FROM interview_sessions WHERE id = ?", (session_id,)).fetchone()
    return _row_to_session(row)


def attach_questions(session_id: str, question_ids: Sequence[int]) -> None:
    """Record the issuance order of already-persisted questions for a session."""

    with get_conn() as conn:
        for position, question_id in enumerate(question_ids):
            conn.execute(
                "INSERT INTO session_questions (session_id, question_id, position) VALUES (?, ?, ?)",
                (session_id, int(question_id), position),
            )
        conn.execute(
            "UPDATE interview_sessions SET total_questions = ? WHERE id = ?",
            (len(question_ids), session_id),
        )


def get_session(session_id: str) -> Optional[Session]:
    with get_conn() as conn:
        row = conn.execute("SELECT * FROM interview_sessions WHERE id = ?", (session_id,)).fetchone()
    return _row_to_session(row) if row else None


def mark_active(session_id: str) -> None:
    with get_conn() as conn:
        conn.execute(
            """UPDATE interview_sessions SET status = 'active', started_at = ?
               WHERE id = ? AND status = 'pending'""",
            (_now(), session_id),
        )


def set_current_index(session_id: str, index: int) -> None:
    with get_conn() as conn:
        conn.execute(
            "UPDATE interview_sessions SET current_index = ? WHERE id = ? AND status = 'active'",
            (index, session_id),
        )


def finish_session(session_id: str, status: SessionStatus) -> Optional[Session]:
    """Move a non-terminal session to ``status``; terminal sessions are left untouched."""

    if status not in ("completed", "aborted"):
        raise ValueError(f"Not a terminal status: {status}")
    with get_conn() as conn:
        conn.execute(
            """UPDATE interview_sessions SET status = ?, ended_at = ?
               WHERE id = ? AND status IN ('pending', 'active')""",
            (status, _now(), session_id),
        )
        row = conn.execute("SELECT * FROM interview_sessions WHERE id = ?", (session_id,)).fetchone()
    return _row_to_session(row) if row else None


def list_candidate_sessions(candidate_id: str, limit: int = 50) -> List[Session]:
    with get_conn() as conn:
        rows = conn.execute(
            """SELECT * FROM interview_sessions WHERE candidate_id = ?
               ORDER BY created_at DESC LIMIT ?""",
            (candidate_id, limit),
        ).fetchall()
    return [_row_to_session(row) for row in rows]


def recent_sessions(limit: int = 20) -> List[Session]:
    with get_conn() as conn:
        rows = conn.execute(
            "SELECT * FROM interview_sessions ORDER BY created_at DESC LIMIT ?",
            (limit,),
        ).fetchall()
    return [_row_to_session(row) for row in rows]


__all__ = [
    "attach_questions",
    "create_session",
    "finish_session",
    "get_session",
    "list_candidate_sessions",
    "mark_active",
    "recent_sessions",
    "set_current_index",
]
