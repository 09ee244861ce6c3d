"""Persistence helpers for interview questions."""
from __future__ import annotations

import datetime as dt
import json
import sqlite3
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from .models import Question, QuestionSourceTier, QuestionType
from .sqlite import get_conn


class QuestionPayload(BaseModel):
    role_id: str = Field(min_length=1)
    text: str = Field(min_length=1)
    question_type: QuestionType = "general"
    difficulty: str = Field(min_length=1)
    expected_keywords: List[str] = Field(default_factory=list)
    sample_answer: Optional[str] = None
    time_limit_seconds: int = Field(default=120, ge=1)
    source: QuestionSourceTier = "generated"


def _now() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


def _row_to_question(row: sqlite3.Row) -> Question:
    return Question(
        id=row["id"],
        role_id=row["role_id"],
        text=row["question_text"],
        question_type=row["question_type"],
        difficulty=row["difficulty"],
        expected_keywords=json.loads(row["expected_keywords"] or "[]"),
        sample_answer=row["sample_answer"],
        time_limit_seconds=row["time_limit_seconds"],
        source=row["source"],
        created_at=row["created_at"],
    )


def _insert(conn: sqlite3.Connection, payload: QuestionPayload) -> int:
    cur = conn.execute(
        """INSERT INTO interview_questions
           (role_id, question_text, question_type, difficulty, expected_keywords,
            sample_answer, time_limit_seconds, source, is_active, created_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, 1, ?)""",
        (
            payload.role_id,
            payload.text,
            payload.question_type,
            payload.difficulty,
            json.dumps(payload.expected_keywords),
            payload.sample_answer,
            payload.time_limit_seconds,
            payload.source,
            _now(),
        ),
    )
    return int(cur.lastrowid)


def insert_question(**data: Any) -> Question:
    """Persist a question and return it carrying the store-assigned id."""

    payload = QuestionPayload(**data)
    with get_conn() as conn:
        question_id = _insert(conn, payload)
        row = conn.execute("SELECT * FROM interview_questions WHERE id = ?", (question_id,)).fetchone()
    return _row_to_question(row)


def get_or_create_question(**data: Any) -> Question:
    """Reuse an identical active question row for the role, inserting it when missing."""

    payload = QuestionPayload(**data)
    with get_conn() as conn:
        row = conn.execute(
            """SELECT * FROM interview_questions
               WHERE role_id = ? AND difficulty = ? AND source = ? AND question_text = ? AND is_active = 1
               ORDER BY id LIMIT 1""",
            (payload.role_id, payload.difficulty, payload.source, payload.text),
        ).fetchone()
        if row is None:
            question_id = _insert(conn, payload)
            row = conn.execute("SELECT * FROM interview_questions WHERE id = ?", (question_id,)).fetchone()
    return _row_to_question(row)


def fetch_cached_questions(
    role_id: str,
    difficulty: str,
    *,
    source: QuestionSourceTier = "generated",
    max_age_days: Optional[int] = None,
    exclude_ids: Iterable[int] = (),
) -> List[Question]:
    """Return active questions for role+difficulty, newest first."""

    query = """SELECT * FROM interview_questions
               WHERE role_id = ? AND difficulty = ? AND source = ? AND is_active = 1"""
    params: List[Any] = [role_id, difficulty, source]
    if max_age_days is not None:
        cutoff = dt.datetime.now(dt.timezone.utc) - dt.timedelta(days=max_age_days)
        query += " AND created_at >= ?"
        params.append(cutoff.isoformat())
    query += " ORDER BY created_at DESC, id DESC"
    excluded = {int(item) for item in exclude_ids}
    with get_conn() as conn:
        rows = conn.execute(query, params).fetchall()
    return [_row_to_question(row) for row in rows if row["id"] not in excluded]


def get_question(question_id: int) -> Optional[Question]:
    with get_conn() as conn:
        row = conn.execute("SELECT * FROM interview_questions WHERE id = ?", (question_id,)).fetchone()
    return _row_to_question(row) if row else None


def session_questions(session_id: str) -> List[Question]:
    """Questions issued to a session, in issuance order."""

    with get_conn() as conn:
        rows = conn.execute(
            """SELECT q.* FROM session_questions sq
               JOIN interview_questions q ON q.id = sq.question_id
               WHERE sq.session_id = ?
               ORDER BY sq.position""",
            (session_id,),
        ).fetchall()
    return [_row_to_question(row) for row in rows]


def deactivate_cached_questions(role_id: str) -> int:
    """Hide every cached question of a role from future sessions."""

    with get_conn() as conn:
        cur = conn.execute(
            "UPDATE interview_questions SET is_active = 0 WHERE role_id = ? AND is_active = 1",
            (role_id,),
        )
        return int(cur.rowcount)


def question_stats(role_id: str) -> Dict[str, Any]:
    stats: Dict[str, Any] = {"total": 0, "by_difficulty": {}, "by_type": {}}
    with get_conn() as conn:
        rows = conn.execute(
            """SELECT difficulty, question_type, COUNT(*) AS n FROM interview_questions
               WHERE role_id = ? AND is_active = 1
               GROUP BY difficulty, question_type""",
            (role_id,),
        ).fetchall()
    for row in rows:
        stats["total"] += row["n"]
        by_difficulty = stats["by_difficulty"]
        by_difficulty[row["difficulty"]] = by_difficulty.get(row["difficulty"], 0) + row["n"]
        by_type = stats["by_type"]
        by_type[row["question_type"]] = by_type.get(row["question_type"], 0) + row["n"]
    return stats


__all__ = [
    "QuestionPayload",
    "deactivate_cached_questions",
    "fetch_cached_questions",
    "get_or_create_question",
    "get_question",
    "insert_question",
    "question_stats",
    "session_questions",
]
