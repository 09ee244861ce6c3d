"""Persistence helpers for evaluation results."""
from __future__ import annotations

import datetime as dt
import json
import sqlite3
from typing import List, Optional

from .models import EvaluationResult, ScoreCard
from .sqlite import get_conn


def _now() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


def _row_to_result(row: sqlite3.Row) -> EvaluationResult:
    return EvaluationResult(
        id=row["id"],
        session_id=row["session_id"],
        overall_score=row["overall_score"],
        technical_score=row["technical_score"],
        communication_score=row["communication_score"],
        problem_solving_score=row["problem_solving_score"],
        confidence_score=row["confidence_score"],
        strengths=json.loads(row["strengths_json"]),
        improvement_areas=json.loads(row["improvements_json"]),
        summary=row["summary"],
        answers_evaluated=row["answers_evaluated"],
        is_placeholder=bool(row["is_placeholder"]),
        created_at=row["created_at"],
    )


def insert_result(
    session_id: str,
    card: ScoreCard,
    *,
    answers_evaluated: int,
    is_placeholder: bool = False,
) -> EvaluationResult:
    """Persist the grade for a session; an existing grade wins and is returned."""

    with get_conn() as conn:
        conn.execute(
            """INSERT OR IGNORE INTO interview_results
               (session_id, overall_score, technical_score, communication_score,
                problem_solving_score, confidence_score, strengths_json, improvements_json,
                summary, answers_evaluated, is_placeholder, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                session_id,
                card.overall_score,
                card.technical_score,
                card.communication_score,
                card.problem_solving_score,
                card.confidence_score,
                json.dumps(card.strengths),
                json.dumps(card.improvement_areas),
                card.summary,
                answers_evaluated,
                int(is_placeholder),
                _now(),
            ),
        )
        row = conn.execute(
            "SELECT * FROM interview_results WHERE session_id = ?", (session_id,)
        ).fetchone()
    return _row_to_result(row)


def get_result(session_id: str) -> Optional[EvaluationResult]:
    with get_conn() as conn:
        row = conn.execute(
            "SELECT * FROM interview_results WHERE session_id = ?", (session_id,)
        ).fetchone()
    return _row_to_result(row) if row else None


def list_candidate_results(candidate_id: str, limit: int = 50) -> List[EvaluationResult]:
    with get_conn() as conn:
        rows = conn.execute(
            """SELECT r.* FROM interview_results r
               JOIN interview_sessions s ON s.id = r.session_id
               WHERE s.candidate_id = ?
               ORDER BY r.created_at DESC LIMIT ?""",
            (candidate_id, limit),
        ).fetchall()
    return [_row_to_result(row) for row in rows]


def recent_results(limit: int = 20) -> List[EvaluationResult]:
    with get_conn() as conn:
        rows = conn.execute(
            "SELECT * FROM interview_results ORDER BY id DESC LIMIT ?",
            (limit,),
        ).fetchall()
    return [_row_to_result(row) for row in rows]


__all__ = [
    "get_result",
    "insert_result",
    "list_candidate_results",
    "recent_results",
]
