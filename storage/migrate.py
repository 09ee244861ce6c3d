"""SQLite schema migrations."""
from __future__ import annotations

import os
import sqlite3
from typing import Iterable

SCHEMA: Iterable[str] = [
    """
CREATE TABLE IF NOT EXISTS interview_sessions (
  id TEXT PRIMARY KEY,
  candidate_id TEXT NOT NULL,
  role_id TEXT NOT NULL,
  role_title TEXT NOT NULL,
  difficulty TEXT NOT NULL,
  status TEXT NOT NULL,
  total_questions INTEGER NOT NULL DEFAULT 0,
  questions_answered INTEGER NOT NULL DEFAULT 0,
  current_index INTEGER NOT NULL DEFAULT 0,
  created_at TEXT NOT NULL,
  started_at TEXT,
  ended_at TEXT
);
""",
    """
CREATE TABLE IF NOT EXISTS interview_questions (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  role_id TEXT NOT NULL,
  question_text TEXT NOT NULL,
  question_type TEXT NOT NULL,
  difficulty TEXT NOT NULL,
  expected_keywords TEXT NOT NULL,
  sample_answer TEXT,
  time_limit_seconds INTEGER NOT NULL,
  source TEXT NOT NULL,
  is_active INTEGER NOT NULL DEFAULT 1,
  created_at TEXT NOT NULL
);
""",
    """
CREATE INDEX IF NOT EXISTS idx_questions_role_difficulty
  ON interview_questions (role_id, difficulty, source, is_active);
""",
    """
CREATE TABLE IF NOT EXISTS session_questions (
  session_id TEXT NOT NULL REFERENCES interview_sessions(id) ON DELETE CASCADE,
  question_id INTEGER NOT NULL REFERENCES interview_questions(id),
  position INTEGER NOT NULL,
  PRIMARY KEY (session_id, question_id),
  UNIQUE (session_id, position)
);
""",
    """
CREATE TABLE IF NOT EXISTS interview_answers (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  session_id TEXT NOT NULL REFERENCES interview_sessions(id) ON DELETE CASCADE,
  question_id INTEGER NOT NULL REFERENCES interview_questions(id),
  answer_text TEXT NOT NULL,
  is_no_answer INTEGER NOT NULL DEFAULT 0,
  duration_s REAL NOT NULL DEFAULT 0,
  created_at TEXT NOT NULL,
  UNIQUE (session_id, question_id)
);
""",
    """
CREATE TABLE IF NOT EXISTS interview_results (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  session_id TEXT NOT NULL UNIQUE REFERENCES interview_sessions(id) ON DELETE CASCADE,
  overall_score REAL NOT NULL,
  technical_score REAL NOT NULL,
  communication_score REAL NOT NULL,
  problem_solving_score REAL NOT NULL,
  confidence_score REAL NOT NULL,
  strengths_json TEXT NOT NULL,
  improvements_json TEXT NOT NULL,
  summary TEXT NOT NULL,
  answers_evaluated INTEGER NOT NULL,
  is_placeholder INTEGER NOT NULL DEFAULT 0,
  created_at TEXT NOT NULL
);
""",
]


def migrate(db_path: str = "data/interview.db") -> None:
    """Apply schema migrations to the SQLite database."""

    directory = os.path.dirname(db_path) or "."
    os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        cur = conn.cursor()
        for stmt in SCHEMA:
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()


if __name__ == "__main__":
    migrate()
