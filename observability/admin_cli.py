"""Lightweight CLI helpers for inspecting interview session tables."""
from __future__ import annotations

import argparse

from storage.answers import recent_answers
from storage.results import recent_results
from storage.sessions import recent_sessions


def tail_sessions(limit: int = 20) -> None:
    for session in recent_sessions(limit):
        print(
            f"[{session.created_at}] {session.id} {session.candidate_id} {session.role_title}/{session.difficulty} "
            f"-> {session.status} answered={session.questions_answered}/{session.total_questions}"
        )


def tail_answers(limit: int = 20) -> None:
    for answer in recent_answers(limit):
        marker = " (no answer)" if answer.is_no_answer else ""
        text = answer.text if len(answer.text) <= 80 else answer.text[:77] + "..."
        print(f"[{answer.created_at}] {answer.session_id} q={answer.question_id}{marker} {text}")


def tail_results(limit: int = 20) -> None:
    for result in recent_results(limit):
        flag = " placeholder" if result.is_placeholder else ""
        print(
            f"[{result.created_at}] {result.session_id} overall={result.overall_score:.1f} "
            f"tech={result.technical_score:.1f} comm={result.communication_score:.1f} "
            f"answers={result.answers_evaluated}{flag}"
        )


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--tail-sessions", type=int, help="Show the latest interview sessions")
    parser.add_argument("--tail-answers", type=int, help="Show the latest recorded answers")
    parser.add_argument("--tail-results", type=int, help="Show the latest evaluation results")
    args = parser.parse_args(argv)

    if args.tail_sessions:
        tail_sessions(args.tail_sessions)
    if args.tail_answers:
        tail_answers(args.tail_answers)
    if args.tail_results:
        tail_results(args.tail_results)


if __name__ == "__main__":
    main()
