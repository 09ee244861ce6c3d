from .engine import EvaluationEngine, transcript_payload
from .llm import ScorePayload, bind_session_evaluator, evaluate_transcript, format_transcript
from .scoring import (
    UnparsablePayload,
    coerce_list,
    coerce_score,
    coerce_summary,
    normalize_payload,
    parse_score,
    placeholder_card,
)

__all__ = [
    "EvaluationEngine",
    "ScorePayload",
    "UnparsablePayload",
    "bind_session_evaluator",
    "coerce_list",
    "coerce_score",
    "coerce_summary",
    "evaluate_transcript",
    "format_transcript",
    "normalize_payload",
    "parse_score",
    "placeholder_card",
    "transcript_payload",
]
