"""Coercion of the loosely typed evaluation payload into a ScoreCard."""
from __future__ import annotations

import json
import math
import re
from typing import Any, Dict, List, Mapping, Optional

from config import settings
from llm_gateway import extract_json_text
from storage.models import SCORE_FIELDS, ScoreCard

SUMMARY_FALLBACK = "Summary not available"
PLACEHOLDER_SUMMARY = (
    "Automatic evaluation was unavailable for this session. Your answers were saved; "
    "scores shown here are placeholders."
)

_STRENGTH_KEYS = ("strengths_analysis", "strengths")
_IMPROVEMENT_KEYS = ("areas_for_improvement", "improvement_areas", "improvements")
_SUMMARY_KEYS = ("ai_summary", "summary")
_BULLET = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")


class UnparsablePayload(ValueError):  # Payload is not a score mapping at all
    pass


def _round1(value: float) -> float:
    return float(f"{value:.1f}")


def parse_score(value: Any) -> Optional[float]:
    """Return the score on a 0-10 scale, or None when ``value`` is unusable."""

    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    elif isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            # integers past float range clamp like any other out-of-range value
            return 10.0 if value > 0 else None
    else:
        return None
    if math.isnan(number) or math.isinf(number) or number < 0:
        return None
    if number > 10.0:
        # 0-100 scale replies are folded back onto 0-10
        number = number / 10.0 if number <= 100.0 else 10.0
    return _round1(number)


def coerce_score(value: Any, default: Optional[float] = None) -> float:
    parsed = parse_score(value)
    if parsed is None:
        return settings.SCORE_DEFAULT if default is None else default
    return parsed


def coerce_list(value: Any) -> List[str]:
    if isinstance(value, str):
        items: List[Any] = [_BULLET.sub("", line) for line in value.splitlines()]
    elif isinstance(value, (list, tuple)):
        items = list(value)
    else:
        return []
    return [str(item).strip() for item in items if item is not None and str(item).strip()]


def coerce_summary(value: Any) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return SUMMARY_FALLBACK


def _first(payload: Mapping[str, Any], keys: tuple) -> Any:
    for key in keys:
        if key in payload:
            return payload[key]
    return None


def as_mapping(payload: Any) -> Mapping[str, Any]:
    """Decode ``payload`` into a mapping that carries at least one score key."""

    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8", errors="replace")
    if isinstance(payload, str):
        try:
            payload = json.loads(extract_json_text(payload))
        except json.JSONDecodeError as exc:
            raise UnparsablePayload("Evaluation reply is not JSON") from exc
    if hasattr(payload, "model_dump"):
        payload = payload.model_dump()
    if not isinstance(payload, Mapping):
        raise UnparsablePayload(f"Evaluation reply is a {type(payload).__name__}, not an object")
    if not any(key in payload for key in SCORE_FIELDS):
        raise UnparsablePayload("Evaluation reply has no score fields")
    return payload


def normalize_payload(payload: Any) -> ScoreCard:
    """Validate a raw evaluation reply into a bounded ScoreCard.

    Raises ``UnparsablePayload`` only when the reply is not a score object;
    individual bad values degrade to the configured default.
    """

    data = as_mapping(payload)
    parsed: Dict[str, Optional[float]] = {key: parse_score(data.get(key)) for key in SCORE_FIELDS}
    subs = [parsed[key] for key in SCORE_FIELDS[1:] if parsed[key] is not None]
    if parsed["overall_score"] is None and subs:
        parsed["overall_score"] = _round1(sum(subs) / len(subs))
    scores = {key: settings.SCORE_DEFAULT if value is None else value for key, value in parsed.items()}
    return ScoreCard(
        **scores,
        strengths=coerce_list(_first(data, _STRENGTH_KEYS)),
        improvement_areas=coerce_list(_first(data, _IMPROVEMENT_KEYS)),
        summary=coerce_summary(_first(data, _SUMMARY_KEYS)),
    )


def placeholder_card() -> ScoreCard:
    return ScoreCard(
        overall_score=0.0,
        technical_score=0.0,
        communication_score=0.0,
        problem_solving_score=0.0,
        confidence_score=0.0,
        strengths=[],
        improvement_areas=[],
        summary=PLACEHOLDER_SUMMARY,
    )


__all__ = [
    "PLACEHOLDER_SUMMARY",
    "SUMMARY_FALLBACK",
    "UnparsablePayload",
    "as_mapping",
    "coerce_list",
    "coerce_score",
    "coerce_summary",
    "normalize_payload",
    "parse_score",
    "placeholder_card",
]
