"""Built-in question pool used when the cache and the generator fall short."""
from __future__ import annotations

from typing import Dict, List

from .models import QuestionDraft

DEFAULT_CATEGORY = "Technology"

_POOL: Dict[str, List[Dict[str, object]]] = {
    "Technology": [
        {
            "text": "Tell me about a challenging technical problem you solved recently.",
            "question_type": "technical",
            "expected_keywords": ["problem-solving", "technical", "solution", "debugging"],
        },
        {
            "text": "How do you stay updated with the latest technology trends?",
            "question_type": "general",
            "expected_keywords": ["learning", "technology", "trends", "professional development"],
        },
        {
            "text": "Describe a time when you had to work with a difficult team member.",
            "question_type": "behavioral",
            "expected_keywords": ["teamwork", "communication", "conflict resolution"],
        },
        {
            "text": "A production service you own starts timing out after a deploy. Walk me through your first hour.",
            "question_type": "situational",
            "expected_keywords": ["rollback", "monitoring", "root cause", "communication"],
        },
        {
            "text": "How do you decide when a piece of code needs tests, and what kind of tests?",
            "question_type": "technical",
            "expected_keywords": ["unit tests", "integration tests", "risk", "coverage"],
        },
    ],
    "Marketing": [
        {
            "text": "How do you measure the success of a marketing campaign?",
            "question_type": "technical",
            "expected_keywords": ["metrics", "ROI", "analytics", "KPIs"],
        },
        {
            "text": "Tell me about a time when a campaign didn't perform as expected.",
            "question_type": "behavioral",
            "expected_keywords": ["problem-solving", "adaptation", "analysis"],
        },
        {
            "text": "How would you position a new product against an established competitor?",
            "question_type": "situational",
            "expected_keywords": ["positioning", "audience", "differentiation"],
        },
    ],
    "Sales": [
        {
            "text": "How do you handle rejection from potential clients?",
            "question_type": "behavioral",
            "expected_keywords": ["resilience", "persistence", "customer relations"],
        },
        {
            "text": "What's your approach to building relationships with new clients?",
            "question_type": "situational",
            "expected_keywords": ["relationship building", "communication", "trust"],
        },
        {
            "text": "How do you prioritise your pipeline when you are behind on quota?",
            "question_type": "situational",
            "expected_keywords": ["prioritisation", "pipeline", "forecasting"],
        },
    ],
    "Design": [
        {
            "text": "Walk me through a design decision you made based on user research.",
            "question_type": "technical",
            "expected_keywords": ["user research", "iteration", "usability"],
        },
        {
            "text": "Tell me about a time a stakeholder rejected your design.",
            "question_type": "behavioral",
            "expected_keywords": ["feedback", "communication", "compromise"],
        },
    ],
    "Finance": [
        {
            "text": "How would you explain a variance in a monthly budget to a non-finance manager?",
            "question_type": "situational",
            "expected_keywords": ["variance analysis", "communication", "clarity"],
        },
        {
            "text": "Describe a time you found an error in a financial report.",
            "question_type": "behavioral",
            "expected_keywords": ["attention to detail", "accuracy", "escalation"],
        },
    ],
    "General": [
        {
            "text": "Tell me about yourself and why you are interested in this role.",
            "question_type": "general",
            "expected_keywords": ["motivation", "background", "fit"],
        },
        {
            "text": "Describe a goal you set for yourself and how you achieved it.",
            "question_type": "behavioral",
            "expected_keywords": ["planning", "persistence", "results"],
        },
        {
            "text": "Where do you see yourself professionally in the next few years?",
            "question_type": "general",
            "expected_keywords": ["career goals", "growth", "ambition"],
        },
    ],
}


def static_questions(category: str) -> List[QuestionDraft]:
    """Pool entries for a role category; unknown categories use the technology pool."""

    entries = _POOL.get(category) or _POOL[DEFAULT_CATEGORY]
    return [QuestionDraft(**entry) for entry in entries]


def categories() -> List[str]:
    return sorted(_POOL)


__all__ = ["DEFAULT_CATEGORY", "categories", "static_questions"]
