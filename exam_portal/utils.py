"""Utility functions for sanitization, scoring and grade bucketing."""

from typing import Optional

import bleach

PASS_MARK = 5.0
MAX_SCORE = 10.0

# Lower bound inclusive, upper bound exclusive (except the last bucket)
GRADE_BUCKETS = [
    ("0-2", 0.0, 2.0),
    ("2-4", 2.0, 4.0),
    ("4-5", 4.0, 5.0),
    ("5-6", 5.0, 6.0),
    ("6-8", 6.0, 8.0),
    ("8-10", 8.0, MAX_SCORE),
]


def sanitize_text(text: Optional[str]) -> str:
    """Strip all HTML from free text and trim surrounding whitespace."""
    if not text:
        return ""
    return bleach.clean(text, tags=[], strip=True).strip()


def compute_score(
    correct: int,
    incorrect: int,
    question_count: int,
    points_correct: float,
    points_incorrect: float,
) -> float:
    """Normalise a raw score onto the 0-10 scale.

    raw = correct * points_correct - incorrect * points_incorrect, divided by
    the maximum achievable (question_count * points_correct) and clamped to
    [0, 10]. A zero maximum (misconfigured exam) scores 0.
    """
    max_score = question_count * points_correct
    if max_score <= 0:
        return 0.0
    raw = correct * points_correct - incorrect * points_incorrect
    return max(0.0, min(MAX_SCORE, raw / max_score * MAX_SCORE))


def round_score(score: Optional[float]) -> Optional[float]:
    """Round a score to one decimal for display."""
    if score is None:
        return None
    return round(score, 1)


def is_passing(score: Optional[float]) -> bool:
    return score is not None and score >= PASS_MARK


def grade_bucket(score: float) -> str:
    """Return the label of the histogram bucket ``score`` falls into."""
    for label, low, high in GRADE_BUCKETS:
        if low <= score < high:
            return label
    return GRADE_BUCKETS[-1][0] if score >= MAX_SCORE else GRADE_BUCKETS[0][0]


def isoformat(value) -> Optional[str]:
    return value.isoformat() if value else None
