"""Deterministic scoring of quiz answers against the answer key."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from classroom_app.core.models import Quiz


@dataclass(frozen=True, slots=True)
class ScoreResult:
    score: int
    total_questions: int


def coerce_int(value: object) -> int | None:
    """Parse an integer coming from storage or form input.

    Accepts ints, integral floats and integer strings such as ``"3"`` or
    ``" -1 "``. Returns ``None`` for anything else, including booleans.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def score(quiz: Quiz, answers: Sequence[object]) -> ScoreResult:
    """Count the positions where the submitted index matches the correct one.

    Missing, extra, malformed or out-of-range answers simply do not count.
    """
    correct = 0
    for question, submitted in zip(quiz.questions, answers):
        expected = coerce_int(question.correct_answer)
        given = coerce_int(submitted)
        if expected is not None and given is not None and given == expected:
            correct += 1
    return ScoreResult(score=correct, total_questions=len(quiz.questions))
