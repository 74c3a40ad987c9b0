"""Aggregation of feedback ratings and quiz attempts into chart-ready values.

Every function here is pure and recomputes from the full record set it is
given. Empty collections, missing map entries and zero denominators produce
zero or absent results instead of errors.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from classroom_app.constants.analytics_constants import SATISFACTION_BUCKETS, SCORE_BANDS
from classroom_app.core.models import Classroom, Feedback, FeedbackQuestion, QuizAttempt


@dataclass(frozen=True, slots=True)
class BucketCount:
    name: str
    value: int


@dataclass(frozen=True, slots=True)
class QuestionAverage:
    label: str
    question_id: str
    text: str
    average: float
    # Mean over the feedbacks that rated this question, None when nobody did.
    respondent_average: float | None


@dataclass(frozen=True, slots=True)
class CommentEntry:
    """Anonymous comment with the mean rating of the feedback it came with."""

    comment: str
    average: float | None
    submitted_at: datetime


@dataclass(frozen=True, slots=True)
class BandCount:
    range: str
    count: int


@dataclass(frozen=True, slots=True)
class QuizAnalytics:
    quiz_id: str
    average_score_percent: int
    distribution: list[BandCount]
    total_attempts: int


@dataclass(frozen=True, slots=True)
class ClassroomReport:
    """Everything a teacher dashboard shows for one classroom."""

    classroom_id: str
    average_rating: float
    response_rate: int
    total_feedbacks: int
    satisfaction: list[BucketCount]
    question_averages: list[QuestionAverage]
    comments: list[CommentEntry]
    quizzes: dict[str, QuizAnalytics | None]


def round_half_up(value: float, digits: int = 0) -> float:
    exponent = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP))


# --- Feedback analytics ---


def per_respondent_average(feedback: Feedback) -> float | None:
    """Mean rating of one feedback, or None when it rated nothing."""
    ratings = list(feedback.answers.values())
    if not ratings:
        return None
    return sum(ratings) / len(ratings)


def bucket(average: float) -> str:
    for name, lower_bound in SATISFACTION_BUCKETS:
        if average >= lower_bound:
            return name
    return SATISFACTION_BUCKETS[-1][0]


def _respondent_averages(feedbacks: Iterable[Feedback]) -> list[float]:
    averages = (per_respondent_average(feedback) for feedback in feedbacks)
    return [average for average in averages if average is not None]


def satisfaction_distribution(feedbacks: Iterable[Feedback]) -> list[BucketCount]:
    counts = {name: 0 for name, _ in SATISFACTION_BUCKETS}
    for average in _respondent_averages(feedbacks):
        counts[bucket(average)] += 1
    return [BucketCount(name=name, value=value) for name, value in counts.items() if value > 0]


def average_rating(feedbacks: Iterable[Feedback]) -> float:
    averages = _respondent_averages(feedbacks)
    if not averages:
        return 0.0
    return round_half_up(sum(averages) / len(averages), 1)


def per_question_average(
    feedback_questions: Iterable[FeedbackQuestion], feedbacks: Sequence[Feedback]
) -> list[QuestionAverage]:
    """Average rating per question in display order.

    ``average`` divides by every feedback, counting a missing rating as 0.
    ``respondent_average`` divides by the feedbacks that rated the question.
    """
    questions = sorted(feedback_questions, key=lambda q: q.order)
    if not feedbacks or not questions:
        return []

    rows: list[QuestionAverage] = []
    for question in questions:
        ratings = [feedback.answers[question.id] for feedback in feedbacks if question.id in feedback.answers]
        respondent_average = round_half_up(sum(ratings) / len(ratings), 2) if ratings else None
        rows.append(
            QuestionAverage(
                label=f"Q{question.order + 1}",
                question_id=question.id,
                text=question.text,
                average=round_half_up(sum(ratings) / len(feedbacks), 2),
                respondent_average=respondent_average,
            )
        )
    return rows


def comment_feed(feedbacks: Iterable[Feedback]) -> list[CommentEntry]:
    """Non-empty comments in submission order, without the author."""
    entries: list[CommentEntry] = []
    for feedback in feedbacks:
        comment = (feedback.comment or "").strip()
        if not comment:
            continue
        average = per_respondent_average(feedback)
        entries.append(
            CommentEntry(
                comment=comment,
                average=round_half_up(average, 1) if average is not None else None,
                submitted_at=feedback.submitted_at,
            )
        )
    return entries


def response_rate(feedbacks: Sequence[Feedback], students: Sequence[str]) -> int:
    if not students:
        return 0
    return int(round_half_up(len(feedbacks) * 100 / len(students)))


# --- Quiz analytics ---


def attempt_percent(attempt: QuizAttempt) -> float:
    if attempt.total_questions <= 0:
        return 0.0
    return attempt.score * 100 / attempt.total_questions


def score_distribution(percents: Iterable[float]) -> list[BandCount]:
    counts = {label: 0 for label, _, _ in SCORE_BANDS}
    for percent in percents:
        for label, lower_bound, upper_bound in SCORE_BANDS:
            if lower_bound <= percent < upper_bound:
                counts[label] += 1
                break
    return [BandCount(range=label, count=count) for label, count in counts.items()]


def quiz_analytics(quiz_id: str, attempts: Iterable[QuizAttempt]) -> QuizAnalytics | None:
    """Score statistics for one quiz, or None when nobody attempted it."""
    percents = [attempt_percent(attempt) for attempt in attempts if attempt.quiz_id == quiz_id]
    if not percents:
        return None
    return QuizAnalytics(
        quiz_id=quiz_id,
        average_score_percent=int(round_half_up(sum(percents) / len(percents))),
        distribution=score_distribution(percents),
        total_attempts=len(percents),
    )


def classroom_report(classroom: Classroom) -> ClassroomReport:
    return ClassroomReport(
        classroom_id=classroom.id,
        average_rating=average_rating(classroom.feedbacks),
        response_rate=response_rate(classroom.feedbacks, classroom.students),
        total_feedbacks=len(classroom.feedbacks),
        satisfaction=satisfaction_distribution(classroom.feedbacks),
        question_averages=per_question_average(classroom.feedback_questions, classroom.feedbacks),
        comments=comment_feed(classroom.feedbacks),
        quizzes={quiz.id: quiz_analytics(quiz.id, classroom.quiz_attempts) for quiz in classroom.quizzes},
    )
