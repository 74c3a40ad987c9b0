"""Service enforcing one feedback per classroom and one attempt per quiz."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
import logging

from classroom_app.constants import messages
from classroom_app.constants.classroom_constants import MAX_RATING, MIN_RATING, UNANSWERED
from classroom_app.core.models import (
    Classroom,
    CommandResult,
    ErrorKind,
    Feedback,
    Quiz,
    QuizAttempt,
    new_id,
    normalize_identity,
)
from classroom_app.core.services.scoring import coerce_int, score
from classroom_app.storage.base import ClassroomStorage, ConstraintViolation

logger = logging.getLogger(__name__)


def can_submit_feedback(classroom: Classroom, student_identity: str) -> bool:
    student_id = normalize_identity(student_identity)
    return not any(feedback.student_id == student_id for feedback in classroom.feedbacks)


def can_submit_quiz_attempt(classroom: Classroom, quiz_id: str, student_identity: str) -> bool:
    student_id = normalize_identity(student_identity)
    return not any(
        attempt.quiz_id == quiz_id and attempt.student_id == student_id
        for attempt in classroom.quiz_attempts
    )


class SubmissionGuard:
    """Validates, scores and records student submissions.

    The pre-checks here are a fast path. The storage uniqueness constraints
    decide the outcome when two requests race, and a violation is reported
    exactly like a failed pre-check.
    """

    def __init__(self, storage: ClassroomStorage) -> None:
        self._storage = storage

    def record_feedback(
        self,
        classroom_id: str,
        student_identity: str,
        answers: Mapping[str, object],
        comment: str | None = "",
    ) -> CommandResult[Feedback]:
        student_id = normalize_identity(student_identity)
        classroom = self._storage.find_classroom_by_id(classroom_id)
        if classroom is None:
            return CommandResult.fail(ErrorKind.NOT_FOUND, messages.CLASSROOM_NOT_FOUND)
        if not classroom.has_student(student_id):
            return CommandResult.fail(ErrorKind.UNAUTHORIZED, messages.NOT_ENROLLED)
        if not can_submit_feedback(classroom, student_id):
            return CommandResult.fail(ErrorKind.ALREADY_SUBMITTED, messages.FEEDBACK_ALREADY_SUBMITTED)

        ratings, problem = _validate_ratings(classroom, answers)
        if problem:
            return CommandResult.fail(ErrorKind.VALIDATION_ERROR, problem)

        feedback = Feedback(
            id=new_id(),
            classroom_id=classroom.id,
            student_id=student_id,
            answers=ratings,
            comment=(comment or "").strip(),
            submitted_at=datetime.utcnow(),
        )
        try:
            self._storage.insert_feedback(feedback)
        except ConstraintViolation:
            logger.warning("Duplicate feedback from %s for classroom %s rejected by storage", student_id, classroom.id)
            return CommandResult.fail(ErrorKind.ALREADY_SUBMITTED, messages.FEEDBACK_ALREADY_SUBMITTED)

        logger.info("Recorded feedback %s for classroom %s", feedback.id, classroom.id)
        return CommandResult.ok(messages.FEEDBACK_SUBMITTED, feedback)

    def record_quiz_attempt(
        self,
        classroom_id: str,
        quiz_id: str,
        student_identity: str,
        answers: Sequence[object],
    ) -> CommandResult[QuizAttempt]:
        student_id = normalize_identity(student_identity)
        classroom = self._storage.find_classroom_by_id(classroom_id)
        if classroom is None:
            return CommandResult.fail(ErrorKind.NOT_FOUND, messages.CLASSROOM_NOT_FOUND)
        quiz = classroom.get_quiz(quiz_id)
        if quiz is None:
            return CommandResult.fail(ErrorKind.NOT_FOUND, messages.QUIZ_NOT_FOUND)
        if not classroom.has_student(student_id):
            return CommandResult.fail(ErrorKind.UNAUTHORIZED, messages.NOT_ENROLLED)
        if not can_submit_quiz_attempt(classroom, quiz.id, student_id):
            return CommandResult.fail(ErrorKind.ALREADY_SUBMITTED, messages.QUIZ_ALREADY_ATTEMPTED)

        indices, problem = _validate_answer_indices(quiz, answers)
        if problem:
            return CommandResult.fail(ErrorKind.VALIDATION_ERROR, problem)

        result = score(quiz, indices)
        attempt = QuizAttempt(
            id=new_id(),
            quiz_id=quiz.id,
            student_id=student_id,
            answers=indices,
            score=result.score,
            total_questions=result.total_questions,
            submitted_at=datetime.utcnow(),
        )
        try:
            self._storage.insert_quiz_attempt(attempt)
        except ConstraintViolation:
            logger.warning("Duplicate attempt from %s for quiz %s rejected by storage", student_id, quiz.id)
            return CommandResult.fail(ErrorKind.ALREADY_SUBMITTED, messages.QUIZ_ALREADY_ATTEMPTED)

        logger.info("Recorded attempt %s for quiz %s (%d/%d)", attempt.id, quiz.id, attempt.score, attempt.total_questions)
        message = messages.QUIZ_SUBMITTED_TEMPLATE.format(score=attempt.score, total=attempt.total_questions)
        return CommandResult.ok(message, attempt)


def _validate_ratings(
    classroom: Classroom, answers: Mapping[str, object]
) -> tuple[dict[str, int], str | None]:
    if not answers:
        return {}, "At least one question must be rated."
    question_ids = {question.id for question in classroom.feedback_questions}
    ratings: dict[str, int] = {}
    for question_id, raw_rating in answers.items():
        if question_id not in question_ids:
            return {}, f"Unknown feedback question: {question_id}"
        rating = coerce_int(raw_rating)
        if rating is None or not MIN_RATING <= rating <= MAX_RATING:
            return {}, f"Ratings must be whole numbers between {MIN_RATING} and {MAX_RATING}."
        ratings[question_id] = rating
    return ratings, None


def _validate_answer_indices(quiz: Quiz, answers: Sequence[object]) -> tuple[list[int], str | None]:
    if len(answers) > len(quiz.questions):
        return [], f"Quiz has {len(quiz.questions)} questions but {len(answers)} answers were submitted."
    indices: list[int] = []
    for position, question in enumerate(quiz.questions):
        raw = answers[position] if position < len(answers) else None
        if raw is None:
            indices.append(UNANSWERED)
            continue
        index = coerce_int(raw)
        if index is None or not UNANSWERED <= index < len(question.options):
            return [], f"Invalid answer for question {position + 1}."
        indices.append(index)
    return indices, None
