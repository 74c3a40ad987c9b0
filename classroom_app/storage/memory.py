"""In-process storage adapter backed by dictionaries guarded by a lock."""

from __future__ import annotations

from dataclasses import replace
import logging
from threading import Lock

from classroom_app.core.models import (
    Classroom,
    Feedback,
    FeedbackQuestion,
    Quiz,
    QuizAttempt,
    User,
)
from classroom_app.storage.base import (
    ATTEMPT_PAIR,
    CLASSROOM_CODE,
    ENROLLMENT_PAIR,
    FEEDBACK_PAIR,
    USER_EMAIL,
    ClassroomStorage,
    ConstraintViolation,
)

logger = logging.getLogger(__name__)


class InMemoryStorage(ClassroomStorage):
    """Keeps every collection in memory.

    Each check-and-insert runs under a single lock so the natural-key indexes
    behave like database uniqueness constraints under concurrent callers.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._users: dict[str, User] = {}
        self._classrooms: dict[str, Classroom] = {}
        self._codes: dict[str, str] = {}
        self._enrollments: dict[str, list[str]] = {}
        self._questions: dict[str, list[FeedbackQuestion]] = {}
        self._question_owner: dict[str, str] = {}
        self._quizzes: dict[str, list[Quiz]] = {}
        self._quiz_owner: dict[str, str] = {}
        self._feedbacks: dict[tuple[str, str], Feedback] = {}
        self._attempts: dict[tuple[str, str], QuizAttempt] = {}

    # --- Users ---

    def find_user(self, email: str) -> User | None:
        with self._lock:
            return self._users.get(email)

    def insert_user(self, user: User) -> None:
        with self._lock:
            if user.email in self._users:
                raise ConstraintViolation(USER_EMAIL)
            self._users[user.email] = user

    def get_user_names(self, emails: list[str]) -> dict[str, str]:
        with self._lock:
            return {email: self._users[email].name for email in emails if email in self._users}

    # --- Classrooms ---

    def find_classroom_by_code(self, code: str) -> Classroom | None:
        with self._lock:
            classroom_id = self._codes.get(code)
            return self._materialize(classroom_id) if classroom_id else None

    def find_classroom_by_id(self, classroom_id: str) -> Classroom | None:
        with self._lock:
            if classroom_id not in self._classrooms:
                return None
            return self._materialize(classroom_id)

    def list_classrooms_for_teacher(self, teacher_id: str) -> list[Classroom]:
        with self._lock:
            return [
                self._materialize(classroom.id)
                for classroom in self._classrooms.values()
                if classroom.teacher_id == teacher_id
            ]

    def list_classrooms_for_student(self, student_id: str) -> list[Classroom]:
        with self._lock:
            return [
                self._materialize(classroom_id)
                for classroom_id, students in self._enrollments.items()
                if student_id in students
            ]

    def list_codes(self) -> set[str]:
        with self._lock:
            return set(self._codes)

    def insert_classroom(self, classroom: Classroom) -> None:
        with self._lock:
            if classroom.code in self._codes:
                raise ConstraintViolation(CLASSROOM_CODE)
            self._codes[classroom.code] = classroom.id
            self._classrooms[classroom.id] = replace(
                classroom,
                students=[],
                feedback_questions=[],
                quizzes=[],
                feedbacks=[],
                quiz_attempts=[],
            )
            self._enrollments[classroom.id] = list(dict.fromkeys(classroom.students))
            self._questions[classroom.id] = []
            self._quizzes[classroom.id] = []
            for question in classroom.feedback_questions:
                self._add_question(classroom.id, question)
        logger.debug("Stored classroom %s with code %s", classroom.id, classroom.code)

    def insert_enrollment(self, classroom_id: str, student_id: str) -> None:
        with self._lock:
            students = self._enrollments[classroom_id]
            if student_id in students:
                raise ConstraintViolation(ENROLLMENT_PAIR)
            students.append(student_id)

    # --- Submissions ---

    def insert_feedback(self, feedback: Feedback) -> None:
        key = (feedback.classroom_id, feedback.student_id)
        with self._lock:
            if key in self._feedbacks:
                raise ConstraintViolation(FEEDBACK_PAIR)
            self._feedbacks[key] = replace(feedback, answers=dict(feedback.answers))

    def insert_quiz_attempt(self, attempt: QuizAttempt) -> None:
        key = (attempt.quiz_id, attempt.student_id)
        with self._lock:
            if key in self._attempts:
                raise ConstraintViolation(ATTEMPT_PAIR)
            self._attempts[key] = replace(attempt, answers=list(attempt.answers))

    # --- Authoring ---

    def insert_quiz(self, quiz: Quiz) -> None:
        with self._lock:
            questions = sorted(quiz.questions, key=lambda q: q.order)
            self._quizzes[quiz.classroom_id].append(replace(quiz, questions=questions))
            self._quiz_owner[quiz.id] = quiz.classroom_id

    def insert_feedback_question(self, classroom_id: str, question: FeedbackQuestion) -> None:
        with self._lock:
            self._add_question(classroom_id, question)

    def delete_feedback_question(self, question_id: str) -> bool:
        with self._lock:
            classroom_id = self._question_owner.pop(question_id, None)
            if classroom_id is None:
                return False
            self._questions[classroom_id] = [
                question for question in self._questions[classroom_id] if question.id != question_id
            ]
            return True

    # --- Internal helpers (call with the lock held) ---

    def _add_question(self, classroom_id: str, question: FeedbackQuestion) -> None:
        self._questions[classroom_id].append(question)
        self._question_owner[question.id] = classroom_id

    def _materialize(self, classroom_id: str) -> Classroom:
        base = self._classrooms[classroom_id]
        quizzes = list(self._quizzes[classroom_id])
        quiz_ids = {quiz.id for quiz in quizzes}
        teacher = self._users.get(base.teacher_id)
        return replace(
            base,
            teacher_name=teacher.name if teacher else base.teacher_name,
            students=list(self._enrollments[classroom_id]),
            feedback_questions=sorted(self._questions[classroom_id], key=lambda q: q.order),
            quizzes=quizzes,
            feedbacks=[
                replace(feedback, answers=dict(feedback.answers))
                for (owner_id, _), feedback in self._feedbacks.items()
                if owner_id == classroom_id
            ],
            quiz_attempts=[
                replace(attempt, answers=list(attempt.answers))
                for (quiz_id, _), attempt in self._attempts.items()
                if quiz_id in quiz_ids
            ],
        )
