"""Storage port consumed by the classroom core.

Implementations must enforce the natural-key uniqueness rules themselves
(classroom code, enrollment pair, feedback pair, quiz attempt pair) and
report a violation by raising :class:`ConstraintViolation`. The core treats
its own pre-checks as a fast path only.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from classroom_app.core.models import (
    Classroom,
    Feedback,
    FeedbackQuestion,
    Quiz,
    QuizAttempt,
    User,
)


class ConstraintViolation(Exception):
    """Raised when an insert would break a uniqueness constraint."""

    def __init__(self, constraint: str, message: str | None = None) -> None:
        super().__init__(message or f"Unique constraint violated: {constraint}")
        self.constraint = constraint


# Constraint names shared by all adapters.
USER_EMAIL = "user_email"
CLASSROOM_CODE = "classroom_code"
ENROLLMENT_PAIR = "enrollment_classroom_student"
FEEDBACK_PAIR = "feedback_classroom_student"
ATTEMPT_PAIR = "attempt_quiz_student"


class ClassroomStorage(ABC):
    """Abstract persistence collaborator for users and classrooms."""

    @abstractmethod
    def find_user(self, email: str) -> User | None:
        pass

    @abstractmethod
    def insert_user(self, user: User) -> None:
        pass

    @abstractmethod
    def get_user_names(self, emails: list[str]) -> dict[str, str]:
        """Return ``email -> display name`` for the known emails."""
        pass

    @abstractmethod
    def find_classroom_by_code(self, code: str) -> Classroom | None:
        pass

    @abstractmethod
    def find_classroom_by_id(self, classroom_id: str) -> Classroom | None:
        pass

    @abstractmethod
    def list_classrooms_for_teacher(self, teacher_id: str) -> list[Classroom]:
        pass

    @abstractmethod
    def list_classrooms_for_student(self, student_id: str) -> list[Classroom]:
        pass

    @abstractmethod
    def list_codes(self) -> set[str]:
        pass

    @abstractmethod
    def insert_classroom(self, classroom: Classroom) -> None:
        """Insert a classroom with its seed questions; the code must be unique."""
        pass

    @abstractmethod
    def insert_enrollment(self, classroom_id: str, student_id: str) -> None:
        pass

    @abstractmethod
    def insert_feedback(self, feedback: Feedback) -> None:
        pass

    @abstractmethod
    def insert_quiz_attempt(self, attempt: QuizAttempt) -> None:
        pass

    @abstractmethod
    def insert_quiz(self, quiz: Quiz) -> None:
        pass

    @abstractmethod
    def insert_feedback_question(self, classroom_id: str, question: FeedbackQuestion) -> None:
        pass

    @abstractmethod
    def delete_feedback_question(self, question_id: str) -> bool:
        """Delete a feedback question. Returns False when it did not exist."""
        pass
