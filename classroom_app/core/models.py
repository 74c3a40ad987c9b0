"""Domain models for the classroom feedback and quiz application."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Generic, TypeVar
from uuid import uuid4

T = TypeVar("T")


def new_id() -> str:
    return uuid4().hex


def normalize_identity(identity: str) -> str:
    """Return the canonical form of a user identity (the email address)."""
    return identity.strip().lower()


class UserRole(str, Enum):
    TEACHER = "teacher"
    STUDENT = "student"


class ErrorKind(str, Enum):
    """Reasons a classroom command can be rejected."""

    NOT_FOUND = "not_found"
    ALREADY_ENROLLED = "already_enrolled"
    ALREADY_SUBMITTED = "already_submitted"
    UNAUTHORIZED = "unauthorized"
    VALIDATION_ERROR = "validation_error"
    CODE_SPACE_EXHAUSTED = "code_space_exhausted"


@dataclass(frozen=True, slots=True)
class User:
    """Registered account. The email is the stable identity used everywhere."""

    email: str
    role: UserRole
    name: str
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True, slots=True)
class FeedbackQuestion:
    id: str
    text: str
    order: int


@dataclass(frozen=True, slots=True)
class Feedback:
    """Anonymous rating submission, one per student per classroom."""

    id: str
    classroom_id: str
    student_id: str
    answers: dict[str, int]  # feedback question id -> rating
    comment: str = ""
    submitted_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True, slots=True)
class QuizQuestion:
    """Multiple-choice question with a variable number of options."""

    id: str
    text: str
    options: list[str]
    correct_answer: int
    order: int


@dataclass(frozen=True, slots=True)
class Quiz:
    id: str
    classroom_id: str
    title: str
    description: str
    questions: list[QuizQuestion]
    time_limit: int  # minutes
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True, slots=True)
class QuizAttempt:
    """Scored submission of a quiz, one per student per quiz."""

    id: str
    quiz_id: str
    student_id: str
    answers: list[int]  # -1 marks an unanswered question
    score: int
    total_questions: int
    submitted_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True, slots=True)
class Classroom:
    """Materialized snapshot of a classroom and everything it owns."""

    id: str
    name: str
    subject: str
    description: str
    code: str
    teacher_id: str
    teacher_name: str = ""
    students: list[str] = field(default_factory=list)
    feedback_questions: list[FeedbackQuestion] = field(default_factory=list)
    quizzes: list[Quiz] = field(default_factory=list)
    feedbacks: list[Feedback] = field(default_factory=list)
    quiz_attempts: list[QuizAttempt] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)

    def has_student(self, identity: str) -> bool:
        return normalize_identity(identity) in self.students

    def get_quiz(self, quiz_id: str) -> Quiz | None:
        return next((quiz for quiz in self.quizzes if quiz.id == quiz_id), None)

    def sorted_feedback_questions(self) -> list[FeedbackQuestion]:
        return sorted(self.feedback_questions, key=lambda q: q.order)


@dataclass(frozen=True, slots=True)
class CommandResult(Generic[T]):
    """Outcome of a classroom command.

    Business rejections (duplicates, unknown codes, missing permissions) are
    reported through ``error`` and ``message`` instead of being raised.
    """

    success: bool
    message: str
    error: ErrorKind | None = None
    value: T | None = None

    @classmethod
    def ok(cls, message: str, value: T | None = None) -> "CommandResult[T]":
        return cls(success=True, message=message, value=value)

    @classmethod
    def fail(cls, error: ErrorKind, message: str) -> "CommandResult[T]":
        return cls(success=False, message=message, error=error)
