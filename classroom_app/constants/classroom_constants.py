"""Classroom, feedback and quiz constants shared across core and server layers."""

import string

CODE_LENGTH: int = 6
CODE_ALPHABET: str = string.ascii_uppercase + string.digits
CODE_RETRY_LIMIT: int = 64

MIN_RATING: int = 1
MAX_RATING: int = 5
UNANSWERED: int = -1

DEFAULT_TIME_LIMIT_MINUTES: int = 15
MIN_QUIZ_OPTIONS: int = 2

DEFAULT_FEEDBACK_QUESTIONS: tuple[str, ...] = (
    "How clear were the course objectives and expectations?",
    "How effective was the teaching methodology?",
    "How approachable was the instructor for questions?",
    "How well-organized were the course materials?",
    "How would you rate the overall learning experience?",
)
