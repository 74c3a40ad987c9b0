"""Countdown-bounded quiz attempt session for a single student."""

from __future__ import annotations

from collections.abc import Callable
import logging
from threading import Event, Lock, Thread

from classroom_app.constants import messages
from classroom_app.constants.classroom_constants import UNANSWERED
from classroom_app.core.models import CommandResult, ErrorKind, Quiz, QuizAttempt

logger = logging.getLogger(__name__)

SubmitCallback = Callable[[list[int]], CommandResult[QuizAttempt]]


class QuizAttemptSession:
    """Tracks the answers and remaining time of one quiz attempt.

    The countdown starts at ``quiz.time_limit`` minutes and only moves
    forward. Reaching zero submits whatever has been answered. The submit
    callback completes at most once; later submits and ticks return that first
    result. A callback that raises leaves the session active for a retry.
    Abandoning the session never writes an attempt.
    """

    def __init__(self, quiz: Quiz, student_id: str, submit_callback: SubmitCallback) -> None:
        self._lock = Lock()
        self._quiz = quiz
        self._student_id = student_id
        self._submit_callback = submit_callback
        self._answers: list[int] = [UNANSWERED] * len(quiz.questions)
        self._remaining_seconds: int = quiz.time_limit * 60
        self._active: bool = True
        self._result: CommandResult[QuizAttempt] | None = None

    @property
    def quiz(self) -> Quiz:
        return self._quiz

    @property
    def student_id(self) -> str:
        return self._student_id

    @property
    def remaining_seconds(self) -> int:
        with self._lock:
            return self._remaining_seconds

    @property
    def answers(self) -> list[int]:
        with self._lock:
            return list(self._answers)

    @property
    def result(self) -> CommandResult[QuizAttempt] | None:
        with self._lock:
            return self._result

    def is_active(self) -> bool:
        with self._lock:
            return self._active

    def is_completed(self) -> bool:
        with self._lock:
            return self._result is not None

    def all_answered(self) -> bool:
        with self._lock:
            return UNANSWERED not in self._answers

    def select_answer(self, question_index: int, option_index: int) -> bool:
        """Record a choice. Returns False when the session no longer accepts answers."""
        with self._lock:
            if not self._active:
                return False
            if not 0 <= question_index < len(self._answers):
                raise IndexError(f"Question index {question_index} out of range")
            options = self._quiz.questions[question_index].options
            if not 0 <= option_index < len(options):
                raise ValueError(f"Option index {option_index} out of range")
            self._answers[question_index] = option_index
            return True

    def tick(self, seconds: int = 1) -> CommandResult[QuizAttempt] | None:
        """Advance the countdown; submits automatically when it reaches zero."""
        with self._lock:
            if not self._active:
                return self._result
            self._remaining_seconds = max(0, self._remaining_seconds - seconds)
            if self._remaining_seconds > 0:
                return None
            logger.info("Time limit reached for %s on quiz %s", self._student_id, self._quiz.id)
            return self._submit_locked()

    def submit(self, force: bool = False) -> CommandResult[QuizAttempt]:
        """Submit the attempt; unless forced every question must be answered."""
        with self._lock:
            if self._result is not None:
                return self._result
            if not self._active:
                return CommandResult.fail(ErrorKind.VALIDATION_ERROR, "This quiz session was abandoned.")
            if not force and UNANSWERED in self._answers:
                return CommandResult.fail(ErrorKind.VALIDATION_ERROR, messages.UNANSWERED_QUESTIONS)
            return self._submit_locked()

    def abandon(self) -> None:
        with self._lock:
            if self._active:
                logger.info("Quiz session for %s on quiz %s abandoned", self._student_id, self._quiz.id)
            self._active = False

    def _submit_locked(self) -> CommandResult[QuizAttempt]:
        # Stays active when the callback raises so the attempt can be retried.
        result = self._submit_callback(list(self._answers))
        self._active = False
        self._result = result
        return result


class CountdownDriver:
    """Ticks a session once per interval on a background daemon thread."""

    def __init__(self, session: QuizAttemptSession, interval: float = 1.0) -> None:
        self._session = session
        self._interval = interval
        self._stop_event = Event()
        self._thread: Thread | None = None

    def start(self) -> Thread:
        if self._thread is not None:
            return self._thread
        self._thread = Thread(target=self._run, name="QuizCountdown", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self) -> None:
        self._stop_event.set()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            if not self._session.is_active():
                break
            try:
                self._session.tick()
            except Exception:
                logger.exception(
                    "Submitting quiz %s for %s failed, retrying", self._session.quiz.id, self._session.student_id
                )
