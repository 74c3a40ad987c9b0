"""Business logic for classrooms shared between the API and other callers."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from classroom_app.constants import messages
from classroom_app.core.models import (
    Classroom,
    CommandResult,
    ErrorKind,
    Feedback,
    FeedbackQuestion,
    Quiz,
    QuizAttempt,
    User,
    UserRole,
    normalize_identity,
)
from classroom_app.core.services import analytics
from classroom_app.core.services.attempt_session import QuizAttemptSession
from classroom_app.core.services.authoring import ClassroomAuthoring, QuizDraft
from classroom_app.core.services.enrollment import EnrollmentService
from classroom_app.core.services.submission_guard import (
    SubmissionGuard,
    can_submit_feedback,
    can_submit_quiz_attempt,
)
from classroom_app.storage.base import ClassroomStorage


class ClassroomManager:
    """Facade for classroom services: Authoring, Enrollment, SubmissionGuard and analytics."""

    def __init__(self, storage: ClassroomStorage) -> None:
        self._storage = storage

        # Services
        self._authoring = ClassroomAuthoring(storage)
        self._enrollment = EnrollmentService(storage)
        self._guard = SubmissionGuard(storage)

    # --- Users ---

    def register_user(self, email: str, role: UserRole | str, name: str | None = None) -> CommandResult[User]:
        return self._authoring.register_user(email, role, name)

    def get_user(self, email: str) -> User | None:
        return self._storage.find_user(normalize_identity(email))

    def get_student_names(self, classroom: Classroom) -> dict[str, str]:
        """Map each enrolled student to a display name, falling back to the email."""
        names = self._storage.get_user_names(classroom.students)
        return {student: names.get(student, student) for student in classroom.students}

    # --- Classrooms ---

    def create_classroom(
        self, teacher_identity: str, name: str, subject: str = "", description: str = ""
    ) -> CommandResult[Classroom]:
        return self._authoring.create_classroom(teacher_identity, name, subject, description)

    def join_classroom(self, code: str, student_identity: str) -> CommandResult[Classroom]:
        return self._enrollment.join(code, student_identity)

    def get_classroom(self, classroom_id: str, identity: str) -> CommandResult[Classroom]:
        """Return the classroom when ``identity`` owns it or is enrolled in it."""
        classroom = self._storage.find_classroom_by_id(classroom_id)
        if classroom is None:
            return CommandResult.fail(ErrorKind.NOT_FOUND, messages.CLASSROOM_NOT_FOUND)
        member = normalize_identity(identity)
        if classroom.teacher_id != member and not classroom.has_student(member):
            return CommandResult.fail(ErrorKind.UNAUTHORIZED, messages.NOT_ENROLLED)
        return CommandResult.ok("", classroom)

    def list_classrooms(self, identity: str) -> list[Classroom]:
        user = self.get_user(identity)
        if user is None:
            return []
        if user.role is UserRole.TEACHER:
            return self._storage.list_classrooms_for_teacher(user.email)
        return self._storage.list_classrooms_for_student(user.email)

    def add_feedback_question(
        self, teacher_identity: str, classroom_id: str, text: str
    ) -> CommandResult[FeedbackQuestion]:
        return self._authoring.add_feedback_question(teacher_identity, classroom_id, text)

    def remove_feedback_question(
        self, teacher_identity: str, classroom_id: str, question_id: str
    ) -> CommandResult[None]:
        return self._authoring.remove_feedback_question(teacher_identity, classroom_id, question_id)

    def create_quiz(self, teacher_identity: str, classroom_id: str, draft: QuizDraft) -> CommandResult[Quiz]:
        return self._authoring.create_quiz(teacher_identity, classroom_id, draft)

    # --- Submissions ---

    def has_submitted_feedback(self, classroom_id: str, student_identity: str) -> bool:
        classroom = self._storage.find_classroom_by_id(classroom_id)
        return classroom is not None and not can_submit_feedback(classroom, student_identity)

    def has_attempted_quiz(self, classroom_id: str, quiz_id: str, student_identity: str) -> bool:
        classroom = self._storage.find_classroom_by_id(classroom_id)
        return classroom is not None and not can_submit_quiz_attempt(classroom, quiz_id, student_identity)

    def submit_feedback(
        self,
        classroom_id: str,
        student_identity: str,
        answers: Mapping[str, object],
        comment: str | None = "",
    ) -> CommandResult[Feedback]:
        return self._guard.record_feedback(classroom_id, student_identity, answers, comment)

    def submit_quiz_attempt(
        self, classroom_id: str, quiz_id: str, student_identity: str, answers: Sequence[object]
    ) -> CommandResult[QuizAttempt]:
        return self._guard.record_quiz_attempt(classroom_id, quiz_id, student_identity, answers)

    def start_quiz_session(
        self, classroom_id: str, quiz_id: str, student_identity: str
    ) -> CommandResult[QuizAttemptSession]:
        """Open a timed session whose submission goes through the submission guard."""
        classroom_result = self.get_classroom(classroom_id, student_identity)
        if not classroom_result.success:
            return CommandResult.fail(classroom_result.error, classroom_result.message)
        classroom = classroom_result.value
        quiz = classroom.get_quiz(quiz_id)
        if quiz is None:
            return CommandResult.fail(ErrorKind.NOT_FOUND, messages.QUIZ_NOT_FOUND)
        student_id = normalize_identity(student_identity)
        if not classroom.has_student(student_id):
            return CommandResult.fail(ErrorKind.UNAUTHORIZED, messages.NOT_ENROLLED)
        if not can_submit_quiz_attempt(classroom, quiz.id, student_id):
            return CommandResult.fail(ErrorKind.ALREADY_SUBMITTED, messages.QUIZ_ALREADY_ATTEMPTED)

        def submit(answers: list[int]) -> CommandResult[QuizAttempt]:
            return self._guard.record_quiz_attempt(classroom.id, quiz.id, student_id, answers)

        return CommandResult.ok("", QuizAttemptSession(quiz, student_id, submit))

    # --- Analytics ---

    def get_classroom_report(self, classroom_id: str, teacher_identity: str) -> CommandResult[analytics.ClassroomReport]:
        classroom, failure = self._teacher_classroom(classroom_id, teacher_identity)
        if failure is not None:
            return failure
        return CommandResult.ok("", analytics.classroom_report(classroom))

    def get_quiz_analytics(
        self, classroom_id: str, quiz_id: str, teacher_identity: str
    ) -> CommandResult[analytics.QuizAnalytics]:
        """Succeeds with ``value=None`` when the quiz has no attempts yet."""
        classroom, failure = self._teacher_classroom(classroom_id, teacher_identity)
        if failure is not None:
            return failure
        if classroom.get_quiz(quiz_id) is None:
            return CommandResult.fail(ErrorKind.NOT_FOUND, messages.QUIZ_NOT_FOUND)
        return CommandResult.ok("", analytics.quiz_analytics(quiz_id, classroom.quiz_attempts))

    def _teacher_classroom(
        self, classroom_id: str, teacher_identity: str
    ) -> tuple[Classroom | None, CommandResult | None]:
        classroom = self._storage.find_classroom_by_id(classroom_id)
        if classroom is None:
            return None, CommandResult.fail(ErrorKind.NOT_FOUND, messages.CLASSROOM_NOT_FOUND)
        if classroom.teacher_id != normalize_identity(teacher_identity):
            return None, CommandResult.fail(ErrorKind.UNAUTHORIZED, messages.NOT_CLASSROOM_OWNER)
        return classroom, None
