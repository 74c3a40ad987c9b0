"""Service for teacher-side classroom structure: classrooms, questions, quizzes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
import logging

from classroom_app.constants import messages
from classroom_app.constants.classroom_constants import (
    CODE_RETRY_LIMIT,
    DEFAULT_FEEDBACK_QUESTIONS,
    DEFAULT_TIME_LIMIT_MINUTES,
    MIN_QUIZ_OPTIONS,
)
from classroom_app.core.models import (
    Classroom,
    CommandResult,
    ErrorKind,
    FeedbackQuestion,
    Quiz,
    QuizQuestion,
    User,
    UserRole,
    new_id,
    normalize_identity,
)
from classroom_app.core.services.code_registry import CodeSpaceExhausted, allocate_unique_code
from classroom_app.core.services.scoring import coerce_int
from classroom_app.storage.base import ClassroomStorage, ConstraintViolation

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class QuestionDraft:
    """Quiz question as authored, before validation and id assignment."""

    text: str
    options: list[str]
    correct_answer: object
    order: int | None = None


@dataclass(slots=True)
class QuizDraft:
    title: str
    description: str = ""
    questions: list[QuestionDraft] = field(default_factory=list)
    time_limit: object = DEFAULT_TIME_LIMIT_MINUTES


def default_feedback_questions() -> list[FeedbackQuestion]:
    return [
        FeedbackQuestion(id=new_id(), text=text, order=order)
        for order, text in enumerate(DEFAULT_FEEDBACK_QUESTIONS)
    ]


class ClassroomAuthoring:
    """Creates users and classrooms and edits classroom structure."""

    def __init__(self, storage: ClassroomStorage, code_retry_limit: int = CODE_RETRY_LIMIT) -> None:
        self._storage = storage
        self._code_retry_limit = code_retry_limit

    def register_user(self, email: str, role: UserRole | str, name: str | None = None) -> CommandResult[User]:
        identity = normalize_identity(email)
        if not identity or "@" not in identity:
            return CommandResult.fail(ErrorKind.VALIDATION_ERROR, "A valid email address is required.")
        try:
            user_role = UserRole(role)
        except ValueError:
            return CommandResult.fail(ErrorKind.VALIDATION_ERROR, "Role must be 'teacher' or 'student'.")
        display_name = (name or "").strip() or identity.split("@", 1)[0]
        user = User(email=identity, role=user_role, name=display_name, created_at=datetime.utcnow())
        try:
            self._storage.insert_user(user)
        except ConstraintViolation:
            return CommandResult.fail(ErrorKind.VALIDATION_ERROR, messages.USER_EXISTS)
        logger.info("Registered %s %s", user_role.value, identity)
        return CommandResult.ok(messages.USER_REGISTERED, user)

    def create_classroom(
        self,
        teacher_identity: str,
        name: str,
        subject: str = "",
        description: str = "",
    ) -> CommandResult[Classroom]:
        teacher = self._storage.find_user(normalize_identity(teacher_identity))
        if teacher is None or teacher.role is not UserRole.TEACHER:
            return CommandResult.fail(ErrorKind.UNAUTHORIZED, messages.ONLY_TEACHERS_CREATE)
        cleaned_name = name.strip()
        if not cleaned_name:
            return CommandResult.fail(ErrorKind.VALIDATION_ERROR, "Classroom name must not be empty.")

        classroom_id = new_id()
        questions = default_feedback_questions()
        for _ in range(self._code_retry_limit):
            try:
                code = allocate_unique_code(self._storage.list_codes(), max_attempts=self._code_retry_limit)
            except CodeSpaceExhausted:
                break
            classroom = Classroom(
                id=classroom_id,
                name=cleaned_name,
                subject=subject.strip(),
                description=description.strip(),
                code=code,
                teacher_id=teacher.email,
                teacher_name=teacher.name,
                feedback_questions=questions,
                created_at=datetime.utcnow(),
            )
            try:
                self._storage.insert_classroom(classroom)
            except ConstraintViolation:
                logger.warning("Classroom code %s was taken concurrently, retrying", code)
                continue
            logger.info("Teacher %s created classroom %s (%s)", teacher.email, classroom.id, code)
            return CommandResult.ok(messages.CLASSROOM_CREATED, classroom)

        logger.error("Classroom code allocation exhausted for teacher %s", teacher.email)
        return CommandResult.fail(ErrorKind.CODE_SPACE_EXHAUSTED, messages.CODE_SPACE_EXHAUSTED)

    def add_feedback_question(
        self, teacher_identity: str, classroom_id: str, text: str
    ) -> CommandResult[FeedbackQuestion]:
        classroom, failure = self._owned_classroom(teacher_identity, classroom_id)
        if failure is not None:
            return failure
        cleaned_text = text.strip()
        if not cleaned_text:
            return CommandResult.fail(ErrorKind.VALIDATION_ERROR, "Question text must not be empty.")
        next_order = max((q.order for q in classroom.feedback_questions), default=-1) + 1
        question = FeedbackQuestion(id=new_id(), text=cleaned_text, order=next_order)
        self._storage.insert_feedback_question(classroom.id, question)
        return CommandResult.ok(messages.QUESTION_ADDED, question)

    def remove_feedback_question(
        self, teacher_identity: str, classroom_id: str, question_id: str
    ) -> CommandResult[None]:
        classroom, failure = self._owned_classroom(teacher_identity, classroom_id)
        if failure is not None:
            return failure
        if not any(question.id == question_id for question in classroom.feedback_questions):
            return CommandResult.fail(ErrorKind.NOT_FOUND, messages.QUESTION_NOT_FOUND)
        if not self._storage.delete_feedback_question(question_id):
            return CommandResult.fail(ErrorKind.NOT_FOUND, messages.QUESTION_NOT_FOUND)
        return CommandResult.ok(messages.QUESTION_REMOVED)

    def create_quiz(self, teacher_identity: str, classroom_id: str, draft: QuizDraft) -> CommandResult[Quiz]:
        classroom, failure = self._owned_classroom(teacher_identity, classroom_id)
        if failure is not None:
            return failure
        try:
            quiz = _prepare_quiz(classroom.id, draft)
        except ValueError as exc:
            return CommandResult.fail(ErrorKind.VALIDATION_ERROR, str(exc))
        self._storage.insert_quiz(quiz)
        logger.info("Created quiz %s with %d questions in classroom %s", quiz.id, len(quiz.questions), classroom.id)
        return CommandResult.ok(messages.QUIZ_CREATED, quiz)

    def _owned_classroom(
        self, teacher_identity: str, classroom_id: str
    ) -> tuple[Classroom | None, CommandResult | None]:
        classroom = self._storage.find_classroom_by_id(classroom_id)
        if classroom is None:
            return None, CommandResult.fail(ErrorKind.NOT_FOUND, messages.CLASSROOM_NOT_FOUND)
        if classroom.teacher_id != normalize_identity(teacher_identity):
            return None, CommandResult.fail(ErrorKind.UNAUTHORIZED, messages.NOT_CLASSROOM_OWNER)
        return classroom, None


def _prepare_quiz(classroom_id: str, draft: QuizDraft) -> Quiz:
    title = draft.title.strip()
    if not title:
        raise ValueError("Quiz title must not be empty.")
    if not draft.questions:
        raise ValueError("Quiz must contain at least one question.")
    time_limit = coerce_int(draft.time_limit)
    if time_limit is None or time_limit <= 0:
        raise ValueError("Time limit must be a positive whole number of minutes.")
    questions = [_prepare_question(index, question) for index, question in enumerate(draft.questions)]
    return Quiz(
        id=new_id(),
        classroom_id=classroom_id,
        title=title,
        description=draft.description.strip(),
        questions=sorted(questions, key=lambda q: q.order),
        time_limit=time_limit,
        created_at=datetime.utcnow(),
    )


def _prepare_question(index: int, draft: QuestionDraft) -> QuizQuestion:
    text = draft.text.strip()
    if not text:
        raise ValueError(f"Question {index + 1} text must not be empty.")
    options = [option.strip() for option in draft.options]
    if len(options) < MIN_QUIZ_OPTIONS:
        raise ValueError(f"Question {index + 1} needs at least {MIN_QUIZ_OPTIONS} options.")
    if any(not option for option in options):
        raise ValueError(f"Question {index + 1} has an empty option.")
    correct = coerce_int(draft.correct_answer)
    if correct is None or not 0 <= correct < len(options):
        raise ValueError(f"Question {index + 1} correct answer must index one of its options.")
    return QuizQuestion(
        id=new_id(),
        text=text,
        options=options,
        correct_answer=correct,
        order=index if draft.order is None else draft.order,
    )
