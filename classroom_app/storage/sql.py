"""SQLAlchemy storage adapter.

Natural-key uniqueness is declared as table constraints so the database is
the final arbiter when two sessions race on the same insert.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
import logging

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    delete,
    select,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from classroom_app.core.models import (
    Classroom,
    Feedback,
    FeedbackQuestion,
    Quiz,
    QuizAttempt,
    QuizQuestion,
    User,
    UserRole,
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


class Base(DeclarativeBase):
    pass


class UserRow(Base):
    __tablename__ = "users"
    email: Mapped[str] = mapped_column(String(255), primary_key=True)
    role: Mapped[str] = mapped_column(String(16))
    name: Mapped[str] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class ClassroomRow(Base):
    __tablename__ = "classrooms"
    __table_args__ = (UniqueConstraint("code", name=CLASSROOM_CODE),)
    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    subject: Mapped[str] = mapped_column(String(255), default="")
    description: Mapped[str] = mapped_column(Text, default="")
    code: Mapped[str] = mapped_column(String(6), index=True)
    teacher_id: Mapped[str] = mapped_column(String(255), index=True)
    teacher_name: Mapped[str] = mapped_column(String(255), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class EnrollmentRow(Base):
    __tablename__ = "enrollments"
    __table_args__ = (UniqueConstraint("classroom_id", "student_id", name=ENROLLMENT_PAIR),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    classroom_id: Mapped[str] = mapped_column(ForeignKey("classrooms.id", ondelete="CASCADE"), index=True)
    student_id: Mapped[str] = mapped_column(String(255), index=True)


class FeedbackQuestionRow(Base):
    __tablename__ = "feedback_questions"
    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    classroom_id: Mapped[str] = mapped_column(ForeignKey("classrooms.id", ondelete="CASCADE"), index=True)
    text: Mapped[str] = mapped_column(Text)
    order_index: Mapped[int] = mapped_column(Integer, default=0)


class FeedbackRow(Base):
    __tablename__ = "feedbacks"
    __table_args__ = (UniqueConstraint("classroom_id", "student_id", name=FEEDBACK_PAIR),)
    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    classroom_id: Mapped[str] = mapped_column(ForeignKey("classrooms.id", ondelete="CASCADE"), index=True)
    student_id: Mapped[str] = mapped_column(String(255))
    answers: Mapped[dict] = mapped_column(JSON)
    comment: Mapped[str] = mapped_column(Text, default="")
    submitted_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class QuizRow(Base):
    __tablename__ = "quizzes"
    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    classroom_id: Mapped[str] = mapped_column(ForeignKey("classrooms.id", ondelete="CASCADE"), index=True)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text, default="")
    time_limit: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class QuizQuestionRow(Base):
    __tablename__ = "quiz_questions"
    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    quiz_id: Mapped[str] = mapped_column(ForeignKey("quizzes.id", ondelete="CASCADE"), index=True)
    text: Mapped[str] = mapped_column(Text)
    options: Mapped[list] = mapped_column(JSON)
    correct_answer: Mapped[int] = mapped_column(Integer)
    order_index: Mapped[int] = mapped_column(Integer, default=0)


class QuizAttemptRow(Base):
    __tablename__ = "quiz_attempts"
    __table_args__ = (UniqueConstraint("quiz_id", "student_id", name=ATTEMPT_PAIR),)
    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    quiz_id: Mapped[str] = mapped_column(ForeignKey("quizzes.id", ondelete="CASCADE"), index=True)
    student_id: Mapped[str] = mapped_column(String(255))
    answers: Mapped[list] = mapped_column(JSON)
    score: Mapped[int] = mapped_column(Integer)
    total_questions: Mapped[int] = mapped_column(Integer)
    submitted_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class SqlStorage(ClassroomStorage):
    """Relational storage using one short-lived session per call."""

    def __init__(self, database_url: str) -> None:
        connect_args: dict[str, object] = {}
        engine_kwargs: dict[str, object] = {}
        if database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            if ":memory:" in database_url or database_url == "sqlite://":
                engine_kwargs["poolclass"] = StaticPool
        self._engine = create_engine(database_url, connect_args=connect_args, **engine_kwargs)
        self._session_factory = sessionmaker(bind=self._engine, autoflush=False, expire_on_commit=False)
        Base.metadata.create_all(bind=self._engine)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def _unique_insert(self, constraint: str) -> Iterator[Session]:
        try:
            with self._session() as session:
                yield session
        except IntegrityError as exc:
            logger.info("Insert rejected by constraint %s", constraint)
            raise ConstraintViolation(constraint) from exc

    # --- Users ---

    def find_user(self, email: str) -> User | None:
        with self._session() as session:
            row = session.get(UserRow, email)
            return _to_user(row) if row else None

    def insert_user(self, user: User) -> None:
        with self._unique_insert(USER_EMAIL) as session:
            session.add(
                UserRow(email=user.email, role=user.role.value, name=user.name, created_at=user.created_at)
            )

    def get_user_names(self, emails: list[str]) -> dict[str, str]:
        if not emails:
            return {}
        with self._session() as session:
            rows = session.scalars(select(UserRow).where(UserRow.email.in_(emails)))
            return {row.email: row.name for row in rows}

    # --- Classrooms ---

    def find_classroom_by_code(self, code: str) -> Classroom | None:
        with self._session() as session:
            row = session.scalars(select(ClassroomRow).where(ClassroomRow.code == code)).first()
            return self._materialize(session, row) if row else None

    def find_classroom_by_id(self, classroom_id: str) -> Classroom | None:
        with self._session() as session:
            row = session.get(ClassroomRow, classroom_id)
            return self._materialize(session, row) if row else None

    def list_classrooms_for_teacher(self, teacher_id: str) -> list[Classroom]:
        with self._session() as session:
            rows = session.scalars(
                select(ClassroomRow)
                .where(ClassroomRow.teacher_id == teacher_id)
                .order_by(ClassroomRow.created_at)
            ).all()
            return [self._materialize(session, row) for row in rows]

    def list_classrooms_for_student(self, student_id: str) -> list[Classroom]:
        with self._session() as session:
            rows = session.scalars(
                select(ClassroomRow)
                .join(EnrollmentRow, EnrollmentRow.classroom_id == ClassroomRow.id)
                .where(EnrollmentRow.student_id == student_id)
                .order_by(EnrollmentRow.id)
            ).all()
            return [self._materialize(session, row) for row in rows]

    def list_codes(self) -> set[str]:
        with self._session() as session:
            return set(session.scalars(select(ClassroomRow.code)))

    def insert_classroom(self, classroom: Classroom) -> None:
        with self._unique_insert(CLASSROOM_CODE) as session:
            session.add(
                ClassroomRow(
                    id=classroom.id,
                    name=classroom.name,
                    subject=classroom.subject,
                    description=classroom.description,
                    code=classroom.code,
                    teacher_id=classroom.teacher_id,
                    teacher_name=classroom.teacher_name,
                    created_at=classroom.created_at,
                )
            )
            # Flush the parent first so child rows see the classroom id.
            session.flush()
            for question in classroom.feedback_questions:
                session.add(_question_row(classroom.id, question))
            for student_id in dict.fromkeys(classroom.students):
                session.add(EnrollmentRow(classroom_id=classroom.id, student_id=student_id))

    def insert_enrollment(self, classroom_id: str, student_id: str) -> None:
        with self._unique_insert(ENROLLMENT_PAIR) as session:
            session.add(EnrollmentRow(classroom_id=classroom_id, student_id=student_id))

    # --- Submissions ---

    def insert_feedback(self, feedback: Feedback) -> None:
        with self._unique_insert(FEEDBACK_PAIR) as session:
            session.add(
                FeedbackRow(
                    id=feedback.id,
                    classroom_id=feedback.classroom_id,
                    student_id=feedback.student_id,
                    answers=dict(feedback.answers),
                    comment=feedback.comment,
                    submitted_at=feedback.submitted_at,
                )
            )

    def insert_quiz_attempt(self, attempt: QuizAttempt) -> None:
        with self._unique_insert(ATTEMPT_PAIR) as session:
            session.add(
                QuizAttemptRow(
                    id=attempt.id,
                    quiz_id=attempt.quiz_id,
                    student_id=attempt.student_id,
                    answers=list(attempt.answers),
                    score=attempt.score,
                    total_questions=attempt.total_questions,
                    submitted_at=attempt.submitted_at,
                )
            )

    # --- Authoring ---

    def insert_quiz(self, quiz: Quiz) -> None:
        with self._session() as session:
            session.add(
                QuizRow(
                    id=quiz.id,
                    classroom_id=quiz.classroom_id,
                    title=quiz.title,
                    description=quiz.description,
                    time_limit=quiz.time_limit,
                    created_at=quiz.created_at,
                )
            )
            session.flush()
            for question in quiz.questions:
                session.add(
                    QuizQuestionRow(
                        id=question.id,
                        quiz_id=quiz.id,
                        text=question.text,
                        options=list(question.options),
                        correct_answer=question.correct_answer,
                        order_index=question.order,
                    )
                )

    def insert_feedback_question(self, classroom_id: str, question: FeedbackQuestion) -> None:
        with self._session() as session:
            session.add(_question_row(classroom_id, question))

    def delete_feedback_question(self, question_id: str) -> bool:
        with self._session() as session:
            result = session.execute(delete(FeedbackQuestionRow).where(FeedbackQuestionRow.id == question_id))
            return result.rowcount > 0

    # --- Mapping ---

    def _materialize(self, session: Session, row: ClassroomRow) -> Classroom:
        teacher = session.get(UserRow, row.teacher_id)
        students = session.scalars(
            select(EnrollmentRow.student_id)
            .where(EnrollmentRow.classroom_id == row.id)
            .order_by(EnrollmentRow.id)
        ).all()
        questions = session.scalars(
            select(FeedbackQuestionRow)
            .where(FeedbackQuestionRow.classroom_id == row.id)
            .order_by(FeedbackQuestionRow.order_index)
        ).all()
        feedbacks = session.scalars(
            select(FeedbackRow).where(FeedbackRow.classroom_id == row.id).order_by(FeedbackRow.submitted_at)
        ).all()
        quiz_rows = session.scalars(
            select(QuizRow).where(QuizRow.classroom_id == row.id).order_by(QuizRow.created_at)
        ).all()
        quizzes = [self._to_quiz(session, quiz_row) for quiz_row in quiz_rows]
        attempts: list[QuizAttempt] = []
        if quizzes:
            attempt_rows = session.scalars(
                select(QuizAttemptRow)
                .where(QuizAttemptRow.quiz_id.in_([quiz.id for quiz in quizzes]))
                .order_by(QuizAttemptRow.submitted_at)
            ).all()
            attempts = [_to_attempt(attempt_row) for attempt_row in attempt_rows]

        return Classroom(
            id=row.id,
            name=row.name,
            subject=row.subject,
            description=row.description,
            code=row.code,
            teacher_id=row.teacher_id,
            teacher_name=teacher.name if teacher else row.teacher_name,
            students=list(students),
            feedback_questions=[
                FeedbackQuestion(id=q.id, text=q.text, order=q.order_index) for q in questions
            ],
            quizzes=quizzes,
            feedbacks=[_to_feedback(feedback_row) for feedback_row in feedbacks],
            quiz_attempts=attempts,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_quiz(session: Session, row: QuizRow) -> Quiz:
        question_rows = session.scalars(
            select(QuizQuestionRow)
            .where(QuizQuestionRow.quiz_id == row.id)
            .order_by(QuizQuestionRow.order_index)
        ).all()
        return Quiz(
            id=row.id,
            classroom_id=row.classroom_id,
            title=row.title,
            description=row.description,
            questions=[
                QuizQuestion(
                    id=q.id,
                    text=q.text,
                    options=list(q.options),
                    correct_answer=q.correct_answer,
                    order=q.order_index,
                )
                for q in question_rows
            ],
            time_limit=row.time_limit,
            created_at=row.created_at,
        )


def _question_row(classroom_id: str, question: FeedbackQuestion) -> FeedbackQuestionRow:
    return FeedbackQuestionRow(
        id=question.id,
        classroom_id=classroom_id,
        text=question.text,
        order_index=question.order,
    )


def _to_user(row: UserRow) -> User:
    return User(email=row.email, role=UserRole(row.role), name=row.name, created_at=row.created_at)


def _to_feedback(row: FeedbackRow) -> Feedback:
    return Feedback(
        id=row.id,
        classroom_id=row.classroom_id,
        student_id=row.student_id,
        answers={str(key): int(value) for key, value in row.answers.items()},
        comment=row.comment,
        submitted_at=row.submitted_at,
    )


def _to_attempt(row: QuizAttemptRow) -> QuizAttempt:
    return QuizAttempt(
        id=row.id,
        quiz_id=row.quiz_id,
        student_id=row.student_id,
        answers=[int(value) for value in row.answers],
        score=row.score,
        total_questions=row.total_questions,
        submitted_at=row.submitted_at,
    )
