"""FastAPI server that exposes classroom commands and analytics as JSON."""

from __future__ import annotations

from dataclasses import asdict
import logging
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException
from pydantic import BaseModel, Field
import uvicorn

from classroom_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT, IDENTITY_HEADER
from classroom_app.core.classroom_manager import ClassroomManager
from classroom_app.core.models import Classroom, CommandResult, ErrorKind, UserRole, normalize_identity
from classroom_app.core.services.authoring import QuestionDraft, QuizDraft

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.ALREADY_ENROLLED: 409,
    ErrorKind.ALREADY_SUBMITTED: 409,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.VALIDATION_ERROR: 422,
    ErrorKind.CODE_SPACE_EXHAUSTED: 503,
}


class RegisterPayload(BaseModel):
    email: str
    role: UserRole
    name: str | None = None


class ClassroomPayload(BaseModel):
    name: str
    subject: str = ""
    description: str = ""


class JoinPayload(BaseModel):
    code: str


class FeedbackQuestionPayload(BaseModel):
    text: str


class QuizQuestionPayload(BaseModel):
    text: str
    options: list[str]
    correct_answer: int | str


class QuizPayload(BaseModel):
    title: str
    description: str = ""
    questions: list[QuizQuestionPayload] = Field(default_factory=list)
    time_limit: int | str = 15


class FeedbackPayload(BaseModel):
    """Ratings keyed by feedback question id. Values may arrive as strings from forms."""

    answers: dict[str, int | str]
    comment: str | None = ""


class AttemptPayload(BaseModel):
    answers: list[int | str | None]


def _unwrap(result: CommandResult) -> Any:
    if result.success:
        return result.value
    status_code = _STATUS_BY_ERROR.get(result.error, 400)
    raise HTTPException(
        status_code=status_code,
        detail={"error": result.error.value if result.error else None, "message": result.message},
    )


def _get_classroom_manager_dependency(classroom_manager: ClassroomManager):
    def dependency() -> ClassroomManager:
        return classroom_manager

    return dependency


def _current_identity(x_user_email: str | None = Header(default=None, alias=IDENTITY_HEADER)) -> str:
    if not x_user_email or not x_user_email.strip():
        raise HTTPException(status_code=401, detail={"error": "unauthenticated", "message": "Missing identity."})
    return normalize_identity(x_user_email)


def _classroom_view(classroom: Classroom, viewer: str, student_names: dict[str, str]) -> dict[str, object]:
    """Serialize a classroom.

    Feedback is returned without its author. Students see neither answer keys
    nor other students' records.
    """
    data = asdict(classroom)
    data["student_names"] = student_names
    for feedback in data["feedbacks"]:
        feedback.pop("student_id", None)
    if classroom.teacher_id == viewer:
        return data
    data["students"] = []
    data["student_names"] = {}
    data["feedbacks"] = []
    data["has_submitted_feedback"] = any(feedback.student_id == viewer for feedback in classroom.feedbacks)
    data["quiz_attempts"] = [
        asdict(attempt) for attempt in classroom.quiz_attempts if attempt.student_id == viewer
    ]
    for quiz in data["quizzes"]:
        for question in quiz["questions"]:
            question.pop("correct_answer", None)
    return data


def create_api_app(classroom_manager: ClassroomManager) -> FastAPI:
    """Create a FastAPI application wired to the provided classroom manager."""
    app = FastAPI(title="ClassPulse API", version="0.1.0")
    manager_dep = _get_classroom_manager_dependency(classroom_manager)

    @app.post("/users", status_code=201)
    def register_user(
        payload: RegisterPayload, manager: ClassroomManager = Depends(manager_dep)
    ) -> dict[str, object]:
        user = _unwrap(manager.register_user(payload.email, payload.role, payload.name))
        return asdict(user)

    @app.get("/users/me")
    def get_me(
        identity: str = Depends(_current_identity), manager: ClassroomManager = Depends(manager_dep)
    ) -> dict[str, object]:
        user = manager.get_user(identity)
        if user is None:
            raise HTTPException(status_code=404, detail={"error": "not_found", "message": "User not found"})
        return asdict(user)

    @app.post("/classrooms", status_code=201)
    def create_classroom(
        payload: ClassroomPayload,
        identity: str = Depends(_current_identity),
        manager: ClassroomManager = Depends(manager_dep),
    ) -> dict[str, object]:
        classroom = _unwrap(
            manager.create_classroom(identity, payload.name, payload.subject, payload.description)
        )
        return asdict(classroom)

    @app.get("/classrooms")
    def list_classrooms(
        identity: str = Depends(_current_identity), manager: ClassroomManager = Depends(manager_dep)
    ) -> list[dict[str, object]]:
        return [
            _classroom_view(classroom, identity, manager.get_student_names(classroom))
            for classroom in manager.list_classrooms(identity)
        ]

    @app.post("/classrooms/join", status_code=201)
    def join_classroom(
        payload: JoinPayload,
        identity: str = Depends(_current_identity),
        manager: ClassroomManager = Depends(manager_dep),
    ) -> dict[str, object]:
        result = manager.join_classroom(payload.code, identity)
        classroom = _unwrap(result)
        return {"message": result.message, "classroom_id": classroom.id, "name": classroom.name}

    @app.get("/classrooms/{classroom_id}")
    def get_classroom(
        classroom_id: str,
        identity: str = Depends(_current_identity),
        manager: ClassroomManager = Depends(manager_dep),
    ) -> dict[str, object]:
        classroom = _unwrap(manager.get_classroom(classroom_id, identity))
        return _classroom_view(classroom, identity, manager.get_student_names(classroom))

    @app.post("/classrooms/{classroom_id}/feedback-questions", status_code=201)
    def add_feedback_question(
        classroom_id: str,
        payload: FeedbackQuestionPayload,
        identity: str = Depends(_current_identity),
        manager: ClassroomManager = Depends(manager_dep),
    ) -> dict[str, object]:
        question = _unwrap(manager.add_feedback_question(identity, classroom_id, payload.text))
        return asdict(question)

    @app.delete("/classrooms/{classroom_id}/feedback-questions/{question_id}")
    def remove_feedback_question(
        classroom_id: str,
        question_id: str,
        identity: str = Depends(_current_identity),
        manager: ClassroomManager = Depends(manager_dep),
    ) -> dict[str, object]:
        result = manager.remove_feedback_question(identity, classroom_id, question_id)
        _unwrap(result)
        return {"message": result.message}

    @app.post("/classrooms/{classroom_id}/quizzes", status_code=201)
    def create_quiz(
        classroom_id: str,
        payload: QuizPayload,
        identity: str = Depends(_current_identity),
        manager: ClassroomManager = Depends(manager_dep),
    ) -> dict[str, object]:
        draft = QuizDraft(
            title=payload.title,
            description=payload.description,
            questions=[
                QuestionDraft(text=q.text, options=list(q.options), correct_answer=q.correct_answer)
                for q in payload.questions
            ],
            time_limit=payload.time_limit,
        )
        quiz = _unwrap(manager.create_quiz(identity, classroom_id, draft))
        return asdict(quiz)

    @app.get("/classrooms/{classroom_id}/feedback/status")
    def feedback_status(
        classroom_id: str,
        identity: str = Depends(_current_identity),
        manager: ClassroomManager = Depends(manager_dep),
    ) -> dict[str, object]:
        classroom = _unwrap(manager.get_classroom(classroom_id, identity))
        return {"has_submitted": manager.has_submitted_feedback(classroom.id, identity)}

    @app.post("/classrooms/{classroom_id}/feedback", status_code=201)
    def submit_feedback(
        classroom_id: str,
        payload: FeedbackPayload,
        identity: str = Depends(_current_identity),
        manager: ClassroomManager = Depends(manager_dep),
    ) -> dict[str, object]:
        result = manager.submit_feedback(classroom_id, identity, payload.answers, payload.comment)
        feedback = _unwrap(result)
        return {"message": result.message, "feedback_id": feedback.id}

    @app.post("/classrooms/{classroom_id}/quizzes/{quiz_id}/attempts", status_code=201)
    def submit_attempt(
        classroom_id: str,
        quiz_id: str,
        payload: AttemptPayload,
        identity: str = Depends(_current_identity),
        manager: ClassroomManager = Depends(manager_dep),
    ) -> dict[str, object]:
        result = manager.submit_quiz_attempt(classroom_id, quiz_id, identity, payload.answers)
        attempt = _unwrap(result)
        return {
            "message": result.message,
            "attempt_id": attempt.id,
            "score": attempt.score,
            "total_questions": attempt.total_questions,
        }

    @app.get("/classrooms/{classroom_id}/analytics")
    def classroom_analytics(
        classroom_id: str,
        identity: str = Depends(_current_identity),
        manager: ClassroomManager = Depends(manager_dep),
    ) -> dict[str, object]:
        report = _unwrap(manager.get_classroom_report(classroom_id, identity))
        return asdict(report)

    @app.get("/classrooms/{classroom_id}/quizzes/{quiz_id}/analytics")
    def quiz_analytics(
        classroom_id: str,
        quiz_id: str,
        identity: str = Depends(_current_identity),
        manager: ClassroomManager = Depends(manager_dep),
    ) -> dict[str, object] | None:
        report = _unwrap(manager.get_quiz_analytics(classroom_id, quiz_id, identity))
        return asdict(report) if report is not None else None

    return app


def run_api_server(
    classroom_manager: ClassroomManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> None:
    """Serve the API with uvicorn until interrupted."""
    app = create_api_app(classroom_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)
    logger.info("Serving classroom API on %s:%s", host, port)
    server.run()
