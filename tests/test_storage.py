from datetime import datetime

import pytest

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
from classroom_app.storage import InMemoryStorage, create_storage
from classroom_app.storage.base import ConstraintViolation
from classroom_app.storage.sql import SqlStorage


def _classroom(classroom_id="room", code="ABC123", teacher_id="t@x.test"):
    return Classroom(
        id=classroom_id,
        name="Room",
        subject="Math",
        description="",
        code=code,
        teacher_id=teacher_id,
        feedback_questions=[FeedbackQuestion(id=f"{classroom_id}-q1", text="Clear?", order=0)],
    )


def _quiz(classroom_id="room"):
    return Quiz(
        id=f"{classroom_id}-quiz",
        classroom_id=classroom_id,
        title="Fractions",
        description="",
        questions=[
            QuizQuestion(id=f"{classroom_id}-qq2", text="B", options=["x", "y", "z"], correct_answer=2, order=1),
            QuizQuestion(id=f"{classroom_id}-qq1", text="A", options=["x", "y"], correct_answer=0, order=0),
        ],
        time_limit=5,
        created_at=datetime(2024, 1, 1, 9, 30),
    )


def test_user_round_trip_and_uniqueness(storage):
    user = User(email="t@x.test", role=UserRole.TEACHER, name="Teach", created_at=datetime(2024, 1, 1))
    storage.insert_user(user)
    assert storage.find_user("t@x.test") == user
    assert storage.find_user("nobody@x.test") is None
    with pytest.raises(ConstraintViolation):
        storage.insert_user(user)
    assert storage.get_user_names(["t@x.test", "nobody@x.test"]) == {"t@x.test": "Teach"}


def test_classroom_code_is_unique(storage):
    storage.insert_classroom(_classroom())
    with pytest.raises(ConstraintViolation) as exc_info:
        storage.insert_classroom(_classroom(classroom_id="other"))
    assert exc_info.value.constraint == "classroom_code"
    assert storage.list_codes() == {"ABC123"}
    assert storage.find_classroom_by_code("ABC123").id == "room"
    assert storage.find_classroom_by_code("ZZZ999") is None


def test_natural_keys_are_enforced(storage):
    storage.insert_classroom(_classroom())
    storage.insert_quiz(_quiz())
    storage.insert_enrollment("room", "s@x.test")
    with pytest.raises(ConstraintViolation):
        storage.insert_enrollment("room", "s@x.test")

    feedback = Feedback(id="f1", classroom_id="room", student_id="s@x.test", answers={"room-q1": 4})
    storage.insert_feedback(feedback)
    with pytest.raises(ConstraintViolation):
        storage.insert_feedback(Feedback(id="f2", classroom_id="room", student_id="s@x.test", answers={}))

    attempt = QuizAttempt(id="a1", quiz_id="room-quiz", student_id="s@x.test", answers=[0, -1], score=1, total_questions=2)
    storage.insert_quiz_attempt(attempt)
    with pytest.raises(ConstraintViolation):
        storage.insert_quiz_attempt(
            QuizAttempt(id="a2", quiz_id="room-quiz", student_id="s@x.test", answers=[], score=0, total_questions=2)
        )


def test_materialized_classroom_round_trip(storage):
    storage.insert_classroom(_classroom())
    storage.insert_quiz(_quiz())
    storage.insert_enrollment("room", "b@x.test")
    storage.insert_enrollment("room", "a@x.test")
    storage.insert_feedback(
        Feedback(id="f1", classroom_id="room", student_id="a@x.test", answers={"room-q1": 5}, comment="ok")
    )
    storage.insert_quiz_attempt(
        QuizAttempt(id="a1", quiz_id="room-quiz", student_id="a@x.test", answers=[0, 2], score=2, total_questions=2)
    )

    classroom = storage.find_classroom_by_id("room")
    assert classroom.students == ["b@x.test", "a@x.test"]
    assert classroom.feedbacks[0].answers == {"room-q1": 5}
    assert classroom.feedbacks[0].comment == "ok"
    assert classroom.quiz_attempts[0].answers == [0, 2]
    quiz = classroom.quizzes[0]
    assert [q.text for q in quiz.questions] == ["A", "B"]
    assert quiz.questions[1].options == ["x", "y", "z"]
    assert quiz.created_at == datetime(2024, 1, 1, 9, 30)


def test_listing_by_teacher_and_student(storage):
    storage.insert_classroom(_classroom("r1", "AAA111", teacher_id="t1@x.test"))
    storage.insert_classroom(_classroom("r2", "BBB222", teacher_id="t2@x.test"))
    storage.insert_enrollment("r2", "s@x.test")
    assert [c.id for c in storage.list_classrooms_for_teacher("t1@x.test")] == ["r1"]
    assert [c.id for c in storage.list_classrooms_for_student("s@x.test")] == ["r2"]
    assert storage.list_classrooms_for_student("nobody@x.test") == []


def test_feedback_question_insert_and_delete(storage):
    storage.insert_classroom(_classroom())
    storage.insert_feedback_question("room", FeedbackQuestion(id="extra", text="Pace?", order=3))
    assert [q.id for q in storage.find_classroom_by_id("room").feedback_questions] == ["room-q1", "extra"]
    assert storage.delete_feedback_question("extra")
    assert not storage.delete_feedback_question("extra")
    assert [q.id for q in storage.find_classroom_by_id("room").feedback_questions] == ["room-q1"]


def test_snapshots_are_detached_from_storage(storage):
    storage.insert_classroom(_classroom())
    answers = {"room-q1": 4}
    storage.insert_feedback(Feedback(id="f1", classroom_id="room", student_id="s@x.test", answers=answers))
    answers["room-q1"] = 1
    snapshot = storage.find_classroom_by_id("room")
    snapshot.feedbacks[0].answers["room-q1"] = 2
    assert storage.find_classroom_by_id("room").feedbacks[0].answers == {"room-q1": 4}


def test_create_storage_selects_adapter():
    assert isinstance(create_storage(None), InMemoryStorage)
    assert isinstance(create_storage("sqlite://"), SqlStorage)
