"""Shared fixtures for the classroom application tests."""

from __future__ import annotations

import pytest

from classroom_app.core.classroom_manager import ClassroomManager
from classroom_app.core.models import Classroom, Quiz
from classroom_app.core.services.authoring import QuestionDraft, QuizDraft
from classroom_app.storage.base import ClassroomStorage
from classroom_app.storage.memory import InMemoryStorage
from classroom_app.storage.sql import SqlStorage

TEACHER = "teacher@school.test"
ALICE = "alice@school.test"
BOB = "bob@school.test"


@pytest.fixture(params=["memory", "sql"])
def storage(request) -> ClassroomStorage:
    if request.param == "memory":
        return InMemoryStorage()
    return SqlStorage("sqlite://")


@pytest.fixture
def manager(storage: ClassroomStorage) -> ClassroomManager:
    classroom_manager = ClassroomManager(storage)
    assert classroom_manager.register_user(TEACHER, "teacher", "Ms. Frizzle").success
    assert classroom_manager.register_user(ALICE, "student", "Alice").success
    assert classroom_manager.register_user(BOB, "student").success
    return classroom_manager


@pytest.fixture
def classroom(manager: ClassroomManager) -> Classroom:
    result = manager.create_classroom(TEACHER, "Physics 101", "Physics", "Mechanics and waves")
    assert result.success
    return result.value


@pytest.fixture
def enrolled(manager: ClassroomManager, classroom: Classroom) -> Classroom:
    assert manager.join_classroom(classroom.code, ALICE).success
    assert manager.join_classroom(classroom.code, BOB).success
    return manager.get_classroom(classroom.id, TEACHER).value


@pytest.fixture
def quiz(manager: ClassroomManager, enrolled: Classroom) -> Quiz:
    draft = QuizDraft(
        title="Kinematics",
        description="Velocity and acceleration",
        questions=[
            QuestionDraft(text="Unit of velocity?", options=["m", "m/s", "s", "kg"], correct_answer=1),
            QuestionDraft(text="g on Earth?", options=["9.8", "1.6", "3.7", "24.8"], correct_answer=0),
            QuestionDraft(text="Slope of v-t graph?", options=["position", "jerk", "mass", "acceleration"], correct_answer=3),
        ],
        time_limit=10,
    )
    result = manager.create_quiz(TEACHER, enrolled.id, draft)
    assert result.success
    return result.value
