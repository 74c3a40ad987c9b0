"""Service for joining classrooms by code."""

from __future__ import annotations

import logging

from classroom_app.constants import messages
from classroom_app.core.models import (
    Classroom,
    CommandResult,
    ErrorKind,
    UserRole,
    normalize_identity,
)
from classroom_app.core.services.code_registry import normalize_code
from classroom_app.storage.base import ClassroomStorage, ConstraintViolation

logger = logging.getLogger(__name__)


class EnrollmentService:
    """Adds students to classrooms, one membership per student."""

    def __init__(self, storage: ClassroomStorage) -> None:
        self._storage = storage

    def join(self, code: str, student_identity: str) -> CommandResult[Classroom]:
        student_id = normalize_identity(student_identity)
        classroom = self._storage.find_classroom_by_code(normalize_code(code))
        if classroom is None:
            return CommandResult.fail(ErrorKind.NOT_FOUND, messages.INVALID_CODE)

        user = self._storage.find_user(student_id)
        if user is None or user.role is not UserRole.STUDENT:
            return CommandResult.fail(ErrorKind.UNAUTHORIZED, messages.ONLY_STUDENTS_JOIN)

        if classroom.has_student(student_id):
            return CommandResult.fail(ErrorKind.ALREADY_ENROLLED, messages.ALREADY_ENROLLED)

        try:
            self._storage.insert_enrollment(classroom.id, student_id)
        except ConstraintViolation:
            logger.warning("Concurrent enrollment of %s in classroom %s", student_id, classroom.id)
            return CommandResult.fail(ErrorKind.ALREADY_ENROLLED, messages.ALREADY_ENROLLED)

        logger.info("Student %s joined classroom %s", student_id, classroom.id)
        joined = self._storage.find_classroom_by_id(classroom.id) or classroom
        return CommandResult.ok(messages.JOINED, joined)
