"""Storage adapters for the classroom application."""

from __future__ import annotations

from .base import ClassroomStorage, ConstraintViolation
from .memory import InMemoryStorage


def create_storage(database_url: str | None = None) -> ClassroomStorage:
    """Return a SQL-backed store when a database URL is configured, else an in-memory one."""
    if database_url:
        from .sql import SqlStorage

        return SqlStorage(database_url)
    return InMemoryStorage()


__all__ = ["ClassroomStorage", "ConstraintViolation", "InMemoryStorage", "create_storage"]
