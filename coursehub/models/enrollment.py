from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID, uuid4

from coursehub.models.course import utcnow


@dataclass(frozen=True, slots=True)
class Enrollment:
    """One student's participation in one course.

    ``progress`` is derived from ``completed_lesson_ids`` and the live
    lesson count of the course; only the enrollment service writes it.
    ``version`` increases on every persisted change and guards progress
    writes against lost updates.
    """

    id: UUID
    student_id: UUID
    course_id: UUID
    created_at: datetime
    updated_at: datetime
    completed_lesson_ids: frozenset[UUID] = field(default_factory=frozenset)
    progress: int = 0
    version: int = 1

    @staticmethod
    def new(*, student_id: UUID, course_id: UUID) -> Enrollment:
        now = utcnow()
        return Enrollment(
            id=uuid4(),
            student_id=student_id,
            course_id=course_id,
            created_at=now,
            updated_at=now,
        )


@dataclass(frozen=True, slots=True)
class CompletionChange:
    """Result of an atomic set mutation: the new state and whether it differs."""

    enrollment: Enrollment
    changed: bool
