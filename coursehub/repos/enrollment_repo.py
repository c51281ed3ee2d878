from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from coursehub.models.course import utcnow
from coursehub.models.enrollment import CompletionChange, Enrollment


class EnrollmentRepo(Protocol):
    """Persistence for enrollments.

    Set mutations are atomic primitives: implementations must apply them
    without a read-modify-write window, so two concurrent completions for
    the same enrollment both survive.  ``set_progress`` is a
    compare-and-swap on ``version``; it returns None when the stored
    version no longer matches (or the enrollment is gone).
    """

    async def get(self, student_id: UUID, course_id: UUID) -> Enrollment | None: ...
    async def get_by_id(self, enrollment_id: UUID) -> Enrollment | None: ...
    async def add(self, enrollment: Enrollment) -> None: ...
    async def add_completed_lessons(
        self, enrollment_id: UUID, lesson_ids: Iterable[UUID]
    ) -> CompletionChange | None: ...
    async def remove_completed_lesson(
        self, enrollment_id: UUID, lesson_id: UUID
    ) -> CompletionChange | None: ...
    async def set_progress(
        self, enrollment_id: UUID, progress: int, *, expected_version: int
    ) -> Enrollment | None: ...
    async def count_by_course(self, course_id: UUID) -> int: ...
    async def list_by_student(self, student_id: UUID) -> list[Enrollment]: ...


class InMemoryEnrollmentRepo:
    # Each method runs to completion without awaiting, so under asyncio
    # every call is atomic with respect to other requests.

    def __init__(self) -> None:
        self._by_id: dict[UUID, Enrollment] = {}
        self._by_pair: dict[tuple[UUID, UUID], UUID] = {}

    async def get(self, student_id: UUID, course_id: UUID) -> Enrollment | None:
        enrollment_id = self._by_pair.get((student_id, course_id))
        if enrollment_id is None:
            return None
        return self._by_id[enrollment_id]

    async def get_by_id(self, enrollment_id: UUID) -> Enrollment | None:
        return self._by_id.get(enrollment_id)

    async def add(self, enrollment: Enrollment) -> None:
        key = (enrollment.student_id, enrollment.course_id)
        if key in self._by_pair:
            raise ValueError("enrollment already exists")
        self._by_pair[key] = enrollment.id
        self._by_id[enrollment.id] = enrollment

    def _apply(
        self, enrollment_id: UUID, completed: frozenset[UUID]
    ) -> CompletionChange | None:
        existing = self._by_id.get(enrollment_id)
        if existing is None:
            return None
        if completed == existing.completed_lesson_ids:
            return CompletionChange(enrollment=existing, changed=False)
        updated = replace(
            existing,
            completed_lesson_ids=completed,
            version=existing.version + 1,
            updated_at=utcnow(),
        )
        self._by_id[enrollment_id] = updated
        return CompletionChange(enrollment=updated, changed=True)

    async def add_completed_lessons(
        self, enrollment_id: UUID, lesson_ids: Iterable[UUID]
    ) -> CompletionChange | None:
        existing = self._by_id.get(enrollment_id)
        if existing is None:
            return None
        return self._apply(
            enrollment_id, existing.completed_lesson_ids | set(lesson_ids)
        )

    async def remove_completed_lesson(
        self, enrollment_id: UUID, lesson_id: UUID
    ) -> CompletionChange | None:
        existing = self._by_id.get(enrollment_id)
        if existing is None:
            return None
        return self._apply(
            enrollment_id, existing.completed_lesson_ids - {lesson_id}
        )

    async def set_progress(
        self, enrollment_id: UUID, progress: int, *, expected_version: int
    ) -> Enrollment | None:
        existing = self._by_id.get(enrollment_id)
        if existing is None or existing.version != expected_version:
            return None
        updated = replace(
            existing,
            progress=progress,
            version=existing.version + 1,
            updated_at=utcnow(),
        )
        self._by_id[enrollment_id] = updated
        return updated

    async def count_by_course(self, course_id: UUID) -> int:
        return sum(1 for e in self._by_id.values() if e.course_id == course_id)

    async def list_by_student(self, student_id: UUID) -> list[Enrollment]:
        found = [e for e in self._by_id.values() if e.student_id == student_id]
        return sorted(found, key=lambda e: e.created_at)
