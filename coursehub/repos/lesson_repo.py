from __future__ import annotations

from typing import Protocol
from uuid import UUID

from coursehub.models.course import Lesson


class LessonRepo(Protocol):
    async def get_by_id(self, lesson_id: UUID) -> Lesson | None: ...
    async def list_by_course(self, course_id: UUID) -> list[Lesson]: ...
    async def count_by_course(self, course_id: UUID) -> int: ...
    async def list_ids_by_course(self, course_id: UUID) -> list[UUID]: ...
    async def max_order(self, course_id: UUID) -> int: ...
    async def add(self, lesson: Lesson) -> None: ...
    async def update(self, lesson: Lesson) -> None: ...
    async def delete(self, lesson_id: UUID) -> bool: ...
    async def delete_by_course(self, course_id: UUID) -> list[UUID]: ...


class InMemoryLessonRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Lesson] = {}

    def _order_taken(self, lesson: Lesson) -> bool:
        return any(
            other.course_id == lesson.course_id
            and other.order == lesson.order
            and other.id != lesson.id
            for other in self._by_id.values()
        )

    async def get_by_id(self, lesson_id: UUID) -> Lesson | None:
        return self._by_id.get(lesson_id)

    async def list_by_course(self, course_id: UUID) -> list[Lesson]:
        lessons = [le for le in self._by_id.values() if le.course_id == course_id]
        return sorted(lessons, key=lambda le: le.order)

    async def count_by_course(self, course_id: UUID) -> int:
        return sum(1 for le in self._by_id.values() if le.course_id == course_id)

    async def list_ids_by_course(self, course_id: UUID) -> list[UUID]:
        return [le.id for le in self._by_id.values() if le.course_id == course_id]

    async def max_order(self, course_id: UUID) -> int:
        return max(
            (le.order for le in self._by_id.values() if le.course_id == course_id),
            default=0,
        )

    async def add(self, lesson: Lesson) -> None:
        if self._order_taken(lesson):
            raise ValueError("order already used in this course")
        self._by_id[lesson.id] = lesson

    async def update(self, lesson: Lesson) -> None:
        if lesson.id not in self._by_id:
            raise KeyError("lesson not found")
        if self._order_taken(lesson):
            raise ValueError("order already used in this course")
        self._by_id[lesson.id] = lesson

    async def delete(self, lesson_id: UUID) -> bool:
        return self._by_id.pop(lesson_id, None) is not None

    async def delete_by_course(self, course_id: UUID) -> list[UUID]:
        ids = [le.id for le in self._by_id.values() if le.course_id == course_id]
        for lesson_id in ids:
            del self._by_id[lesson_id]
        return ids
