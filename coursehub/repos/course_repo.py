from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Protocol
from uuid import UUID

from coursehub.models.course import Course, CourseLevel, utcnow

SORT_FIELDS = ("created_at", "price", "title")


@dataclass(frozen=True, slots=True)
class CourseFilter:
    category: str | None = None
    level: CourseLevel | None = None
    price_min: float | None = None
    price_max: float | None = None
    tags: tuple[str, ...] = ()
    author_id: UUID | None = None
    published: bool | None = None
    search: str | None = None
    favorites_of: UUID | None = None

    def matches(self, course: Course) -> bool:
        if self.category is not None and course.category != self.category:
            return False
        if self.level is not None and course.level != self.level:
            return False
        if self.price_min is not None and course.price < self.price_min:
            return False
        if self.price_max is not None and course.price > self.price_max:
            return False
        if self.tags and not set(self.tags) & set(course.tags):
            return False
        if self.author_id is not None and course.author_id != self.author_id:
            return False
        if self.published is not None and course.published != self.published:
            return False
        if self.search and self.search.lower() not in course.title.lower():
            return False
        if self.favorites_of is not None and self.favorites_of not in course.favorites:
            return False
        return True


def parse_sort(sort_by: str) -> tuple[str, bool]:
    """Split ``-price`` into ``("price", True)``.

    Raises ValueError on unknown fields.
    """
    descending = sort_by.startswith("-")
    field_name = sort_by.lstrip("-")
    if field_name not in SORT_FIELDS:
        raise ValueError(f"cannot sort by {field_name!r}")
    return field_name, descending


class CourseRepo(Protocol):
    async def get_by_id(self, course_id: UUID) -> Course | None: ...
    async def exists(self, course_id: UUID) -> bool: ...
    async def add(self, course: Course) -> None: ...
    async def update(self, course: Course) -> None: ...
    async def delete(self, course_id: UUID) -> bool: ...
    async def search(
        self,
        flt: CourseFilter,
        *,
        offset: int,
        limit: int,
        sort_by: str = "-created_at",
    ) -> tuple[list[Course], int]: ...
    async def toggle_favorite(
        self, course_id: UUID, user_id: UUID
    ) -> Course | None: ...


class InMemoryCourseRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Course] = {}

    async def get_by_id(self, course_id: UUID) -> Course | None:
        return self._by_id.get(course_id)

    async def exists(self, course_id: UUID) -> bool:
        return course_id in self._by_id

    async def add(self, course: Course) -> None:
        if any(c.slug == course.slug for c in self._by_id.values()):
            raise ValueError("slug already exists")
        self._by_id[course.id] = course

    async def update(self, course: Course) -> None:
        if course.id not in self._by_id:
            raise KeyError("course not found")
        self._by_id[course.id] = course

    async def delete(self, course_id: UUID) -> bool:
        return self._by_id.pop(course_id, None) is not None

    async def search(
        self,
        flt: CourseFilter,
        *,
        offset: int,
        limit: int,
        sort_by: str = "-created_at",
    ) -> tuple[list[Course], int]:
        field_name, descending = parse_sort(sort_by)
        matched = [c for c in self._by_id.values() if flt.matches(c)]
        matched.sort(key=lambda c: getattr(c, field_name), reverse=descending)
        return matched[offset : offset + limit], len(matched)

    async def toggle_favorite(self, course_id: UUID, user_id: UUID) -> Course | None:
        course = self._by_id.get(course_id)
        if course is None:
            return None
        favorites = course.favorites ^ {user_id}
        updated = replace(course, favorites=favorites, updated_at=utcnow())
        self._by_id[course_id] = updated
        return updated
