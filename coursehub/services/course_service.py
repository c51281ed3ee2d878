from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import replace
from typing import Any
from uuid import UUID

from coursehub.models.course import Course, CourseLevel, slugify, utcnow
from coursehub.models.principal import Principal
from coursehub.repos.comment_repo import CommentRepo
from coursehub.repos.course_repo import CourseFilter, CourseRepo, parse_sort
from coursehub.repos.lesson_repo import LessonRepo
from coursehub.services import access
from coursehub.services.errors import (
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100
TITLE_MAX_LEN = 200

# Fields a PUT may touch.  slug, author and timestamps are server-owned.
UPDATABLE_FIELDS = frozenset(
    {"title", "description", "price", "image", "category", "level", "published", "tags"}
)


class CourseNotFoundError(NotFoundError):
    def __init__(self) -> None:
        super().__init__("Course not found")


class CoursePermissionError(PermissionDeniedError):
    pass


class CourseValidationError(ValidationError):
    pass


class CourseService:
    def __init__(
        self, courses: CourseRepo, lessons: LessonRepo, comments: CommentRepo
    ) -> None:
        self._courses = courses
        self._lessons = lessons
        self._comments = comments

    async def exists(self, course_id: UUID) -> bool:
        return await self._courses.exists(course_id)

    async def get(self, course_id: UUID) -> Course:
        course = await self._courses.get_by_id(course_id)
        if course is None:
            raise CourseNotFoundError()
        return course

    async def list_courses(
        self,
        flt: CourseFilter,
        *,
        page: int = DEFAULT_PAGE,
        limit: int = DEFAULT_LIMIT,
        sort_by: str = "-created_at",
    ) -> tuple[list[Course], int]:
        if page < 1:
            raise CourseValidationError("page must be >= 1")
        if not 1 <= limit <= MAX_LIMIT:
            raise CourseValidationError(f"limit must be between 1 and {MAX_LIMIT}")
        try:
            parse_sort(sort_by)
        except ValueError as exc:
            raise CourseValidationError(str(exc)) from None
        if (
            flt.price_min is not None
            and flt.price_max is not None
            and flt.price_min > flt.price_max
        ):
            raise CourseValidationError("price_min must not exceed price_max")

        return await self._courses.search(
            flt, offset=(page - 1) * limit, limit=limit, sort_by=sort_by
        )

    async def list_by_author(self, author_id: UUID) -> list[Course]:
        items, _ = await self._courses.search(
            CourseFilter(author_id=author_id), offset=0, limit=MAX_LIMIT
        )
        return items

    async def list_favorites(self, user_id: UUID) -> list[Course]:
        items, _ = await self._courses.search(
            CourseFilter(favorites_of=user_id), offset=0, limit=MAX_LIMIT
        )
        return items

    async def create(
        self,
        principal: Principal,
        *,
        title: str,
        price: float,
        category: str,
        description: str = "",
        image: str | None = None,
        level: CourseLevel = CourseLevel.BEGINNER,
        published: bool = False,
        tags: tuple[str, ...] = (),
    ) -> Course:
        if not access.can_author_courses(principal.role):
            logger.warning(
                "Course create denied: user=%s role=%s",
                principal.user_id,
                principal.role,
            )
            raise CoursePermissionError("Only teachers and admins can create courses")
        _validate_price(price)

        course = Course.new(
            title=_validated_title(title),
            price=price,
            category=category.strip(),
            author_id=principal.user_id,
            description=description,
            image=image,
            level=level,
            published=published,
            tags=_normalize_tags(tags),
        )
        try:
            await self._courses.add(course)
        except ValueError:
            # Slug suffix collision; one retry with a fresh suffix.
            course = replace(course, slug=slugify(course.title))
            await self._courses.add(course)

        logger.info(
            "Course created id=%s author=%s slug=%s",
            course.id,
            principal.user_id,
            course.slug,
            extra={"course_id": str(course.id)},
        )
        return course

    async def update(
        self, principal: Principal, course_id: UUID, changes: Mapping[str, Any]
    ) -> Course:
        course = await self._owned(principal, course_id)

        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise CourseValidationError(f"cannot update fields: {sorted(unknown)}")
        updates = dict(changes)
        if "price" in updates:
            _validate_price(updates["price"])
        if "tags" in updates:
            updates["tags"] = _normalize_tags(updates["tags"] or ())
        if "title" in updates:
            updates["title"] = _validated_title(updates["title"])

        updated = replace(course, **updates, updated_at=utcnow())
        await self._courses.update(updated)
        logger.info(
            "Course updated id=%s by=%s fields=%s",
            course_id,
            principal.user_id,
            sorted(updates),
            extra={"course_id": str(course_id)},
        )
        return updated

    async def delete(self, principal: Principal, course_id: UUID) -> None:
        await self._owned(principal, course_id)

        # Children first: comments reference lessons, lessons reference the course.
        lesson_ids = await self._lessons.list_ids_by_course(course_id)
        removed_comments = await self._comments.delete_by_lessons(lesson_ids)
        await self._lessons.delete_by_course(course_id)
        await self._courses.delete(course_id)
        logger.info(
            "Course deleted id=%s by=%s lessons=%d comments=%d",
            course_id,
            principal.user_id,
            len(lesson_ids),
            removed_comments,
            extra={"course_id": str(course_id)},
        )

    async def toggle_favorite(self, user_id: UUID, course_id: UUID) -> tuple[bool, int]:
        course = await self._courses.toggle_favorite(course_id, user_id)
        if course is None:
            raise CourseNotFoundError()
        is_favorite = user_id in course.favorites
        logger.info(
            "Favorite %s user=%s course=%s",
            "added" if is_favorite else "removed",
            user_id,
            course_id,
        )
        return is_favorite, len(course.favorites)

    async def _owned(self, principal: Principal, course_id: UUID) -> Course:
        course = await self.get(course_id)
        if not access.can_manage(principal.role, course.author_id, principal.user_id):
            logger.warning(
                "Course change denied: user=%s course=%s author=%s",
                principal.user_id,
                course_id,
                course.author_id,
            )
            raise CoursePermissionError(
                "Only the course author or an admin can do this"
            )
        return course


def _validated_title(title: str | None) -> str:
    title = (title or "").strip()
    if not 1 <= len(title) <= TITLE_MAX_LEN:
        raise CourseValidationError(
            f"title must be between 1 and {TITLE_MAX_LEN} characters"
        )
    return title


def _validate_price(price: float) -> None:
    if price < 0:
        raise CourseValidationError("price must be >= 0")


def _normalize_tags(tags: tuple[str, ...] | list[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for tag in tags:
        cleaned = tag.strip().lower()
        if cleaned:
            seen[cleaned] = None
    return tuple(seen)
