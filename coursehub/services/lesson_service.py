from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import replace
from typing import Any
from uuid import UUID

from coursehub.models.course import Course, Lesson, utcnow
from coursehub.models.principal import Principal
from coursehub.repos.comment_repo import CommentRepo
from coursehub.repos.course_repo import CourseRepo
from coursehub.repos.lesson_repo import LessonRepo
from coursehub.services import access
from coursehub.services.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

TITLE_MAX_LEN = 100
VIDEO_URL_RE = re.compile(r'^https?://[^ "]+$')
UPDATABLE_FIELDS = frozenset({"title", "content", "video_url", "order"})


class LessonNotFoundError(NotFoundError):
    def __init__(self) -> None:
        super().__init__("Lesson not found")


class LessonCourseNotFoundError(NotFoundError):
    def __init__(self) -> None:
        super().__init__("Course not found")


class LessonOrderConflictError(ConflictError):
    def __init__(self, order: int) -> None:
        super().__init__(f"order {order} is already used in this course")


class LessonPermissionError(PermissionDeniedError):
    pass


class LessonValidationError(ValidationError):
    pass


class LessonService:
    def __init__(
        self, lessons: LessonRepo, courses: CourseRepo, comments: CommentRepo
    ) -> None:
        self._lessons = lessons
        self._courses = courses
        self._comments = comments

    async def get(self, lesson_id: UUID) -> Lesson:
        lesson = await self._lessons.get_by_id(lesson_id)
        if lesson is None:
            raise LessonNotFoundError()
        return lesson

    async def list_by_course(self, course_id: UUID) -> list[Lesson]:
        if not await self._courses.exists(course_id):
            raise LessonCourseNotFoundError()
        return await self._lessons.list_by_course(course_id)

    async def create(
        self,
        principal: Principal,
        course_id: UUID,
        *,
        title: str,
        content: str | None = None,
        video_url: str | None = None,
        order: int | None = None,
    ) -> Lesson:
        await self._authorized_course(principal, course_id)
        title = _validated_title(title)
        _validate_video_url(video_url)

        if order is None:
            order = await self._lessons.max_order(course_id) + 1
        elif order < 1:
            raise LessonValidationError("order must be >= 1")

        lesson = Lesson.new(
            course_id=course_id,
            title=title,
            order=order,
            content=content,
            video_url=video_url,
        )
        try:
            await self._lessons.add(lesson)
        except ValueError:
            logger.warning("Lesson order %d taken in course=%s", order, course_id)
            raise LessonOrderConflictError(order) from None

        logger.info(
            "Lesson created id=%s course=%s order=%d",
            lesson.id,
            course_id,
            order,
            extra={"course_id": str(course_id)},
        )
        return lesson

    async def update(
        self, principal: Principal, lesson_id: UUID, changes: Mapping[str, Any]
    ) -> Lesson:
        lesson = await self.get(lesson_id)
        await self._authorized_course(principal, lesson.course_id)

        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise LessonValidationError(f"cannot update fields: {sorted(unknown)}")
        updates = dict(changes)
        if "title" in updates:
            updates["title"] = _validated_title(updates["title"])
        if "video_url" in updates:
            _validate_video_url(updates["video_url"])
        if "order" in updates and (updates["order"] is None or updates["order"] < 1):
            raise LessonValidationError("order must be >= 1")

        updated = replace(lesson, **updates, updated_at=utcnow())
        try:
            await self._lessons.update(updated)
        except ValueError:
            raise LessonOrderConflictError(updated.order) from None
        except KeyError:
            raise LessonNotFoundError() from None

        logger.info(
            "Lesson updated id=%s fields=%s",
            lesson_id,
            sorted(updates),
            extra={"course_id": str(lesson.course_id)},
        )
        return updated

    async def delete(self, principal: Principal, lesson_id: UUID) -> None:
        lesson = await self.get(lesson_id)
        await self._authorized_course(principal, lesson.course_id)

        removed_comments = await self._comments.delete_by_lessons([lesson_id])
        await self._lessons.delete(lesson_id)
        logger.info(
            "Lesson deleted id=%s course=%s comments=%d",
            lesson_id,
            lesson.course_id,
            removed_comments,
            extra={"course_id": str(lesson.course_id)},
        )

    async def _authorized_course(self, principal: Principal, course_id: UUID) -> Course:
        course = await self._courses.get_by_id(course_id)
        if course is None:
            raise LessonCourseNotFoundError()
        if not access.can_manage_course_content(
            principal.role, course.author_id, principal.user_id
        ):
            logger.warning(
                "Lesson change denied: user=%s role=%s course=%s",
                principal.user_id,
                principal.role,
                course_id,
            )
            raise LessonPermissionError(
                "Only the course author or an admin can manage its lessons"
            )
        return course


def _validated_title(title: str) -> str:
    title = (title or "").strip()
    if not 1 <= len(title) <= TITLE_MAX_LEN:
        raise LessonValidationError(
            f"title must be between 1 and {TITLE_MAX_LEN} characters"
        )
    return title


def _validate_video_url(video_url: str | None) -> None:
    if video_url is not None and not VIDEO_URL_RE.match(video_url):
        raise LessonValidationError("video_url must be an http(s) URL")
