from __future__ import annotations

import logging
from uuid import UUID

from coursehub.models.comment import Comment
from coursehub.models.principal import Principal
from coursehub.repos.comment_repo import CommentRepo
from coursehub.repos.lesson_repo import LessonRepo
from coursehub.services import access
from coursehub.services.errors import (
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

TEXT_MAX_LEN = 255


class CommentNotFoundError(NotFoundError):
    def __init__(self) -> None:
        super().__init__("Comment not found")


class CommentLessonNotFoundError(NotFoundError):
    def __init__(self) -> None:
        super().__init__("Lesson not found")


class CommentPermissionError(PermissionDeniedError):
    pass


class CommentValidationError(ValidationError):
    pass


class CommentService:
    def __init__(self, comments: CommentRepo, lessons: LessonRepo) -> None:
        self._comments = comments
        self._lessons = lessons

    async def list_for_lesson(self, lesson_id: UUID) -> list[Comment]:
        if await self._lessons.get_by_id(lesson_id) is None:
            raise CommentLessonNotFoundError()
        return await self._comments.list_by_lesson(lesson_id)

    async def create(self, user_id: UUID, lesson_id: UUID, text: str) -> Comment:
        text = _validated_text(text)
        if await self._lessons.get_by_id(lesson_id) is None:
            logger.warning("Comment rejected: lesson=%s not found", lesson_id)
            raise CommentLessonNotFoundError()

        comment = Comment.new(user_id=user_id, lesson_id=lesson_id, text=text)
        await self._comments.add(comment)
        logger.info("Comment created id=%s lesson=%s", comment.id, lesson_id)
        return comment

    async def update(
        self, principal: Principal, comment_id: UUID, text: str
    ) -> Comment:
        comment = await self._get(comment_id)
        if not access.can_edit(comment.user_id, principal.user_id):
            logger.warning(
                "Comment edit denied: user=%s comment=%s", principal.user_id, comment_id
            )
            raise CommentPermissionError("You can only edit your own comments")

        updated = await self._comments.update_text(comment_id, _validated_text(text))
        if updated is None:
            raise CommentNotFoundError()
        logger.info("Comment updated id=%s", comment_id)
        return updated

    async def delete(self, principal: Principal, comment_id: UUID) -> None:
        comment = await self._get(comment_id)
        if not access.can_manage(principal.role, comment.user_id, principal.user_id):
            logger.warning(
                "Comment delete denied: user=%s comment=%s",
                principal.user_id,
                comment_id,
            )
            raise CommentPermissionError("You can only delete your own comments")

        await self._comments.delete(comment_id)
        logger.info("Comment deleted id=%s by=%s", comment_id, principal.user_id)

    async def _get(self, comment_id: UUID) -> Comment:
        comment = await self._comments.get_by_id(comment_id)
        if comment is None:
            raise CommentNotFoundError()
        return comment


def _validated_text(text: str) -> str:
    text = (text or "").strip()
    if not 1 <= len(text) <= TEXT_MAX_LEN:
        raise CommentValidationError(
            f"text must be between 1 and {TEXT_MAX_LEN} characters"
        )
    return text
