from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from coursehub.models.comment import Comment
from coursehub.models.course import utcnow


class CommentRepo(Protocol):
    async def get_by_id(self, comment_id: UUID) -> Comment | None: ...
    async def list_by_lesson(self, lesson_id: UUID) -> list[Comment]: ...
    async def add(self, comment: Comment) -> None: ...
    async def update_text(self, comment_id: UUID, text: str) -> Comment | None: ...
    async def delete(self, comment_id: UUID) -> bool: ...
    async def delete_by_lessons(self, lesson_ids: Iterable[UUID]) -> int: ...


class InMemoryCommentRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Comment] = {}

    async def get_by_id(self, comment_id: UUID) -> Comment | None:
        return self._by_id.get(comment_id)

    async def list_by_lesson(self, lesson_id: UUID) -> list[Comment]:
        comments = [c for c in self._by_id.values() if c.lesson_id == lesson_id]
        return sorted(comments, key=lambda c: c.created_at, reverse=True)

    async def add(self, comment: Comment) -> None:
        self._by_id[comment.id] = comment

    async def update_text(self, comment_id: UUID, text: str) -> Comment | None:
        existing = self._by_id.get(comment_id)
        if existing is None:
            return None
        updated = replace(existing, text=text, updated_at=utcnow())
        self._by_id[comment_id] = updated
        return updated

    async def delete(self, comment_id: UUID) -> bool:
        return self._by_id.pop(comment_id, None) is not None

    async def delete_by_lessons(self, lesson_ids: Iterable[UUID]) -> int:
        targets = set(lesson_ids)
        doomed = [c.id for c in self._by_id.values() if c.lesson_id in targets]
        for comment_id in doomed:
            del self._by_id[comment_id]
        return len(doomed)
