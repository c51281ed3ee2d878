"""PostgreSQL implementation of CommentRepo."""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.db.tables import CommentRow
from coursehub.models.comment import Comment
from coursehub.models.course import utcnow


class PgCommentRepo:
    """Satisfies the CommentRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, comment_id: UUID) -> Comment | None:
        row = await self._session.get(CommentRow, comment_id)
        if row is None:
            return None
        return _row_to_comment(row)

    async def list_by_lesson(self, lesson_id: UUID) -> list[Comment]:
        stmt = (
            select(CommentRow)
            .where(CommentRow.lesson_id == lesson_id)
            .order_by(CommentRow.created_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars()
        return [_row_to_comment(r) for r in rows]

    async def add(self, comment: Comment) -> None:
        self._session.add(
            CommentRow(
                id=comment.id,
                user_id=comment.user_id,
                lesson_id=comment.lesson_id,
                text=comment.text,
                created_at=comment.created_at,
                updated_at=comment.updated_at,
            )
        )
        await self._session.flush()

    async def update_text(self, comment_id: UUID, text: str) -> Comment | None:
        stmt = (
            update(CommentRow)
            .where(CommentRow.id == comment_id)
            .values(text=text, updated_at=utcnow())
            .returning(CommentRow)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_comment(row)

    async def delete(self, comment_id: UUID) -> bool:
        result = await self._session.execute(
            delete(CommentRow).where(CommentRow.id == comment_id)
        )
        return result.rowcount > 0

    async def delete_by_lessons(self, lesson_ids: Iterable[UUID]) -> int:
        ids = list(lesson_ids)
        if not ids:
            return 0
        result = await self._session.execute(
            delete(CommentRow).where(CommentRow.lesson_id.in_(ids))
        )
        return result.rowcount


def _row_to_comment(row: CommentRow) -> Comment:
    return Comment(
        id=row.id,
        user_id=row.user_id,
        lesson_id=row.lesson_id,
        text=row.text,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
