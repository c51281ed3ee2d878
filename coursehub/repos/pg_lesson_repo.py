"""PostgreSQL implementation of LessonRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.db.tables import LessonRow
from coursehub.models.course import Lesson


class PgLessonRepo:
    """Satisfies the LessonRepo Protocol using PostgreSQL via SQLAlchemy.

    Order uniqueness is the ``uq_lessons_course_position`` constraint; a
    violation surfaces as ValueError, same as the in-memory repo.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, lesson_id: UUID) -> Lesson | None:
        row = await self._session.get(LessonRow, lesson_id)
        if row is None:
            return None
        return _row_to_lesson(row)

    async def list_by_course(self, course_id: UUID) -> list[Lesson]:
        stmt = (
            select(LessonRow)
            .where(LessonRow.course_id == course_id)
            .order_by(LessonRow.order)
        )
        rows = (await self._session.execute(stmt)).scalars()
        return [_row_to_lesson(r) for r in rows]

    async def count_by_course(self, course_id: UUID) -> int:
        stmt = select(func.count(LessonRow.id)).where(LessonRow.course_id == course_id)
        return (await self._session.execute(stmt)).scalar_one()

    async def list_ids_by_course(self, course_id: UUID) -> list[UUID]:
        stmt = select(LessonRow.id).where(LessonRow.course_id == course_id)
        return list((await self._session.execute(stmt)).scalars())

    async def max_order(self, course_id: UUID) -> int:
        stmt = select(func.max(LessonRow.order)).where(LessonRow.course_id == course_id)
        return (await self._session.execute(stmt)).scalar() or 0

    async def add(self, lesson: Lesson) -> None:
        row = LessonRow(
            id=lesson.id,
            course_id=lesson.course_id,
            title=lesson.title,
            content=lesson.content,
            video_url=lesson.video_url,
            order=lesson.order,
            created_at=lesson.created_at,
            updated_at=lesson.updated_at,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError:
            raise ValueError("order already used in this course") from None

    async def update(self, lesson: Lesson) -> None:
        stmt = (
            update(LessonRow)
            .where(LessonRow.id == lesson.id)
            .values(
                title=lesson.title,
                content=lesson.content,
                video_url=lesson.video_url,
                order=lesson.order,
                updated_at=lesson.updated_at,
            )
        )
        try:
            async with self._session.begin_nested():
                result = await self._session.execute(stmt)
        except IntegrityError:
            raise ValueError("order already used in this course") from None
        if result.rowcount == 0:
            raise KeyError("lesson not found")

    async def delete(self, lesson_id: UUID) -> bool:
        result = await self._session.execute(
            delete(LessonRow).where(LessonRow.id == lesson_id)
        )
        return result.rowcount > 0

    async def delete_by_course(self, course_id: UUID) -> list[UUID]:
        stmt = (
            delete(LessonRow)
            .where(LessonRow.course_id == course_id)
            .returning(LessonRow.id)
        )
        return list((await self._session.execute(stmt)).scalars())


def _row_to_lesson(row: LessonRow) -> Lesson:
    return Lesson(
        id=row.id,
        course_id=row.course_id,
        title=row.title,
        order=row.order,
        created_at=row.created_at,
        updated_at=row.updated_at,
        content=row.content,
        video_url=row.video_url,
    )
