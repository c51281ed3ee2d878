"""PostgreSQL implementation of EnrollmentRepo.

Completed lessons live in ``enrollment_lessons`` with a composite
primary key, so adding a lesson is ``INSERT ... ON CONFLICT DO NOTHING``
and removing one is a plain ``DELETE``.  Neither reads the current set
first, which is what keeps concurrent completions from overwriting each
other.  Every effective change bumps ``enrollments.version``.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.db.tables import EnrollmentLessonRow, EnrollmentRow
from coursehub.models.course import utcnow
from coursehub.models.enrollment import CompletionChange, Enrollment


class PgEnrollmentRepo:
    """Satisfies the EnrollmentRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _completed_for(self, ids: list[UUID]) -> dict[UUID, set[UUID]]:
        found: dict[UUID, set[UUID]] = defaultdict(set)
        if not ids:
            return found
        stmt = select(
            EnrollmentLessonRow.enrollment_id, EnrollmentLessonRow.lesson_id
        ).where(EnrollmentLessonRow.enrollment_id.in_(ids))
        for enrollment_id, lesson_id in await self._session.execute(stmt):
            found[enrollment_id].add(lesson_id)
        return found

    async def _load(self, row: EnrollmentRow | None) -> Enrollment | None:
        if row is None:
            return None
        completed = await self._completed_for([row.id])
        return _row_to_enrollment(row, completed[row.id])

    async def _bump_version(self, enrollment_id: UUID) -> None:
        await self._session.execute(
            update(EnrollmentRow)
            .where(EnrollmentRow.id == enrollment_id)
            .values(version=EnrollmentRow.version + 1, updated_at=utcnow())
        )

    async def get(self, student_id: UUID, course_id: UUID) -> Enrollment | None:
        stmt = (
            select(EnrollmentRow)
            .where(
                EnrollmentRow.student_id == student_id,
                EnrollmentRow.course_id == course_id,
            )
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return await self._load(row)

    async def get_by_id(self, enrollment_id: UUID) -> Enrollment | None:
        stmt = (
            select(EnrollmentRow)
            .where(EnrollmentRow.id == enrollment_id)
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return await self._load(row)

    async def add(self, enrollment: Enrollment) -> None:
        row = EnrollmentRow(
            id=enrollment.id,
            student_id=enrollment.student_id,
            course_id=enrollment.course_id,
            progress=enrollment.progress,
            version=enrollment.version,
            created_at=enrollment.created_at,
            updated_at=enrollment.updated_at,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError:
            raise ValueError("enrollment already exists") from None

    async def add_completed_lessons(
        self, enrollment_id: UUID, lesson_ids: Iterable[UUID]
    ) -> CompletionChange | None:
        if await self.get_by_id(enrollment_id) is None:
            return None
        values = [
            {"enrollment_id": enrollment_id, "lesson_id": lesson_id}
            for lesson_id in lesson_ids
        ]
        changed = False
        if values:
            stmt = (
                insert(EnrollmentLessonRow)
                .values(values)
                .on_conflict_do_nothing()
                .returning(EnrollmentLessonRow.lesson_id)
            )
            inserted = list((await self._session.execute(stmt)).scalars())
            changed = bool(inserted)
        if changed:
            await self._bump_version(enrollment_id)
        enrollment = await self.get_by_id(enrollment_id)
        if enrollment is None:
            return None
        return CompletionChange(enrollment=enrollment, changed=changed)

    async def remove_completed_lesson(
        self, enrollment_id: UUID, lesson_id: UUID
    ) -> CompletionChange | None:
        if await self.get_by_id(enrollment_id) is None:
            return None
        result = await self._session.execute(
            delete(EnrollmentLessonRow).where(
                EnrollmentLessonRow.enrollment_id == enrollment_id,
                EnrollmentLessonRow.lesson_id == lesson_id,
            )
        )
        changed = result.rowcount > 0
        if changed:
            await self._bump_version(enrollment_id)
        enrollment = await self.get_by_id(enrollment_id)
        if enrollment is None:
            return None
        return CompletionChange(enrollment=enrollment, changed=changed)

    async def set_progress(
        self, enrollment_id: UUID, progress: int, *, expected_version: int
    ) -> Enrollment | None:
        stmt = (
            update(EnrollmentRow)
            .where(
                EnrollmentRow.id == enrollment_id,
                EnrollmentRow.version == expected_version,
            )
            .values(
                progress=progress,
                version=EnrollmentRow.version + 1,
                updated_at=utcnow(),
            )
            .returning(EnrollmentRow.id)
        )
        if (await self._session.execute(stmt)).scalar_one_or_none() is None:
            return None
        return await self.get_by_id(enrollment_id)

    async def count_by_course(self, course_id: UUID) -> int:
        stmt = select(func.count(EnrollmentRow.id)).where(
            EnrollmentRow.course_id == course_id
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def list_by_student(self, student_id: UUID) -> list[Enrollment]:
        stmt = (
            select(EnrollmentRow)
            .where(EnrollmentRow.student_id == student_id)
            .order_by(EnrollmentRow.created_at)
        )
        rows = list((await self._session.execute(stmt)).scalars())
        completed = await self._completed_for([r.id for r in rows])
        return [_row_to_enrollment(r, completed[r.id]) for r in rows]


def _row_to_enrollment(row: EnrollmentRow, completed: set[UUID]) -> Enrollment:
    return Enrollment(
        id=row.id,
        student_id=row.student_id,
        course_id=row.course_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
        completed_lesson_ids=frozenset(completed),
        progress=row.progress,
        version=row.version,
    )
