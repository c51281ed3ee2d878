"""PostgreSQL implementation of CourseRepo."""

from __future__ import annotations

from collections import defaultdict
from uuid import UUID

from sqlalchemy import Select, delete, exists, func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.db.tables import CourseFavoriteRow, CourseRow
from coursehub.models.course import Course, CourseLevel, utcnow
from coursehub.repos.course_repo import CourseFilter, parse_sort


class PgCourseRepo:
    """Satisfies the CourseRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _favorites_for(self, course_ids: list[UUID]) -> dict[UUID, set[UUID]]:
        found: dict[UUID, set[UUID]] = defaultdict(set)
        if not course_ids:
            return found
        stmt = select(CourseFavoriteRow.course_id, CourseFavoriteRow.user_id).where(
            CourseFavoriteRow.course_id.in_(course_ids)
        )
        for course_id, user_id in await self._session.execute(stmt):
            found[course_id].add(user_id)
        return found

    async def get_by_id(self, course_id: UUID) -> Course | None:
        row = await self._session.get(CourseRow, course_id)
        if row is None:
            return None
        favorites = await self._favorites_for([course_id])
        return _row_to_course(row, favorites[course_id])

    async def exists(self, course_id: UUID) -> bool:
        stmt = select(exists().where(CourseRow.id == course_id))
        return bool((await self._session.execute(stmt)).scalar())

    async def add(self, course: Course) -> None:
        row = CourseRow(
            id=course.id,
            title=course.title,
            slug=course.slug,
            description=course.description,
            price=course.price,
            image=course.image,
            category=course.category,
            level=course.level.value,
            published=course.published,
            author_id=course.author_id,
            tags=list(course.tags),
            created_at=course.created_at,
            updated_at=course.updated_at,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError:
            raise ValueError("slug already exists") from None

    async def update(self, course: Course) -> None:
        stmt = (
            update(CourseRow)
            .where(CourseRow.id == course.id)
            .values(
                title=course.title,
                description=course.description,
                price=course.price,
                image=course.image,
                category=course.category,
                level=course.level.value,
                published=course.published,
                tags=list(course.tags),
                updated_at=course.updated_at,
            )
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise KeyError("course not found")

    async def delete(self, course_id: UUID) -> bool:
        result = await self._session.execute(
            delete(CourseRow).where(CourseRow.id == course_id)
        )
        return result.rowcount > 0

    async def search(
        self,
        flt: CourseFilter,
        *,
        offset: int,
        limit: int,
        sort_by: str = "-created_at",
    ) -> tuple[list[Course], int]:
        field_name, descending = parse_sort(sort_by)
        column = getattr(CourseRow, field_name)

        stmt = _apply_filter(select(CourseRow), flt)
        count_stmt = _apply_filter(select(func.count(CourseRow.id)), flt)

        total = (await self._session.execute(count_stmt)).scalar_one()
        page_stmt = (
            stmt.order_by(column.desc() if descending else column.asc())
            .offset(offset)
            .limit(limit)
        )
        rows = list((await self._session.execute(page_stmt)).scalars())
        favorites = await self._favorites_for([r.id for r in rows])
        return [_row_to_course(r, favorites[r.id]) for r in rows], total

    async def toggle_favorite(self, course_id: UUID, user_id: UUID) -> Course | None:
        if not await self.exists(course_id):
            return None
        removed = await self._session.execute(
            delete(CourseFavoriteRow).where(
                CourseFavoriteRow.course_id == course_id,
                CourseFavoriteRow.user_id == user_id,
            )
        )
        if removed.rowcount == 0:
            await self._session.execute(
                insert(CourseFavoriteRow)
                .values(course_id=course_id, user_id=user_id)
                .on_conflict_do_nothing()
            )
        await self._session.execute(
            update(CourseRow)
            .where(CourseRow.id == course_id)
            .values(updated_at=utcnow())
        )
        return await self.get_by_id(course_id)


def _apply_filter(stmt: Select, flt: CourseFilter) -> Select:
    if flt.category is not None:
        stmt = stmt.where(CourseRow.category == flt.category)
    if flt.level is not None:
        stmt = stmt.where(CourseRow.level == flt.level.value)
    if flt.price_min is not None:
        stmt = stmt.where(CourseRow.price >= flt.price_min)
    if flt.price_max is not None:
        stmt = stmt.where(CourseRow.price <= flt.price_max)
    if flt.tags:
        stmt = stmt.where(CourseRow.tags.overlap(list(flt.tags)))
    if flt.author_id is not None:
        stmt = stmt.where(CourseRow.author_id == flt.author_id)
    if flt.published is not None:
        stmt = stmt.where(CourseRow.published == flt.published)
    if flt.search:
        stmt = stmt.where(CourseRow.title.icontains(flt.search, autoescape=True))
    if flt.favorites_of is not None:
        stmt = stmt.where(
            exists().where(
                CourseFavoriteRow.course_id == CourseRow.id,
                CourseFavoriteRow.user_id == flt.favorites_of,
            )
        )
    return stmt


def _row_to_course(row: CourseRow, favorites: set[UUID]) -> Course:
    return Course(
        id=row.id,
        title=row.title,
        slug=row.slug,
        price=float(row.price),
        category=row.category,
        author_id=row.author_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
        description=row.description or "",
        image=row.image,
        level=CourseLevel(row.level),
        published=row.published,
        tags=tuple(row.tags) if row.tags else (),
        favorites=frozenset(favorites),
    )
