from __future__ import annotations

import asyncio
from uuid import UUID, uuid4

import pytest
from prometheus_client import REGISTRY

from coursehub.models.course import Course, Lesson
from coursehub.models.enrollment import Enrollment
from coursehub.repos.course_repo import InMemoryCourseRepo
from coursehub.repos.enrollment_repo import InMemoryEnrollmentRepo
from coursehub.repos.lesson_repo import InMemoryLessonRepo
from coursehub.services.enrollment_service import (
    AlreadyEnrolledError,
    CourseNotFoundError,
    EnrollmentNotFoundError,
    EnrollmentService,
    LessonNotFoundError,
    ProgressConflictError,
    compute_progress,
)

STUDENT = uuid4()


class _RacingEnrollmentRepo(InMemoryEnrollmentRepo):
    """Lets a concurrent completion land just before each progress write."""

    def __init__(self) -> None:
        super().__init__()
        self.interlopers: list[UUID] = []
        self.set_progress_calls = 0

    async def set_progress(self, enrollment_id, progress, *, expected_version):
        self.set_progress_calls += 1
        if self.interlopers:
            await self.add_completed_lessons(enrollment_id, [self.interlopers.pop(0)])
        return await super().set_progress(
            enrollment_id, progress, expected_version=expected_version
        )


class _StaleEnrollmentRepo(InMemoryEnrollmentRepo):
    """Rejects every progress write while ``stale`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.stale = True
        self.set_progress_calls = 0

    async def set_progress(self, enrollment_id, progress, *, expected_version):
        self.set_progress_calls += 1
        if self.stale:
            return None
        return await super().set_progress(
            enrollment_id, progress, expected_version=expected_version
        )


class _Fixture:
    def __init__(
        self,
        enrollments: InMemoryEnrollmentRepo | None = None,
        **service_kwargs,
    ) -> None:
        self.courses = InMemoryCourseRepo()
        self.lessons = InMemoryLessonRepo()
        self.enrollments = enrollments or InMemoryEnrollmentRepo()
        self.service = EnrollmentService(
            self.enrollments, self.courses, self.lessons, **service_kwargs
        )

    async def course_with_lessons(self, n: int) -> tuple[UUID, list[UUID]]:
        course = Course.new(
            title="Course", price=0, category="misc", author_id=uuid4()
        )
        await self.courses.add(course)
        ids = []
        for order in range(1, n + 1):
            ids.append(await self.add_lesson(course.id, order))
        return course.id, ids

    async def add_lesson(self, course_id: UUID, order: int) -> UUID:
        lesson = Lesson.new(course_id=course_id, title=f"L{order}", order=order)
        await self.lessons.add(lesson)
        return lesson.id


def _conflicts() -> float:
    return REGISTRY.get_sample_value("progress_write_conflicts_total") or 0.0


# ---- compute_progress ----


@pytest.mark.parametrize(
    "completed,total,expected",
    [
        (0, 0, 0),
        (3, 0, 0),
        (0, 4, 0),
        (2, 4, 50),
        (1, 3, 33),
        (2, 3, 67),
        (1, 8, 13),  # 12.5 rounds half up
        (1, 200, 1),  # 0.5 rounds half up
        (4, 4, 100),
        (5, 4, 100),  # deleted lessons still in the set
    ],
)
def test_compute_progress(completed: int, total: int, expected: int) -> None:
    assert compute_progress(completed, total) == expected


# ---- enroll ----


def test_enroll_unknown_course() -> None:
    fx = _Fixture()
    with pytest.raises(CourseNotFoundError):
        asyncio.run(fx.service.enroll(STUDENT, uuid4()))


def test_enroll_twice() -> None:
    async def scenario() -> None:
        fx = _Fixture()
        course_id, _ = await fx.course_with_lessons(1)
        first = await fx.service.enroll(STUDENT, course_id)
        with pytest.raises(AlreadyEnrolledError):
            await fx.service.enroll(STUDENT, course_id)
        assert await fx.enrollments.get(STUDENT, course_id) == first

    asyncio.run(scenario())


def test_enroll_race_lost_to_unique_constraint() -> None:
    class _LateDuplicateRepo(InMemoryEnrollmentRepo):
        async def get(self, student_id, course_id):
            return None  # the other request has not committed yet

    async def scenario() -> None:
        fx = _Fixture(enrollments=_LateDuplicateRepo())
        course_id, _ = await fx.course_with_lessons(1)
        await fx.service.enroll(STUDENT, course_id)
        with pytest.raises(AlreadyEnrolledError):
            await fx.service.enroll(STUDENT, course_id)

    asyncio.run(scenario())


# ---- progress writes and the version check ----


def test_complete_lesson_bumps_version_and_progress() -> None:
    async def scenario() -> None:
        fx = _Fixture()
        course_id, lessons = await fx.course_with_lessons(2)
        enrolled = await fx.service.enroll(STUDENT, course_id)

        after = await fx.service.complete_lesson(STUDENT, course_id, lessons[0])

        assert after.progress == 50
        # One bump for the set change, one for the progress write.
        assert after.version == enrolled.version + 2

    asyncio.run(scenario())


def test_repeated_completion_writes_nothing() -> None:
    async def scenario() -> None:
        fx = _Fixture()
        course_id, lessons = await fx.course_with_lessons(2)
        await fx.service.enroll(STUDENT, course_id)
        once = await fx.service.complete_lesson(STUDENT, course_id, lessons[0])

        twice = await fx.service.complete_lesson(STUDENT, course_id, lessons[0])

        assert twice == once

    asyncio.run(scenario())


def test_concurrent_completion_is_not_lost() -> None:
    async def scenario() -> None:
        repo = _RacingEnrollmentRepo()
        fx = _Fixture(enrollments=repo)
        course_id, lessons = await fx.course_with_lessons(4)
        await fx.service.enroll(STUDENT, course_id)
        repo.interlopers.append(lessons[1])
        conflicts_before = _conflicts()

        result = await fx.service.complete_lesson(STUDENT, course_id, lessons[0])

        assert result.completed_lesson_ids == {lessons[0], lessons[1]}
        assert result.progress == 50
        assert repo.set_progress_calls == 2
        assert _conflicts() - conflicts_before == 1

    asyncio.run(scenario())


def test_progress_write_gives_up_after_max_retries() -> None:
    async def scenario() -> None:
        repo = _StaleEnrollmentRepo()
        fx = _Fixture(enrollments=repo, max_retries=3)
        course_id, lessons = await fx.course_with_lessons(2)
        await fx.service.enroll(STUDENT, course_id)

        with pytest.raises(ProgressConflictError):
            await fx.service.complete_lesson(STUDENT, course_id, lessons[0])
        assert repo.set_progress_calls == 3

        # Nothing of the rejected completion is left behind.
        stored = await repo.get(STUDENT, course_id)
        assert stored.completed_lesson_ids == frozenset()
        assert stored.progress == 0

    asyncio.run(scenario())


def test_rejected_undo_restores_the_lesson() -> None:
    async def scenario() -> None:
        repo = _StaleEnrollmentRepo()
        fx = _Fixture(enrollments=repo, max_retries=2)
        course_id, lessons = await fx.course_with_lessons(2)
        await fx.service.enroll(STUDENT, course_id)
        repo.stale = False
        await fx.service.complete_lesson(STUDENT, course_id, lessons[0])
        repo.stale = True

        with pytest.raises(ProgressConflictError):
            await fx.service.undo_complete_lesson(STUDENT, course_id, lessons[0])

        stored = await repo.get(STUDENT, course_id)
        assert stored.completed_lesson_ids == {lessons[0]}
        assert stored.progress == 50

    asyncio.run(scenario())


def test_rejected_course_completion_keeps_earlier_lessons() -> None:
    async def scenario() -> None:
        repo = _StaleEnrollmentRepo()
        fx = _Fixture(enrollments=repo, max_retries=2)
        course_id, lessons = await fx.course_with_lessons(3)
        await fx.service.enroll(STUDENT, course_id)
        repo.stale = False
        await fx.service.complete_lesson(STUDENT, course_id, lessons[0])
        repo.stale = True

        with pytest.raises(ProgressConflictError):
            await fx.service.complete_course(STUDENT, course_id)

        stored = await repo.get(STUDENT, course_id)
        assert stored.completed_lesson_ids == {lessons[0]}
        assert stored.progress == 33

    asyncio.run(scenario())


def test_max_retries_must_be_positive() -> None:
    with pytest.raises(ValueError):
        _Fixture(max_retries=0)


def test_get_progress_heals_after_lesson_added() -> None:
    async def scenario() -> None:
        fx = _Fixture()
        course_id, lessons = await fx.course_with_lessons(2)
        await fx.service.enroll(STUDENT, course_id)
        await fx.service.complete_course(STUDENT, course_id)
        await fx.add_lesson(course_id, 3)

        assert await fx.service.get_progress(STUDENT, course_id) == 67
        stored = await fx.enrollments.get(STUDENT, course_id)
        assert stored.progress == 67

    asyncio.run(scenario())


def test_get_progress_without_change_does_not_write() -> None:
    async def scenario() -> None:
        repo = _RacingEnrollmentRepo()
        fx = _Fixture(enrollments=repo)
        course_id, _ = await fx.course_with_lessons(0)
        await fx.service.enroll(STUDENT, course_id)

        assert await fx.service.get_progress(STUDENT, course_id) == 0
        assert repo.set_progress_calls == 0

    asyncio.run(scenario())


def test_undo_recomputes_even_when_set_unchanged() -> None:
    async def scenario() -> None:
        fx = _Fixture()
        course_id, lessons = await fx.course_with_lessons(2)
        await fx.service.enroll(STUDENT, course_id)
        await fx.service.complete_course(STUDENT, course_id)
        await fx.add_lesson(course_id, 3)

        # Nothing to remove, but the stale 100 is corrected.
        result = await fx.service.undo_complete_lesson(STUDENT, course_id, uuid4())

        assert result.progress == 67

    asyncio.run(scenario())


def test_complete_course_unions_every_lesson() -> None:
    async def scenario() -> None:
        fx = _Fixture()
        course_id, lessons = await fx.course_with_lessons(3)
        await fx.service.enroll(STUDENT, course_id)
        stray = uuid4()
        await fx.service.complete_lesson(STUDENT, course_id, stray)

        result = await fx.service.complete_course(STUDENT, course_id)

        assert result.completed_lesson_ids == {stray, *lessons}
        assert result.progress == 100

    asyncio.run(scenario())


# ---- lesson membership ----


def test_membership_not_enforced_by_default() -> None:
    async def scenario() -> None:
        fx = _Fixture()
        course_id, _ = await fx.course_with_lessons(2)
        await fx.service.enroll(STUDENT, course_id)

        result = await fx.service.complete_lesson(STUDENT, course_id, uuid4())

        assert result.progress == 50

    asyncio.run(scenario())


def test_membership_enforced_rejects_unknown_and_foreign_lessons() -> None:
    async def scenario() -> None:
        fx = _Fixture(enforce_lesson_membership=True)
        course_id, lessons = await fx.course_with_lessons(2)
        _, foreign = await fx.course_with_lessons(1)
        await fx.service.enroll(STUDENT, course_id)

        for lesson_id in (uuid4(), foreign[0]):
            with pytest.raises(LessonNotFoundError):
                await fx.service.complete_lesson(STUDENT, course_id, lesson_id)

        result = await fx.service.complete_lesson(STUDENT, course_id, lessons[0])
        assert result.completed_lesson_ids == {lessons[0]}

    asyncio.run(scenario())


def test_membership_checked_after_enrollment() -> None:
    fx = _Fixture(enforce_lesson_membership=True)
    with pytest.raises(EnrollmentNotFoundError):
        asyncio.run(fx.service.complete_lesson(STUDENT, uuid4(), uuid4()))


# ---- reads ----


def test_count_and_list() -> None:
    async def scenario() -> None:
        fx = _Fixture()
        first, _ = await fx.course_with_lessons(0)
        second, _ = await fx.course_with_lessons(0)
        await fx.service.enroll(STUDENT, first)
        await fx.service.enroll(STUDENT, second)
        await fx.service.enroll(uuid4(), first)

        assert await fx.service.count_enrolled(first) == 2
        assert await fx.service.count_enrolled(uuid4()) == 0
        mine = await fx.service.list_for_student(STUDENT)
        assert [e.course_id for e in mine] == [first, second]
        assert all(isinstance(e, Enrollment) for e in mine)

    asyncio.run(scenario())
