"""Enrollment and progress tracking.

An enrollment records which lessons of a course one student has
completed.  Progress is never set by a caller: it is recomputed from the
size of the completed set and the course's *current* lesson count, so it
follows the course as lessons are added or removed.

Writes happen in two steps:

1. an atomic set mutation in the repository (add-to-set / remove-from-set),
   which never loses a concurrent completion;
2. a progress write guarded by the enrollment's ``version``.  If another
   request changed the enrollment in between, the write is rejected, the
   enrollment is re-read and progress recomputed, up to ``max_retries``
   times.

When the retries run out the set mutation from step 1 is reverted before
``ProgressConflictError`` is raised, so a 409 leaves no partial change
behind on stores without a surrounding transaction.
"""

from __future__ import annotations

import logging
from uuid import UUID

from coursehub.core.metrics import (
    ENROLLMENTS_CREATED,
    LESSON_COMPLETIONS,
    PROGRESS_WRITE_CONFLICTS,
)
from coursehub.models.enrollment import CompletionChange, Enrollment
from coursehub.repos.course_repo import CourseRepo
from coursehub.repos.enrollment_repo import EnrollmentRepo
from coursehub.repos.lesson_repo import LessonRepo
from coursehub.services.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


class CourseNotFoundError(NotFoundError):
    def __init__(self) -> None:
        super().__init__("Course not found")


class LessonNotFoundError(NotFoundError):
    def __init__(self) -> None:
        super().__init__("Lesson not found in this course")


class EnrollmentNotFoundError(NotFoundError):
    def __init__(self) -> None:
        super().__init__("Enrollment not found")


class AlreadyEnrolledError(ConflictError):
    def __init__(self) -> None:
        super().__init__("Already enrolled in this course")


class ProgressConflictError(ConflictError):
    def __init__(self) -> None:
        super().__init__("Enrollment is being updated concurrently, retry")


def compute_progress(completed: int, total: int) -> int:
    """Percentage of ``total`` covered by ``completed``, rounded half-up.

    0 for a course without lessons.  Capped at 100: completed ids of
    lessons that were since deleted stay in the set.
    """
    if total <= 0:
        return 0
    return min(100, (200 * completed + total) // (2 * total))


class EnrollmentService:
    def __init__(
        self,
        enrollments: EnrollmentRepo,
        courses: CourseRepo,
        lessons: LessonRepo,
        *,
        enforce_lesson_membership: bool = False,
        max_retries: int = 5,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self._enrollments = enrollments
        self._courses = courses
        self._lessons = lessons
        self._enforce_lesson_membership = enforce_lesson_membership
        self._max_retries = max_retries

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def enroll(self, student_id: UUID, course_id: UUID) -> Enrollment:
        if not await self._courses.exists(course_id):
            logger.warning("Enroll rejected: course=%s not found", course_id)
            raise CourseNotFoundError()

        if await self._enrollments.get(student_id, course_id) is not None:
            logger.warning(
                "Enroll rejected: student=%s already in course=%s",
                student_id,
                course_id,
            )
            raise AlreadyEnrolledError()

        enrollment = Enrollment.new(student_id=student_id, course_id=course_id)
        try:
            await self._enrollments.add(enrollment)
        except ValueError:
            # Lost a race against a concurrent enroll for the same pair.
            raise AlreadyEnrolledError() from None

        ENROLLMENTS_CREATED.inc()
        logger.info(
            "Enrolled student=%s course=%s enrollment=%s",
            student_id,
            course_id,
            enrollment.id,
            extra={"course_id": str(course_id)},
        )
        return enrollment

    async def get_progress(self, student_id: UUID, course_id: UUID) -> int:
        enrollment = await self._require(student_id, course_id)
        enrollment = await self._sync_progress(enrollment)
        return enrollment.progress

    async def complete_lesson(
        self, student_id: UUID, course_id: UUID, lesson_id: UUID
    ) -> Enrollment:
        enrollment = await self._require(student_id, course_id)
        if self._enforce_lesson_membership:
            await self._require_lesson_in_course(lesson_id, course_id)

        change = await self._enrollments.add_completed_lessons(
            enrollment.id, [lesson_id]
        )
        change = self._checked(change)
        if not change.changed:
            return change.enrollment

        LESSON_COMPLETIONS.labels(action="complete").inc()
        logger.info(
            "Lesson completed student=%s course=%s lesson=%s",
            student_id,
            course_id,
            lesson_id,
            extra={"course_id": str(course_id)},
        )
        return await self._settle(change.enrollment, added=frozenset({lesson_id}))

    async def undo_complete_lesson(
        self, student_id: UUID, course_id: UUID, lesson_id: UUID
    ) -> Enrollment:
        enrollment = await self._require(student_id, course_id)

        change = await self._enrollments.remove_completed_lesson(
            enrollment.id, lesson_id
        )
        change = self._checked(change)
        if change.changed:
            LESSON_COMPLETIONS.labels(action="undo").inc()
            logger.info(
                "Lesson completion undone student=%s course=%s lesson=%s",
                student_id,
                course_id,
                lesson_id,
                extra={"course_id": str(course_id)},
            )
        removed = frozenset({lesson_id}) if change.changed else frozenset()
        return await self._settle(change.enrollment, removed=removed)

    async def complete_course(self, student_id: UUID, course_id: UUID) -> Enrollment:
        enrollment = await self._require(student_id, course_id)

        lesson_ids = await self._lessons.list_ids_by_course(course_id)
        change = await self._enrollments.add_completed_lessons(
            enrollment.id, lesson_ids
        )
        change = self._checked(change)
        if change.changed:
            LESSON_COMPLETIONS.labels(action="course").inc()
        logger.info(
            "Course completed student=%s course=%s lessons=%d",
            student_id,
            course_id,
            len(lesson_ids),
            extra={"course_id": str(course_id)},
        )
        added = frozenset()
        if change.changed:
            added = frozenset(lesson_ids) - enrollment.completed_lesson_ids
        return await self._settle(change.enrollment, added=added)

    async def count_enrolled(self, course_id: UUID) -> int:
        return await self._enrollments.count_by_course(course_id)

    async def list_for_student(self, student_id: UUID) -> list[Enrollment]:
        return await self._enrollments.list_by_student(student_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _require(self, student_id: UUID, course_id: UUID) -> Enrollment:
        enrollment = await self._enrollments.get(student_id, course_id)
        if enrollment is None:
            logger.warning(
                "No enrollment for student=%s course=%s", student_id, course_id
            )
            raise EnrollmentNotFoundError()
        return enrollment

    async def _require_lesson_in_course(self, lesson_id: UUID, course_id: UUID) -> None:
        lesson = await self._lessons.get_by_id(lesson_id)
        if lesson is None or lesson.course_id != course_id:
            logger.warning(
                "Completion rejected: lesson=%s not in course=%s", lesson_id, course_id
            )
            raise LessonNotFoundError()

    @staticmethod
    def _checked(change: CompletionChange | None) -> CompletionChange:
        # The enrollment existed a moment ago and there is no delete
        # operation; None here means the store lost it.
        if change is None:
            raise EnrollmentNotFoundError()
        return change

    async def _settle(
        self,
        enrollment: Enrollment,
        *,
        added: frozenset[UUID] = frozenset(),
        removed: frozenset[UUID] = frozenset(),
    ) -> Enrollment:
        """Persist progress for a set change, or undo the change and re-raise."""
        try:
            return await self._sync_progress(enrollment)
        except ProgressConflictError:
            for lesson_id in added:
                await self._enrollments.remove_completed_lesson(
                    enrollment.id, lesson_id
                )
            if removed:
                await self._enrollments.add_completed_lessons(enrollment.id, removed)
            logger.warning(
                "Reverted completion change enrollment=%s added=%d removed=%d",
                enrollment.id,
                len(added),
                len(removed),
            )
            raise

    async def _sync_progress(self, enrollment: Enrollment) -> Enrollment:
        """Recompute progress from the live lesson count and persist it."""
        for attempt in range(1, self._max_retries + 1):
            total = await self._lessons.count_by_course(enrollment.course_id)
            progress = compute_progress(len(enrollment.completed_lesson_ids), total)
            if progress == enrollment.progress:
                return enrollment

            updated = await self._enrollments.set_progress(
                enrollment.id, progress, expected_version=enrollment.version
            )
            if updated is not None:
                return updated

            PROGRESS_WRITE_CONFLICTS.inc()
            logger.info(
                "Progress write lost version race enrollment=%s attempt=%d",
                enrollment.id,
                attempt,
            )
            fresh = await self._enrollments.get_by_id(enrollment.id)
            if fresh is None:
                raise EnrollmentNotFoundError()
            enrollment = fresh

        logger.warning(
            "Giving up on progress write enrollment=%s after %d attempts",
            enrollment.id,
            self._max_retries,
        )
        raise ProgressConflictError()
