"""One handle per store, passed explicitly into every service."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.repos.comment_repo import CommentRepo, InMemoryCommentRepo
from coursehub.repos.course_repo import CourseRepo, InMemoryCourseRepo
from coursehub.repos.enrollment_repo import EnrollmentRepo, InMemoryEnrollmentRepo
from coursehub.repos.lesson_repo import InMemoryLessonRepo, LessonRepo
from coursehub.repos.pg_comment_repo import PgCommentRepo
from coursehub.repos.pg_course_repo import PgCourseRepo
from coursehub.repos.pg_enrollment_repo import PgEnrollmentRepo
from coursehub.repos.pg_lesson_repo import PgLessonRepo
from coursehub.repos.pg_user_repo import PgUserRepo
from coursehub.repos.user_repo import InMemoryUserRepo, UserRepo


@dataclass(frozen=True, slots=True)
class Repositories:
    users: UserRepo
    courses: CourseRepo
    lessons: LessonRepo
    comments: CommentRepo
    enrollments: EnrollmentRepo

    @staticmethod
    def in_memory() -> Repositories:
        return Repositories(
            users=InMemoryUserRepo(),
            courses=InMemoryCourseRepo(),
            lessons=InMemoryLessonRepo(),
            comments=InMemoryCommentRepo(),
            enrollments=InMemoryEnrollmentRepo(),
        )

    @staticmethod
    def postgres(session: AsyncSession) -> Repositories:
        """Repositories sharing one request-scoped session (one transaction)."""
        return Repositories(
            users=PgUserRepo(session),
            courses=PgCourseRepo(session),
            lessons=PgLessonRepo(session),
            comments=PgCommentRepo(session),
            enrollments=PgEnrollmentRepo(session),
        )
