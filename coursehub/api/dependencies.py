from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from coursehub.core.config import SETTINGS
from coursehub.db import engine as db_engine
from coursehub.middleware.request_context import user_id_var
from coursehub.models.principal import Principal, Role
from coursehub.repos.repositories import Repositories
from coursehub.services import token_service
from coursehub.services.comment_service import CommentService
from coursehub.services.course_service import CourseService
from coursehub.services.enrollment_service import EnrollmentService
from coursehub.services.lesson_service import LessonService

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

# Process-wide stores used when no DATABASE_URL is configured.
_in_memory_repos = Repositories.in_memory()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def require_user(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
) -> Principal:
    """Extract and validate the JWT bearer token. Returns a Principal.

    Used as a FastAPI dependency on any protected endpoint.  Async so the
    user id it stores for logging is visible to the endpoint.
    """
    try:
        claims = token_service.decode_access_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise _unauthorized("Token expired") from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise _unauthorized("Invalid token") from None

    try:
        principal = Principal(user_id=UUID(claims["sub"]), role=Role(claims["role"]))
    except ValueError:
        logger.warning("Token with malformed subject or role rejected")
        raise _unauthorized("Invalid token") from None

    user_id_var.set(str(principal.user_id))
    logger.debug(
        "Token validated for user=%s role=%s", principal.user_id, principal.role
    )
    return principal


def require_role(*roles: Role):
    """Dependency factory: demand one of the given roles.

    Usage: Depends(require_role(Role.TEACHER, Role.ADMIN))
    Returns the Principal if its role is listed, else 403.
    """
    allowed = set(roles)

    async def _guard(
        principal: Annotated[Principal, Depends(require_user)],
    ) -> Principal:
        if not principal.has_any_role(allowed):
            logger.warning(
                "Access denied: user=%s role=%s required_any=%s",
                principal.user_id,
                principal.role,
                sorted(allowed),
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return _guard


async def get_repos() -> AsyncGenerator[Repositories, None]:
    """Request-scoped repositories.

    With a database, all repositories share one session that commits when
    the request succeeds.  Without one, the process-wide in-memory stores.
    """
    if db_engine.async_session_factory is None:
        yield _in_memory_repos
        return
    async with db_engine.session_scope() as session:
        yield Repositories.postgres(session)


CurrentUser = Annotated[Principal, Depends(require_user)]
Repos = Annotated[Repositories, Depends(get_repos)]


def get_enrollment_service(repos: Repos) -> EnrollmentService:
    return EnrollmentService(
        repos.enrollments,
        repos.courses,
        repos.lessons,
        enforce_lesson_membership=SETTINGS.enforce_lesson_membership,
        max_retries=SETTINGS.progress_max_retries,
    )


def get_course_service(repos: Repos) -> CourseService:
    return CourseService(repos.courses, repos.lessons, repos.comments)


def get_lesson_service(repos: Repos) -> LessonService:
    return LessonService(repos.lessons, repos.courses, repos.comments)


def get_comment_service(repos: Repos) -> CommentService:
    return CommentService(repos.comments, repos.lessons)
