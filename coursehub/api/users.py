from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from coursehub.api.courses import CourseOut, FavoriteOut, course_out
from coursehub.api.dependencies import CurrentUser, Repos, get_course_service
from coursehub.api.errors import http_error
from coursehub.models.principal import Role
from coursehub.services import users_service
from coursehub.services.course_service import CourseService
from coursehub.services.errors import ServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])

Courses = Annotated[CourseService, Depends(get_course_service)]


class ProfileOut(BaseModel):
    id: UUID
    username: str
    first_name: str
    last_name: str
    role: Role


@router.get("/profile", response_model=ProfileOut)
async def profile(principal: CurrentUser, repos: Repos) -> ProfileOut:
    try:
        user = await users_service.get_user(repos.users, principal.user_id)
    except ServiceError as e:
        raise http_error(e) from None
    return ProfileOut(
        id=user.id,
        username=user.username,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role,
    )


@router.get("/my-courses", response_model=list[CourseOut])
async def my_courses(principal: CurrentUser, courses: Courses) -> list[CourseOut]:
    items = await courses.list_by_author(principal.user_id)
    return [course_out(c) for c in items]


@router.get("/favorites", response_model=list[CourseOut])
async def favorites(principal: CurrentUser, courses: Courses) -> list[CourseOut]:
    items = await courses.list_favorites(principal.user_id)
    return [course_out(c) for c in items]


@router.post("/favorites/{course_id}", response_model=FavoriteOut)
async def toggle_favorite(
    course_id: UUID, principal: CurrentUser, courses: Courses
) -> FavoriteOut:
    try:
        is_favorite, count = await courses.toggle_favorite(
            principal.user_id, course_id
        )
    except ServiceError as e:
        raise http_error(e) from None
    return FavoriteOut(is_favorite=is_favorite, favorites_count=count)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(user_id: UUID, principal: CurrentUser, repos: Repos) -> None:
    try:
        await users_service.delete_user(repos.users, principal, user_id)
    except ServiceError as e:
        raise http_error(e) from None
