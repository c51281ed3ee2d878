"""Course catalog endpoints.

Listing and reading are public; creating requires a teacher or admin
token, and changing or deleting a course requires its author or an admin.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from coursehub.api.dependencies import CurrentUser, get_course_service, require_role
from coursehub.api.errors import http_error
from coursehub.models.course import Course, CourseLevel
from coursehub.models.principal import Principal, Role
from coursehub.repos.course_repo import CourseFilter
from coursehub.services.course_service import MAX_LIMIT, CourseService
from coursehub.services.errors import ServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/courses", tags=["courses"])

Service = Annotated[CourseService, Depends(get_course_service)]
Author = Annotated[Principal, Depends(require_role(Role.TEACHER, Role.ADMIN))]


class CourseIn(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = ""
    price: float = Field(ge=0)
    image: str | None = None
    category: str = Field(min_length=1)
    level: CourseLevel = CourseLevel.BEGINNER
    published: bool = False
    tags: list[str] = []


class CourseUpdateIn(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    price: float | None = Field(default=None, ge=0)
    image: str | None = None
    category: str | None = Field(default=None, min_length=1)
    level: CourseLevel | None = None
    published: bool | None = None
    tags: list[str] | None = None


class CourseOut(BaseModel):
    id: UUID
    title: str
    slug: str
    description: str
    price: float
    image: str | None
    category: str
    level: CourseLevel
    published: bool
    author_id: UUID
    tags: list[str]
    favorites_count: int
    created_at: datetime
    updated_at: datetime


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class CoursePage(BaseModel):
    items: list[CourseOut]
    pagination: Pagination


class FavoriteOut(BaseModel):
    is_favorite: bool
    favorites_count: int


def course_out(course: Course) -> CourseOut:
    return CourseOut(
        id=course.id,
        title=course.title,
        slug=course.slug,
        description=course.description,
        price=course.price,
        image=course.image,
        category=course.category,
        level=course.level,
        published=course.published,
        author_id=course.author_id,
        tags=list(course.tags),
        favorites_count=len(course.favorites),
        created_at=course.created_at,
        updated_at=course.updated_at,
    )


@router.get("", response_model=CoursePage)
async def list_courses(
    service: Service,
    category: str | None = None,
    level: CourseLevel | None = None,
    price_min: Annotated[float | None, Query(ge=0)] = None,
    price_max: Annotated[float | None, Query(ge=0)] = None,
    tags: Annotated[str | None, Query(description="Comma-separated, any match")] = None,
    author: UUID | None = None,
    published: bool | None = None,
    search: str | None = None,
    sort_by: str = "-created_at",
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=MAX_LIMIT)] = 10,
) -> CoursePage:
    flt = CourseFilter(
        category=category,
        level=level,
        price_min=price_min,
        price_max=price_max,
        tags=tuple(t.strip().lower() for t in (tags or "").split(",") if t.strip()),
        author_id=author,
        published=published,
        search=search or None,
    )
    try:
        items, total = await service.list_courses(
            flt, page=page, limit=limit, sort_by=sort_by
        )
    except ServiceError as e:
        raise http_error(e) from None

    return CoursePage(
        items=[course_out(c) for c in items],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit),
        ),
    )


@router.post("", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
async def create_course(
    payload: CourseIn, principal: Author, service: Service
) -> CourseOut:
    try:
        course = await service.create(
            principal,
            title=payload.title,
            price=payload.price,
            category=payload.category,
            description=payload.description,
            image=payload.image,
            level=payload.level,
            published=payload.published,
            tags=tuple(payload.tags),
        )
    except ServiceError as e:
        raise http_error(e) from None
    return course_out(course)


@router.get("/{course_id}", response_model=CourseOut)
async def get_course(course_id: UUID, service: Service) -> CourseOut:
    try:
        course = await service.get(course_id)
    except ServiceError as e:
        raise http_error(e) from None
    return course_out(course)


@router.put("/{course_id}", response_model=CourseOut)
async def update_course(
    course_id: UUID, payload: CourseUpdateIn, principal: CurrentUser, service: Service
) -> CourseOut:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    try:
        course = await service.update(principal, course_id, changes)
    except ServiceError as e:
        raise http_error(e) from None
    return course_out(course)


@router.delete("/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_course(
    course_id: UUID, principal: CurrentUser, service: Service
) -> None:
    try:
        await service.delete(principal, course_id)
    except ServiceError as e:
        raise http_error(e) from None


@router.post("/{course_id}/favorite", response_model=FavoriteOut)
async def toggle_favorite(
    course_id: UUID, principal: CurrentUser, service: Service
) -> FavoriteOut:
    try:
        is_favorite, count = await service.toggle_favorite(principal.user_id, course_id)
    except ServiceError as e:
        raise http_error(e) from None
    return FavoriteOut(is_favorite=is_favorite, favorites_count=count)
