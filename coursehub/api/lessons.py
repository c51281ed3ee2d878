from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from coursehub.api.dependencies import CurrentUser, get_lesson_service
from coursehub.api.errors import http_error
from coursehub.models.course import Lesson
from coursehub.services.errors import ServiceError
from coursehub.services.lesson_service import TITLE_MAX_LEN, LessonService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["lessons"])

Service = Annotated[LessonService, Depends(get_lesson_service)]


class LessonIn(BaseModel):
    title: str = Field(min_length=1, max_length=TITLE_MAX_LEN)
    content: str | None = None
    video_url: str | None = None
    order: int | None = Field(default=None, ge=1)


class LessonUpdateIn(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=TITLE_MAX_LEN)
    content: str | None = None
    video_url: str | None = None
    order: int | None = Field(default=None, ge=1)


class LessonOut(BaseModel):
    id: UUID
    course_id: UUID
    title: str
    content: str | None
    video_url: str | None
    order: int
    created_at: datetime
    updated_at: datetime


def _out(lesson: Lesson) -> LessonOut:
    return LessonOut(
        id=lesson.id,
        course_id=lesson.course_id,
        title=lesson.title,
        content=lesson.content,
        video_url=lesson.video_url,
        order=lesson.order,
        created_at=lesson.created_at,
        updated_at=lesson.updated_at,
    )


@router.get("/courses/{course_id}/lessons", response_model=list[LessonOut])
async def list_lessons(course_id: UUID, service: Service) -> list[LessonOut]:
    try:
        lessons = await service.list_by_course(course_id)
    except ServiceError as e:
        raise http_error(e) from None
    return [_out(le) for le in lessons]


@router.post(
    "/courses/{course_id}/lessons",
    response_model=LessonOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_lesson(
    course_id: UUID, payload: LessonIn, principal: CurrentUser, service: Service
) -> LessonOut:
    try:
        lesson = await service.create(
            principal,
            course_id,
            title=payload.title,
            content=payload.content,
            video_url=payload.video_url,
            order=payload.order,
        )
    except ServiceError as e:
        raise http_error(e) from None
    return _out(lesson)


@router.get("/lessons/{lesson_id}", response_model=LessonOut)
async def get_lesson(lesson_id: UUID, service: Service) -> LessonOut:
    try:
        lesson = await service.get(lesson_id)
    except ServiceError as e:
        raise http_error(e) from None
    return _out(lesson)


@router.put("/lessons/{lesson_id}", response_model=LessonOut)
async def update_lesson(
    lesson_id: UUID, payload: LessonUpdateIn, principal: CurrentUser, service: Service
) -> LessonOut:
    # course_id is not part of the payload: a lesson never moves courses.
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    try:
        lesson = await service.update(principal, lesson_id, changes)
    except ServiceError as e:
        raise http_error(e) from None
    return _out(lesson)


@router.delete("/lessons/{lesson_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_lesson(
    lesson_id: UUID, principal: CurrentUser, service: Service
) -> None:
    try:
        await service.delete(principal, lesson_id)
    except ServiceError as e:
        raise http_error(e) from None
