"""Enrollment and progress endpoints.

Every route except the public student count acts on the caller's own
enrollment: the student id always comes from the bearer token, never
from the path or body.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from coursehub.api.dependencies import CurrentUser, get_enrollment_service
from coursehub.api.errors import http_error
from coursehub.models.enrollment import Enrollment
from coursehub.services.enrollment_service import (
    AlreadyEnrolledError,
    EnrollmentService,
)
from coursehub.services.errors import ServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/enrollments", tags=["enrollments"])

Service = Annotated[EnrollmentService, Depends(get_enrollment_service)]


class EnrollmentOut(BaseModel):
    id: UUID
    student_id: UUID
    course_id: UUID
    completed_lesson_ids: list[UUID]
    progress: int
    created_at: datetime
    updated_at: datetime


class ProgressOut(BaseModel):
    progress: int


class CountOut(BaseModel):
    count: int


def _out(enrollment: Enrollment) -> EnrollmentOut:
    return EnrollmentOut(
        id=enrollment.id,
        student_id=enrollment.student_id,
        course_id=enrollment.course_id,
        completed_lesson_ids=sorted(enrollment.completed_lesson_ids, key=str),
        progress=enrollment.progress,
        created_at=enrollment.created_at,
        updated_at=enrollment.updated_at,
    )


@router.get("/me", response_model=list[EnrollmentOut])
async def my_enrollments(
    principal: CurrentUser, service: Service
) -> list[EnrollmentOut]:
    enrollments = await service.list_for_student(principal.user_id)
    return [_out(e) for e in enrollments]


@router.post(
    "/{course_id}/enroll",
    response_model=EnrollmentOut,
    status_code=status.HTTP_201_CREATED,
)
async def enroll(
    course_id: UUID, principal: CurrentUser, service: Service
) -> EnrollmentOut:
    try:
        enrollment = await service.enroll(principal.user_id, course_id)
    except AlreadyEnrolledError as e:
        logger.warning(
            "Duplicate enrollment rejected user=%s course=%s",
            principal.user_id,
            course_id,
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=e.message
        ) from None
    except ServiceError as e:
        raise http_error(e) from None
    return _out(enrollment)


@router.get("/{course_id}/progress", response_model=ProgressOut)
async def get_progress(
    course_id: UUID, principal: CurrentUser, service: Service
) -> ProgressOut:
    try:
        progress = await service.get_progress(principal.user_id, course_id)
    except ServiceError as e:
        raise http_error(e) from None
    return ProgressOut(progress=progress)


@router.post(
    "/{course_id}/lessons/{lesson_id}/complete", response_model=EnrollmentOut
)
async def complete_lesson(
    course_id: UUID, lesson_id: UUID, principal: CurrentUser, service: Service
) -> EnrollmentOut:
    try:
        enrollment = await service.complete_lesson(
            principal.user_id, course_id, lesson_id
        )
    except ServiceError as e:
        raise http_error(e) from None
    return _out(enrollment)


@router.post("/{course_id}/lessons/{lesson_id}/undo", response_model=EnrollmentOut)
async def undo_complete_lesson(
    course_id: UUID, lesson_id: UUID, principal: CurrentUser, service: Service
) -> EnrollmentOut:
    try:
        enrollment = await service.undo_complete_lesson(
            principal.user_id, course_id, lesson_id
        )
    except ServiceError as e:
        raise http_error(e) from None
    return _out(enrollment)


@router.post("/{course_id}/complete", response_model=EnrollmentOut)
async def complete_course(
    course_id: UUID, principal: CurrentUser, service: Service
) -> EnrollmentOut:
    try:
        enrollment = await service.complete_course(principal.user_id, course_id)
    except ServiceError as e:
        raise http_error(e) from None
    return _out(enrollment)


@router.get("/{course_id}/students/count", response_model=CountOut)
async def count_enrolled(course_id: UUID, service: Service) -> CountOut:
    return CountOut(count=await service.count_enrolled(course_id))
