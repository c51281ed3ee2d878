from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from coursehub.api.dependencies import CurrentUser, get_comment_service
from coursehub.api.errors import http_error
from coursehub.models.comment import Comment
from coursehub.services.comment_service import TEXT_MAX_LEN, CommentService
from coursehub.services.errors import ServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["comments"])

Service = Annotated[CommentService, Depends(get_comment_service)]


class CommentIn(BaseModel):
    text: str = Field(min_length=1, max_length=TEXT_MAX_LEN)


class CommentOut(BaseModel):
    id: UUID
    user_id: UUID
    lesson_id: UUID
    text: str
    created_at: datetime
    updated_at: datetime


def _out(comment: Comment) -> CommentOut:
    return CommentOut(
        id=comment.id,
        user_id=comment.user_id,
        lesson_id=comment.lesson_id,
        text=comment.text,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
    )


@router.get("/lessons/{lesson_id}/comments", response_model=list[CommentOut])
async def list_comments(lesson_id: UUID, service: Service) -> list[CommentOut]:
    try:
        comments = await service.list_for_lesson(lesson_id)
    except ServiceError as e:
        raise http_error(e) from None
    return [_out(c) for c in comments]


@router.post(
    "/lessons/{lesson_id}/comments",
    response_model=CommentOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_comment(
    lesson_id: UUID, payload: CommentIn, principal: CurrentUser, service: Service
) -> CommentOut:
    try:
        comment = await service.create(principal.user_id, lesson_id, payload.text)
    except ServiceError as e:
        raise http_error(e) from None
    return _out(comment)


@router.put("/comments/{comment_id}", response_model=CommentOut)
async def update_comment(
    comment_id: UUID, payload: CommentIn, principal: CurrentUser, service: Service
) -> CommentOut:
    try:
        comment = await service.update(principal, comment_id, payload.text)
    except ServiceError as e:
        raise http_error(e) from None
    return _out(comment)


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    comment_id: UUID, principal: CurrentUser, service: Service
) -> None:
    try:
        await service.delete(principal, comment_id)
    except ServiceError as e:
        raise http_error(e) from None
