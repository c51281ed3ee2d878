from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID, uuid4

from coursehub.models.course import utcnow


@dataclass(frozen=True, slots=True)
class Comment:
    id: UUID
    user_id: UUID
    lesson_id: UUID
    text: str
    created_at: datetime
    updated_at: datetime

    @staticmethod
    def new(*, user_id: UUID, lesson_id: UUID, text: str) -> Comment:
        now = utcnow()
        return Comment(
            id=uuid4(),
            user_id=user_id,
            lesson_id=lesson_id,
            text=text,
            created_at=now,
            updated_at=now,
        )
