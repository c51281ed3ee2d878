from __future__ import annotations

import re
import secrets
import unicodedata
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from uuid import UUID, uuid4

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


class CourseLevel(StrEnum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


def slugify(title: str) -> str:
    """Lowercase ASCII slug with a short random suffix, e.g. ``intro-to-sql-4f2a``."""
    ascii_title = (
        unicodedata.normalize("NFKD", title).encode("ascii", "ignore").decode("ascii")
    )
    base = _SLUG_STRIP.sub("-", ascii_title.lower()).strip("-") or "course"
    return f"{base}-{secrets.token_hex(2)}"


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    title: str
    slug: str
    price: float
    category: str
    author_id: UUID
    created_at: datetime
    updated_at: datetime
    description: str = ""
    image: str | None = None
    level: CourseLevel = CourseLevel.BEGINNER
    published: bool = False
    tags: tuple[str, ...] = ()
    favorites: frozenset[UUID] = field(default_factory=frozenset)

    @staticmethod
    def new(
        *,
        title: str,
        price: float,
        category: str,
        author_id: UUID,
        description: str = "",
        image: str | None = None,
        level: CourseLevel = CourseLevel.BEGINNER,
        published: bool = False,
        tags: tuple[str, ...] = (),
    ) -> Course:
        now = utcnow()
        return Course(
            id=uuid4(),
            title=title,
            slug=slugify(title),
            price=price,
            category=category,
            author_id=author_id,
            created_at=now,
            updated_at=now,
            description=description,
            image=image,
            level=level,
            published=published,
            tags=tags,
        )


@dataclass(frozen=True, slots=True)
class Lesson:
    id: UUID
    course_id: UUID
    title: str
    order: int
    created_at: datetime
    updated_at: datetime
    content: str | None = None
    video_url: str | None = None

    @staticmethod
    def new(
        *,
        course_id: UUID,
        title: str,
        order: int,
        content: str | None = None,
        video_url: str | None = None,
    ) -> Lesson:
        now = utcnow()
        return Lesson(
            id=uuid4(),
            course_id=course_id,
            title=title,
            order=order,
            created_at=now,
            updated_at=now,
            content=content,
            video_url=video_url,
        )
