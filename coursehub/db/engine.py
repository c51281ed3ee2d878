"""Async SQLAlchemy engine for the PostgreSQL store.

Only built when DATABASE_URL is set; otherwise ``engine`` and
``async_session_factory`` stay None and every request is served from
one process-wide set of in-memory repositories instead.

Each request runs in one session (``session_scope``).  Sessions use READ
COMMITTED: the version-checked progress UPDATE re-evaluates its WHERE
clause against the latest committed row, which is what lets a losing
writer see the conflict and retry rather than overwrite.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from coursehub.core.config import SETTINGS

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for the coursehub tables."""


def _build_engine(url: str) -> AsyncEngine:
    return create_async_engine(
        url,
        echo=SETTINGS.log_level == "debug",
        isolation_level="READ COMMITTED",
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )


engine: AsyncEngine | None = (
    _build_engine(SETTINGS.database_url) if SETTINGS.database_url else None
)
async_session_factory: async_sessionmaker[AsyncSession] | None = (
    async_sessionmaker(engine, expire_on_commit=False) if engine else None
)


@asynccontextmanager
async def session_scope() -> AsyncGenerator[AsyncSession, None]:
    """One request's unit of work: commit on success, roll back on error."""
    if async_session_factory is None:
        raise RuntimeError("DATABASE_URL is not configured, no session available")
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def ping() -> bool | None:
    """True when the database answers, False when it does not, None when unused."""
    if engine is None:
        return None
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Database ping failed: %s", e)
        return False
    return True


@asynccontextmanager
async def lifespan_db() -> AsyncGenerator[None, None]:
    if engine is None:
        logger.info("DATABASE_URL unset, serving from in-memory repositories")
        yield
        return

    logger.info("Using PostgreSQL store at %s", engine.url.render_as_string())
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Database engine disposed")
