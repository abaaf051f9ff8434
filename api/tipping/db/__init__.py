"""Database models and session management.

Import models from their respective modules:
    from tipping.db.sports import Game, Round
    from tipping.db.competition import Tip, User

Session management:
    from tipping.db import AsyncSession, get_db
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncGenerator, AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ..config import settings
from .base import Base
from . import competition, ops, sports  # noqa: F401  register models on Base.metadata

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

# Lazy-loaded engine and session factory so importing models never connects.
_engine: "AsyncEngine | None" = None
_AsyncSessionLocal: async_sessionmaker[AsyncSession] | None = None


def make_session_factory(engine: "AsyncEngine") -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def _get_engine() -> "AsyncEngine":
    """Get or create the database engine (lazy initialization)."""
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            settings.database_url, echo=settings.sql_echo, future=True
        )
    return _engine


def _get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the session factory (lazy initialization)."""
    global _AsyncSessionLocal
    if _AsyncSessionLocal is None:
        _AsyncSessionLocal = make_session_factory(_get_engine())
    return _AsyncSessionLocal


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions with commit/rollback semantics."""
    session_factory = _get_session_factory()
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_async_session():
    """Context manager for ad-hoc scripts."""
    session_factory = _get_session_factory()
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def fresh_session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Session factory on a brand-new engine, disposed on exit.

    Celery tasks run each job under ``asyncio.run``; an engine created in a
    previous event loop cannot be reused there.
    """
    engine = create_async_engine(settings.database_url, echo=False, future=True)
    try:
        yield make_session_factory(engine)
    finally:
        await engine.dispose()


async def init_db(engine: "AsyncEngine | None" = None) -> None:
    """Create any missing tables (tests and local SQLite). Deployed databases use alembic."""
    target = engine or _get_engine()
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close the database connection."""
    global _engine, _AsyncSessionLocal
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _AsyncSessionLocal = None


__all__ = [
    "Base",
    "AsyncSession",
    "get_db",
    "get_async_session",
    "fresh_session_factory",
    "make_session_factory",
    "init_db",
    "close_db",
]
