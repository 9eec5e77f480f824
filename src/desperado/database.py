"""Async SQLAlchemy engine, request-scoped sessions and dialect-aware upserts.

Production runs on PostgreSQL (asyncpg). The test suite runs the same
models and queries on an in-memory SQLite database.
"""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

_engine: AsyncEngine | None = None
_sessions: async_sessionmaker[AsyncSession] | None = None


def build_engine(url: str, pool_size: int = 20, max_overflow: int = 10) -> AsyncEngine:
    if url.startswith("sqlite"):
        # One shared connection so every session sees the same in-memory database
        return create_async_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_async_engine(
        url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        connect_args={"statement_cache_size": 0},
    )


async def init_db(url: str, pool_size: int = 20, max_overflow: int = 10) -> None:
    global _engine, _sessions  # noqa: PLW0603
    _engine = build_engine(url, pool_size, max_overflow)
    _sessions = async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)


async def close_db() -> None:
    global _engine, _sessions  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessions = None


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session for one request (FastAPI dependency). Handlers commit; services only flush."""
    if _sessions is None:
        msg = "Database not initialized. Call init_db() first."
        raise RuntimeError(msg)
    async with _sessions() as session:
        yield session


def upsert(db: AsyncSession, model: Any) -> Any:  # noqa: ANN401
    """A dialect-specific INSERT for ``model`` exposing ``on_conflict_do_update``/``_do_nothing``."""
    if db.get_bind().dialect.name == "sqlite":
        return sqlite.insert(model)
    return postgresql.insert(model)
