"""Shared test fixtures.

Tests run against an in-memory SQLite database created from the ORM
metadata and seeded with the same config rows production uses.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from desperado.auth.jwt import create_access_token
from desperado.background import DetachedTaskGroup, get_detached
from desperado.database import build_engine, get_session
from desperado.db import models  # noqa: F401
from desperado.db.base import Base
from desperado.db.models import Household, HouseholdMember, User
from desperado.gamification.seed import seed_gamification
from desperado.main import create_app
from desperado.redis_client import get_redis_optional


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = build_engine("sqlite+aiosqlite://")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """A session on a freshly seeded database."""
    async with session_factory() as session:
        await seed_gamification(session)
        yield session


@pytest_asyncio.fixture
async def detached() -> AsyncGenerator[DetachedTaskGroup, None]:
    group = DetachedTaskGroup()
    yield group
    await group.drain(timeout=1)


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory: insert and commit a user."""

    async def _make(
        display_name: str | None = None,
        full_name: str | None = None,
        email: str | None = None,
    ) -> User:
        user = User(
            email=email or f"{uuid.uuid4().hex[:10]}@example.com",
            full_name=full_name,
            display_name=display_name,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture
def make_household(db_session: AsyncSession):
    """Factory: a household with the given members, the first one as owner."""

    async def _make(*members: User, name: str = "The Party") -> Household:
        household = Household(name=name)
        db_session.add(household)
        await db_session.flush()
        joined = datetime.now(timezone.utc)
        for i, member in enumerate(members):
            db_session.add(HouseholdMember(
                household_id=household.id,
                user_id=member.id,
                role="owner" if i == 0 else "member",
                joined_at=joined + timedelta(seconds=i),
            ))
        await db_session.commit()
        return household

    return _make


@pytest_asyncio.fixture
async def user(make_user) -> User:
    return await make_user(display_name="carl", full_name="Carl", email="carl@example.com")


@pytest.fixture
def auth_headers():
    def _headers(u: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(str(u.id))}"}

    return _headers


@pytest_asyncio.fixture
async def client(
    session_factory,
    db_session: AsyncSession,
    detached: DetachedTaskGroup,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, wired to the test database. Redis is absent."""
    app = create_app()

    async def _session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_redis_optional] = lambda: None
    app.dependency_overrides[get_detached] = lambda: detached

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
