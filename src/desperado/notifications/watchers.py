"""Entity watchers: who follows which task/goal/habit, and how closely."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from desperado.database import upsert
from desperado.db.models import EntityWatcher

logger = logging.getLogger(__name__)

WATCH_ALL = "all"
WATCH_MENTIONS_ONLY = "mentions_only"
WATCH_MUTED = "muted"
WATCH_LEVELS = frozenset({WATCH_ALL, WATCH_MENTIONS_ONLY, WATCH_MUTED})


async def set_watch_level(
    db: AsyncSession,
    entity_type: str,
    entity_id: str,
    user_id: uuid.UUID,
    watch_level: str = WATCH_ALL,
) -> None:
    """Upsert on (entity_type, entity_id, user_id)."""
    if watch_level not in WATCH_LEVELS:
        raise ValueError(f"Invalid watch level: {watch_level}. Must be one of {sorted(WATCH_LEVELS)}")

    stmt = upsert(db, EntityWatcher).values(
        id=uuid.uuid4(),
        entity_type=entity_type,
        entity_id=str(entity_id),
        user_id=user_id,
        watch_level=watch_level,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["entity_type", "entity_id", "user_id"],
        set_={"watch_level": stmt.excluded.watch_level},
    )
    await db.execute(stmt)
    await db.flush()


async def ensure_watching(
    db: AsyncSession,
    entity_type: str,
    entity_id: str,
    user_id: uuid.UUID,
    watch_level: str = WATCH_ALL,
) -> None:
    """Make ``user_id`` a watcher of the entity. Called on first interaction.

    An existing row keeps its level, so a muted entity stays muted.
    Failures are logged and never raised.
    """
    stmt = upsert(db, EntityWatcher).values(
        id=uuid.uuid4(),
        entity_type=entity_type,
        entity_id=str(entity_id),
        user_id=user_id,
        watch_level=watch_level,
    )
    try:
        async with db.begin_nested():
            await db.execute(stmt.on_conflict_do_nothing(index_elements=["entity_type", "entity_id", "user_id"]))
    except Exception:
        logger.warning(
            "Failed to ensure watcher %s on %s:%s", user_id, entity_type, entity_id, exc_info=True
        )


async def get_watchers(db: AsyncSession, entity_type: str, entity_id: str) -> list[EntityWatcher]:
    result = await db.execute(
        select(EntityWatcher).where(
            EntityWatcher.entity_type == entity_type,
            EntityWatcher.entity_id == str(entity_id),
        )
    )
    return list(result.scalars().all())


async def get_watch_level(db: AsyncSession, entity_type: str, entity_id: str, user_id: uuid.UUID) -> str | None:
    result = await db.execute(
        select(EntityWatcher.watch_level).where(
            EntityWatcher.entity_type == entity_type,
            EntityWatcher.entity_id == str(entity_id),
            EntityWatcher.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def remove_watcher(db: AsyncSession, entity_type: str, entity_id: str, user_id: uuid.UUID) -> bool:
    """Stop watching. Returns True if a row was removed."""
    result = await db.execute(
        delete(EntityWatcher).where(
            EntityWatcher.entity_type == entity_type,
            EntityWatcher.entity_id == str(entity_id),
            EntityWatcher.user_id == user_id,
        )
    )
    await db.flush()
    return result.rowcount > 0
