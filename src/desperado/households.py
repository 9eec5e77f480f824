"""Household membership lookups shared by the reward and onboarding flows."""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from desperado.db.models import HouseholdMember


async def get_household_ids(db: AsyncSession, user_id: uuid.UUID) -> list[uuid.UUID]:
    result = await db.execute(
        select(HouseholdMember.household_id)
        .where(HouseholdMember.user_id == user_id)
        .order_by(HouseholdMember.joined_at.asc())
    )
    return list(result.scalars().all())


async def get_primary_household_id(db: AsyncSession, user_id: uuid.UUID) -> uuid.UUID | None:
    """The household the user joined first, or None."""
    ids = await get_household_ids(db, user_id)
    return ids[0] if ids else None
