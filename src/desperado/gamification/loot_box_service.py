"""Loot boxes: minted on achievement unlock, opened once for a random reward."""

from __future__ import annotations

import logging
import random
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from desperado.db.models import LootBox, LootBoxReward, LootBoxTier
from desperado.households import get_household_ids

logger = logging.getLogger(__name__)


@dataclass
class LootBoxOpenResult:
    loot_box_id: uuid.UUID
    tier_name: str
    reward_id: uuid.UUID
    reward_name: str
    reward_description: str | None = None
    reward_icon: str | None = None


async def get_tier_by_slug(db: AsyncSession, slug: str) -> LootBoxTier | None:
    result = await db.execute(select(LootBoxTier).where(LootBoxTier.slug == slug))
    return result.scalar_one_or_none()


async def mint_loot_box(
    db: AsyncSession,
    user_id: uuid.UUID,
    tier_slug: str,
    source_achievement_id: uuid.UUID | None = None,
    source_description: str | None = None,
) -> LootBox | None:
    """Create an unopened box. Returns None if the tier is unknown."""
    tier = await get_tier_by_slug(db, tier_slug)
    if tier is None:
        logger.warning("Loot box tier not found: %s", tier_slug)
        return None

    box = LootBox(
        user_id=user_id,
        tier_id=tier.id,
        source_achievement_id=source_achievement_id,
        source_description=source_description,
        created_at=datetime.now(timezone.utc),
    )
    db.add(box)
    await db.flush()
    return box


async def get_reward_pool(db: AsyncSession, user_id: uuid.UUID, tier_id: uuid.UUID) -> list[LootBoxReward]:
    """Active rewards for the tier: the user's own first, else their household's."""
    own = await db.execute(
        select(LootBoxReward).where(
            LootBoxReward.user_id == user_id,
            LootBoxReward.tier_id == tier_id,
            LootBoxReward.active.is_(True),
        )
    )
    rewards = list(own.scalars().all())
    if rewards:
        return rewards

    household_ids = await get_household_ids(db, user_id)
    if not household_ids:
        return []
    shared = await db.execute(
        select(LootBoxReward).where(
            LootBoxReward.household_id.in_(household_ids),
            LootBoxReward.tier_id == tier_id,
            LootBoxReward.is_household.is_(True),
            LootBoxReward.active.is_(True),
        )
    )
    return list(shared.scalars().all())


async def open_loot_box(
    db: AsyncSession,
    user_id: uuid.UUID,
    box_id: uuid.UUID,
    rng: random.Random | None = None,
) -> LootBoxOpenResult | None:
    """Open a box and pick a reward uniformly at random.

    Returns None when the box is missing, not owned, already opened, or
    no reward is configured for its tier (the box then stays unopened).
    The open itself is one conditional UPDATE, so a concurrent second
    open changes zero rows and also returns None.
    """
    result = await db.execute(
        select(LootBox).where(
            LootBox.id == box_id,
            LootBox.user_id == user_id,
            LootBox.opened.is_(False),
        )
        .execution_options(populate_existing=True)
    )
    box = result.scalar_one_or_none()
    if box is None:
        return None

    rewards = await get_reward_pool(db, user_id, box.tier_id)
    if not rewards:
        logger.info("No rewards configured for tier %s; box %s left unopened", box.tier_id, box_id)
        return None

    reward = (rng or random).choice(rewards)

    opened = await db.execute(
        update(LootBox)
        .where(LootBox.id == box_id, LootBox.user_id == user_id, LootBox.opened.is_(False))
        .values(opened=True, opened_at=datetime.now(timezone.utc), reward_id=reward.id)
    )
    if opened.rowcount == 0:
        return None

    await db.execute(
        update(LootBoxReward)
        .where(LootBoxReward.id == reward.id)
        .values(times_won=LootBoxReward.times_won + 1)
    )
    await db.flush()

    return LootBoxOpenResult(
        loot_box_id=box.id,
        tier_name=box.tier.name if box.tier else "Box",
        reward_id=reward.id,
        reward_name=reward.name,
        reward_description=reward.description,
        reward_icon=reward.icon,
    )


async def redeem_reward(db: AsyncSession, user_id: uuid.UUID, box_id: uuid.UUID) -> bool:
    """Mark an opened box's reward as redeemed. Returns False if not redeemable."""
    result = await db.execute(
        update(LootBox)
        .where(
            LootBox.id == box_id,
            LootBox.user_id == user_id,
            LootBox.opened.is_(True),
            LootBox.reward_redeemed.is_(False),
        )
        .values(reward_redeemed=True, redeemed_at=datetime.now(timezone.utc))
    )
    await db.flush()
    return result.rowcount > 0


async def list_loot_boxes(
    db: AsyncSession,
    user_id: uuid.UUID,
    opened: bool | None = None,
) -> list[LootBox]:
    stmt = select(LootBox).where(LootBox.user_id == user_id)
    if opened is not None:
        stmt = stmt.where(LootBox.opened.is_(opened))
    result = await db.execute(stmt.order_by(LootBox.created_at.desc()))
    return list(result.scalars().all())


async def list_rewards(db: AsyncSession, user_id: uuid.UUID, include_inactive: bool = False) -> list[LootBoxReward]:
    """The user's own rewards plus household-shared rewards."""
    household_ids = await get_household_ids(db, user_id)
    scope = LootBoxReward.user_id == user_id
    if household_ids:
        scope = scope | (LootBoxReward.household_id.in_(household_ids) & LootBoxReward.is_household.is_(True))
    stmt = select(LootBoxReward).where(scope)
    if not include_inactive:
        stmt = stmt.where(LootBoxReward.active.is_(True))
    result = await db.execute(stmt.order_by(LootBoxReward.created_at.asc()))
    return list(result.scalars().all())


async def create_reward(
    db: AsyncSession,
    user_id: uuid.UUID,
    tier_slug: str,
    name: str,
    description: str | None = None,
    icon: str | None = None,
    household_id: uuid.UUID | None = None,
) -> LootBoxReward | None:
    """Add a reward to the pool. ``household_id`` makes it household-wide. None if the tier is unknown."""
    tier = await get_tier_by_slug(db, tier_slug)
    if tier is None:
        return None

    reward = LootBoxReward(
        user_id=user_id,
        household_id=household_id,
        tier_id=tier.id,
        name=name,
        description=description,
        icon=icon,
        is_household=household_id is not None,
        created_at=datetime.now(timezone.utc),
    )
    db.add(reward)
    await db.flush()
    return reward


async def deactivate_reward(db: AsyncSession, user_id: uuid.UUID, reward_id: uuid.UUID) -> bool:
    """Retire a reward the user created. Returns False if not found."""
    result = await db.execute(
        update(LootBoxReward)
        .where(LootBoxReward.id == reward_id, LootBoxReward.user_id == user_id)
        .values(active=False)
    )
    await db.flush()
    return result.rowcount > 0
