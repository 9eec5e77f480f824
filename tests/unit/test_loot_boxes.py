"""Loot box minting, opening, redemption and the reward pool."""

from __future__ import annotations

import random

import pytest
from sqlalchemy import select

from desperado.db.models import LootBox, LootBoxReward
from desperado.gamification.loot_box_service import (
    create_reward,
    deactivate_reward,
    get_reward_pool,
    get_tier_by_slug,
    list_loot_boxes,
    list_rewards,
    mint_loot_box,
    open_loot_box,
    redeem_reward,
)


async def _reload(db, box_id):
    return (
        await db.execute(select(LootBox).where(LootBox.id == box_id).execution_options(populate_existing=True))
    ).scalar_one()


class TestMint:
    @pytest.mark.asyncio
    async def test_unknown_tier_returns_none(self, db_session, user):
        """Unknown tiers mint nothing."""
        assert await mint_loot_box(db_session, user.id, "diamond") is None

    @pytest.mark.asyncio
    async def test_mints_unopened_box(self, db_session, user):
        """A fresh box is unopened and has no reward yet."""
        box = await mint_loot_box(db_session, user.id, "gold", source_description="Unlocked: Centurion")
        box = await _reload(db_session, box.id)
        assert box.tier.slug == "gold"
        assert not box.opened
        assert box.reward_id is None


class TestOpen:
    @pytest.mark.asyncio
    async def test_opens_with_own_reward(self, db_session, user):
        """Opening picks from the crawler's pool and counts the win."""
        reward = await create_reward(db_session, user.id, "bronze", "Fancy coffee")
        box = await mint_loot_box(db_session, user.id, "bronze")

        result = await open_loot_box(db_session, user.id, box.id)

        assert result is not None
        assert result.reward_id == reward.id
        assert result.reward_name == "Fancy coffee"
        assert result.tier_name
        box = await _reload(db_session, box.id)
        assert box.opened
        assert box.opened_at is not None
        assert box.reward_id == reward.id
        times_won = (
            await db_session.execute(select(LootBoxReward.times_won).where(LootBoxReward.id == reward.id))
        ).scalar_one()
        assert times_won == 1

    @pytest.mark.asyncio
    async def test_second_open_returns_none(self, db_session, user):
        """A box opens at most once."""
        await create_reward(db_session, user.id, "bronze", "Fancy coffee")
        box = await mint_loot_box(db_session, user.id, "bronze")

        assert await open_loot_box(db_session, user.id, box.id) is not None
        assert await open_loot_box(db_session, user.id, box.id) is None

    @pytest.mark.asyncio
    async def test_cannot_open_someone_elses_box(self, db_session, user, make_user):
        """Boxes only open for their owner."""
        other = await make_user(display_name="donut")
        await create_reward(db_session, other.id, "bronze", "Cat treats")
        box = await mint_loot_box(db_session, other.id, "bronze")

        assert await open_loot_box(db_session, user.id, box.id) is None
        assert not (await _reload(db_session, box.id)).opened

    @pytest.mark.asyncio
    async def test_empty_pool_leaves_box_unopened(self, db_session, user):
        """With no rewards configured the box stays closed."""
        box = await mint_loot_box(db_session, user.id, "platinum")
        assert await open_loot_box(db_session, user.id, box.id) is None
        assert not (await _reload(db_session, box.id)).opened

    @pytest.mark.asyncio
    async def test_pick_is_uniform_over_pool(self, db_session, user):
        """Every reward in the pool can come up."""
        names = {"Movie night", "Sleep in", "Takeout"}
        for name in names:
            await create_reward(db_session, user.id, "silver", name)

        won = set()
        rng = random.Random(7)
        for _ in range(30):
            box = await mint_loot_box(db_session, user.id, "silver")
            won.add((await open_loot_box(db_session, user.id, box.id, rng=rng)).reward_name)
        assert won == names


class TestRewardPool:
    @pytest.mark.asyncio
    async def test_household_rewards_are_the_fallback(self, db_session, user, make_user, make_household):
        """Household rewards fill in when the crawler has none."""
        partner = await make_user(display_name="donut")
        household = await make_household(user, partner)
        shared = await create_reward(db_session, partner.id, "gold", "Weekend away", household_id=household.id)
        tier = await get_tier_by_slug(db_session, "gold")

        pool = await get_reward_pool(db_session, user.id, tier.id)
        assert [r.id for r in pool] == [shared.id]

    @pytest.mark.asyncio
    async def test_own_rewards_win_over_household(self, db_session, user, make_user, make_household):
        """A crawler's own rewards take precedence."""
        partner = await make_user(display_name="donut")
        household = await make_household(user, partner)
        await create_reward(db_session, partner.id, "gold", "Weekend away", household_id=household.id)
        own = await create_reward(db_session, user.id, "gold", "New headphones")
        tier = await get_tier_by_slug(db_session, "gold")

        pool = await get_reward_pool(db_session, user.id, tier.id)
        assert [r.id for r in pool] == [own.id]

    @pytest.mark.asyncio
    async def test_other_households_are_not_shared(self, db_session, user, make_user, make_household):
        """Rewards never leak across households."""
        stranger = await make_user(display_name="mordecai")
        elsewhere = await make_household(stranger, name="Elsewhere")
        await create_reward(db_session, stranger.id, "gold", "Their reward", household_id=elsewhere.id)
        await make_household(user)
        tier = await get_tier_by_slug(db_session, "gold")

        assert await get_reward_pool(db_session, user.id, tier.id) == []

    @pytest.mark.asyncio
    async def test_deactivated_rewards_leave_the_pool(self, db_session, user):
        """Retired rewards drop out of the pool and default listing."""
        reward = await create_reward(db_session, user.id, "bronze", "Donut")
        assert await deactivate_reward(db_session, user.id, reward.id)
        tier = await get_tier_by_slug(db_session, "bronze")

        assert await get_reward_pool(db_session, user.id, tier.id) == []
        assert await list_rewards(db_session, user.id) == []
        assert len(await list_rewards(db_session, user.id, include_inactive=True)) == 1

    @pytest.mark.asyncio
    async def test_only_creator_can_deactivate(self, db_session, user, make_user):
        """Only the reward's creator can retire it."""
        other = await make_user()
        reward = await create_reward(db_session, user.id, "bronze", "Donut")
        assert not await deactivate_reward(db_session, other.id, reward.id)

    @pytest.mark.asyncio
    async def test_unknown_tier_is_rejected(self, db_session, user):
        """Rewards need a known tier."""
        assert await create_reward(db_session, user.id, "diamond", "Nope") is None


class TestRedeem:
    @pytest.mark.asyncio
    async def test_redeem_requires_opened_box(self, db_session, user):
        """Only an opened, unredeemed box can be redeemed."""
        await create_reward(db_session, user.id, "bronze", "Fancy coffee")
        box = await mint_loot_box(db_session, user.id, "bronze")

        assert not await redeem_reward(db_session, user.id, box.id)
        await open_loot_box(db_session, user.id, box.id)
        assert await redeem_reward(db_session, user.id, box.id)
        assert not await redeem_reward(db_session, user.id, box.id)

        box = await _reload(db_session, box.id)
        assert box.reward_redeemed
        assert box.redeemed_at is not None


class TestListBoxes:
    @pytest.mark.asyncio
    async def test_filter_by_opened(self, db_session, user):
        """Listings filter on opened state."""
        await create_reward(db_session, user.id, "bronze", "Fancy coffee")
        first = await mint_loot_box(db_session, user.id, "bronze")
        await mint_loot_box(db_session, user.id, "bronze")
        await open_loot_box(db_session, user.id, first.id)

        assert len(await list_loot_boxes(db_session, user.id)) == 2
        assert [b.id for b in await list_loot_boxes(db_session, user.id, opened=True)] == [first.id]
        assert len(await list_loot_boxes(db_session, user.id, opened=False)) == 1
