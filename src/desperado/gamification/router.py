"""Gamification API endpoints: profile, leaderboard, login streak, XP, achievements, loot boxes, rewards."""

from __future__ import annotations

import uuid
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from desperado.auth.dependencies import get_current_user
from desperado.background import DetachedTaskGroup, get_detached
from desperado.database import get_session
from desperado.db.models import CrawlerProfile, LootBox, LootBoxReward, User, XpAction
from desperado.gamification import loot_box_service
from desperado.gamification.achievement_engine import AchievementEngine, list_achievements
from desperado.gamification.leaderboard_service import get_leaderboard
from desperado.gamification.level_thresholds import calculate_level, level_table
from desperado.gamification.profile_service import update_profile
from desperado.gamification.schemas import (
    AchievementResponse,
    AchievementsResponse,
    AllLevelsResponse,
    FloorResponse,
    LeaderboardEntryResponse,
    LeaderboardResponse,
    LevelEntry,
    LoginResponse,
    LootBoxesResponse,
    LootBoxOpenResponse,
    LootBoxResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    RewardCreateRequest,
    RewardResponse,
    RewardsResponse,
    UnlockedAchievementResponse,
    XPHistoryEntry,
    XPHistoryResponse,
)
from desperado.gamification.xp_service import award_xp, ensure_profile, get_xp_history, update_login_streak
from desperado.households import get_primary_household_id
from desperado.redis_client import get_redis_optional

router = APIRouter(prefix="/api/v1", tags=["Gamification"])

DAILY_LOGIN_FALLBACK_XP = 5


@router.get("/levels", response_model=AllLevelsResponse)
async def get_levels():
    """Level thresholds and floors."""
    return AllLevelsResponse(levels=[LevelEntry(**row) for row in level_table()])


async def _profile_response(db: AsyncSession, profile: CrawlerProfile) -> ProfileResponse:
    info = calculate_level(profile.total_xp)
    unopened = (
        await db.execute(
            select(func.count())
            .select_from(LootBox)
            .where(LootBox.user_id == profile.user_id, LootBox.opened.is_(False))
        )
    ).scalar_one()

    floor = profile.floor
    return ProfileResponse(
        crawler_name=profile.crawler_name,
        title=profile.title,
        total_xp=profile.total_xp,
        current_level=profile.current_level,
        xp_to_next_level=profile.xp_to_next_level,
        xp_in_level=info.xp_in_level,
        progress=info.progress,
        floor=FloorResponse(
            floor_number=floor.floor_number,
            name=floor.name,
            description=floor.description,
            icon=floor.icon,
            color=floor.color,
        ) if floor else None,
        login_streak=profile.login_streak,
        longest_login_streak=profile.longest_login_streak,
        last_login_date=profile.last_login_date,
        showcase_achievement_ids=profile.showcase_achievement_ids or [],
        unopened_loot_boxes=unopened,
    )


@router.get("/gamification", response_model=ProfileResponse)
async def get_profile(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """The caller's crawler profile, created on first visit."""
    profile = await ensure_profile(db, user.id)
    await db.commit()
    return await _profile_response(db, profile)


@router.patch("/gamification", response_model=ProfileResponse)
async def update_my_profile(
    body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Update crawler name, title and achievement showcase."""
    try:
        profile = await update_profile(db, user.id, body.model_dump(include=body.model_fields_set))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return await _profile_response(db, profile)


@router.get("/gamification/leaderboard", response_model=LeaderboardResponse)
async def leaderboard(
    period: str = Query("alltime", pattern="^(alltime|weekly|monthly)$"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Household ranking by all-time XP, or by XP earned this week or month."""
    entries, start = await get_leaderboard(db, user.id, period)
    return LeaderboardResponse(
        leaderboard=[LeaderboardEntryResponse(**asdict(e)) for e in entries],
        period=period,
        period_start=start,
    )


@router.post("/gamification/login", response_model=LoginResponse)
async def record_login(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_redis_optional),
    detached: DetachedTaskGroup = Depends(get_detached),
):
    """Record today's login: streak, daily XP on the first login of the day, streak achievements."""
    streak = await update_login_streak(db, user.id)
    response = LoginResponse(streak=streak.streak, is_new=streak.is_new)

    if streak.is_new:
        base_xp = (
            await db.execute(select(XpAction.base_xp).where(XpAction.slug == "daily_login"))
        ).scalar_one_or_none()
        award = await award_xp(
            db,
            user.id,
            DAILY_LOGIN_FALLBACK_XP if base_xp is None else base_xp,
            "daily_login",
            "Daily login",
            redis=redis,
            detached=detached,
        )
        response.xp_awarded = award.xp_awarded
        response.leveled_up = award.leveled_up
        response.new_level = award.new_level

        engine = AchievementEngine(db, redis=redis, detached=detached)
        unlocked = await engine.check_achievements(user.id, "login_streak", {"login_streak": streak.streak})
        response.achievements = [
            UnlockedAchievementResponse(
                slug=u.slug, name=u.name, xp_reward=u.xp_reward,
                loot_box_tier=u.loot_box_tier, unlock_count=u.unlock_count,
            )
            for u in unlocked
        ]

    await db.commit()
    return response


@router.get("/gamification/xp/history", response_model=XPHistoryResponse)
async def xp_history(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Paginated XP ledger, newest first."""
    entries, total = await get_xp_history(db, user.id, page, per_page)
    return XPHistoryResponse(
        entries=[
            XPHistoryEntry(
                id=e.id,
                amount=e.amount,
                action_type=e.action_type,
                source_entity_type=e.source_entity_type,
                source_entity_id=e.source_entity_id,
                description=e.description,
                multiplier=e.multiplier,
                created_at=e.created_at,
            )
            for e in entries
        ],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/gamification/achievements", response_model=AchievementsResponse)
async def get_achievements(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    items = await list_achievements(db, user.id)
    return AchievementsResponse(
        achievements=[AchievementResponse(**item) for item in items],
        total=len(items),
        unlocked=sum(1 for item in items if item["unlock_count"] > 0),
    )


# ── Loot boxes ──


@router.get("/gamification/loot-boxes", response_model=LootBoxesResponse)
async def get_loot_boxes(
    opened: bool | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    boxes = await loot_box_service.list_loot_boxes(db, user.id, opened)
    return LootBoxesResponse(
        loot_boxes=[
            LootBoxResponse(
                id=b.id,
                tier=b.tier.slug,
                tier_name=b.tier.name,
                source_description=b.source_description,
                opened=b.opened,
                opened_at=b.opened_at,
                reward_name=b.reward.name if b.reward else None,
                reward_redeemed=b.reward_redeemed,
                created_at=b.created_at,
            )
            for b in boxes
        ]
    )


@router.post("/gamification/loot-boxes/{box_id}/open", response_model=LootBoxOpenResponse)
async def open_loot_box(
    box_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Open a box. 404 when it is missing, not yours, already opened, or its tier has no rewards."""
    result = await loot_box_service.open_loot_box(db, user.id, box_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Loot box not found, already opened, or no rewards configured")
    await db.commit()
    return LootBoxOpenResponse(
        loot_box_id=result.loot_box_id,
        tier_name=result.tier_name,
        reward_id=result.reward_id,
        reward_name=result.reward_name,
        reward_description=result.reward_description,
        reward_icon=result.reward_icon,
    )


@router.post("/gamification/loot-boxes/{box_id}/redeem")
async def redeem_loot_box(
    box_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    if not await loot_box_service.redeem_reward(db, user.id, box_id):
        raise HTTPException(status_code=404, detail="Nothing to redeem")
    await db.commit()
    return {"status": "redeemed"}


# ── Reward pool ──


def _reward_response(r: LootBoxReward) -> RewardResponse:
    return RewardResponse(
        id=r.id,
        tier_id=r.tier_id,
        name=r.name,
        description=r.description,
        icon=r.icon,
        is_household=r.is_household,
        active=r.active,
        times_won=r.times_won,
    )


@router.get("/gamification/rewards", response_model=RewardsResponse)
async def get_rewards(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    rewards = await loot_box_service.list_rewards(db, user.id)
    return RewardsResponse(rewards=[_reward_response(r) for r in rewards])


@router.post("/gamification/rewards", response_model=RewardResponse, status_code=201)
async def create_reward(
    body: RewardCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    household_id = None
    if body.household:
        household_id = await get_primary_household_id(db, user.id)
        if household_id is None:
            raise HTTPException(status_code=400, detail="Join a household before adding household rewards")

    reward = await loot_box_service.create_reward(
        db, user.id, body.tier, body.name, body.description, body.icon, household_id
    )
    if reward is None:
        raise HTTPException(status_code=400, detail=f"Unknown loot box tier: {body.tier}")
    await db.commit()
    return _reward_response(reward)


@router.delete("/gamification/rewards/{reward_id}", status_code=204)
async def delete_reward(
    reward_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Retire a reward from the pool. Past wins keep their reference."""
    if not await loot_box_service.deactivate_reward(db, user.id, reward_id):
        raise HTTPException(status_code=404, detail="Reward not found")
    await db.commit()
