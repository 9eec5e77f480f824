"""XP award service: append-only ledger, cached profile totals, level-up detection.

The profile write is a compare-and-swap on ``crawler_profiles.version`` so
concurrent awards to the same crawler never lose an update.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from desperado.background import DetachedTaskGroup
from desperado.config import get_settings
from desperado.database import upsert
from desperado.db.models import CrawlerProfile, Floor, User, XpLedger
from desperado.gamification.level_thresholds import calculate_level, get_floor_for_level
from desperado.notifications.notification_service import trigger_notification

logger = logging.getLogger(__name__)

DEFAULT_CRAWLER_NAME = "Unknown Crawler"


class XPAwardError(RuntimeError):
    """The profile could not be created or updated."""


@dataclass
class XPAwardResult:
    xp_awarded: int
    new_total: int
    leveled_up: bool
    old_level: int
    new_level: int
    new_floor: bool
    old_floor: int
    new_floor_num: int


@dataclass
class LoginStreakResult:
    streak: int
    is_new: bool


def effective_amount(amount: int, multiplier: float = 1.0) -> int:
    """``amount * multiplier`` rounded half up."""
    return math.floor(amount * multiplier + 0.5)


async def get_floor_id(db: AsyncSession, floor_number: int) -> uuid.UUID | None:
    result = await db.execute(select(Floor.id).where(Floor.floor_number == floor_number))
    return result.scalar_one_or_none()


async def get_profile(db: AsyncSession, user_id: uuid.UUID) -> CrawlerProfile | None:
    """Load the profile, always refreshing from the database."""
    result = await db.execute(
        select(CrawlerProfile)
        .where(CrawlerProfile.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def ensure_profile(db: AsyncSession, user_id: uuid.UUID) -> CrawlerProfile:
    """Create the crawler profile if missing (floor 1, level 1, 0 XP)."""
    profile = await get_profile(db, user_id)
    if profile is not None:
        return profile

    full_name = (await db.execute(select(User.full_name).where(User.id == user_id))).scalar_one_or_none()
    now = datetime.now(timezone.utc)
    stmt = upsert(db, CrawlerProfile).values(
        id=uuid.uuid4(),
        user_id=user_id,
        crawler_name=full_name or DEFAULT_CRAWLER_NAME,
        current_floor_id=await get_floor_id(db, 1),
        total_xp=0,
        current_level=1,
        xp_to_next_level=100,
        login_streak=0,
        longest_login_streak=0,
        showcase_achievement_ids=[],
        version=0,
        created_at=now,
        updated_at=now,
    )
    await db.execute(stmt.on_conflict_do_nothing(index_elements=["user_id"]))
    await db.flush()

    profile = await get_profile(db, user_id)
    if profile is None:
        msg = f"Failed to create crawler profile for {user_id}"
        raise XPAwardError(msg)
    logger.info("Created crawler profile for %s", user_id)
    return profile


async def award_xp(
    db: AsyncSession,
    user_id: uuid.UUID,
    amount: int,
    action_type: str,
    description: str,
    source_type: str | None = None,
    source_id: str | None = None,
    multiplier: float = 1.0,
    *,
    metadata: dict[str, Any] | None = None,
    redis: Any | None = None,
    detached: DetachedTaskGroup | None = None,
    _create_missing: bool = True,
) -> XPAwardResult:
    """Award (or debit) XP.

    1. Compare-and-swap the profile total (floored at 0), level and floor
    2. Append a ledger row with the effective (post-multiplier) amount,
       sequenced by the profile version the swap wrote
    3. On level up, emit one best-effort notification

    A missing profile is created and the award retried exactly once.
    Ledger and profile errors propagate.
    """
    profile = await get_profile(db, user_id)
    if profile is None:
        if not _create_missing:
            msg = f"Crawler profile for {user_id} still missing after creation"
            raise XPAwardError(msg)
        await ensure_profile(db, user_id)
        return await award_xp(
            db, user_id, amount, action_type, description, source_type, source_id, multiplier,
            metadata=metadata, redis=redis, detached=detached, _create_missing=False,
        )

    xp = effective_amount(amount, multiplier)
    now = datetime.now(timezone.utc)

    max_attempts = get_settings().xp_cas_max_attempts
    for attempt in range(1, max_attempts + 1):
        old_total = profile.total_xp
        new_total = max(0, old_total + xp)
        old_calc = calculate_level(old_total)
        new_calc = calculate_level(new_total)
        old_floor = get_floor_for_level(old_calc.level)
        new_floor_num = get_floor_for_level(new_calc.level)

        floor_id = profile.current_floor_id
        if new_floor_num != old_floor:
            floor_id = await get_floor_id(db, new_floor_num) or floor_id

        new_version = profile.version + 1
        result = await db.execute(
            update(CrawlerProfile)
            .where(CrawlerProfile.user_id == user_id, CrawlerProfile.version == profile.version)
            .values(
                total_xp=new_total,
                current_level=new_calc.level,
                xp_to_next_level=new_calc.xp_to_next,
                current_floor_id=floor_id,
                version=new_version,
                updated_at=now,
            )
        )
        if result.rowcount == 1:
            break

        logger.info("XP write conflict for %s (attempt %d/%d)", user_id, attempt, max_attempts)
        profile = await get_profile(db, user_id)
        if profile is None:
            msg = f"Crawler profile for {user_id} disappeared during XP award"
            raise XPAwardError(msg)
    else:
        msg = f"XP award for {user_id} lost {max_attempts} consecutive write races"
        raise XPAwardError(msg)

    db.add(XpLedger(
        user_id=user_id,
        amount=xp,
        action_type=action_type,
        source_entity_type=source_type,
        source_entity_id=str(source_id) if source_id is not None else None,
        description=description,
        multiplier=multiplier,
        ledger_metadata=metadata or {},
        seq=new_version,
        created_at=now,
    ))
    await db.flush()

    award = XPAwardResult(
        xp_awarded=xp,
        new_total=new_total,
        leveled_up=new_calc.level > old_calc.level,
        old_level=old_calc.level,
        new_level=new_calc.level,
        new_floor=new_floor_num > old_floor,
        old_floor=old_floor,
        new_floor_num=new_floor_num,
    )

    if award.leveled_up:
        await _emit_level_up(db, user_id, award, redis=redis, detached=detached)

    return award


async def _emit_level_up(
    db: AsyncSession,
    user_id: uuid.UUID,
    award: XPAwardResult,
    *,
    redis: Any | None,
    detached: DetachedTaskGroup | None,
) -> None:
    """Level-up notification. Never fails the award."""
    if award.new_floor:
        body = f"Welcome to Floor {award.new_floor_num}. The System acknowledges your continued existence."
    else:
        body = f"{award.new_total:,} XP total. Keep crawling."

    try:
        async with db.begin_nested():
            await trigger_notification(
                db,
                user_id,
                title=f"Level Up! You reached Level {award.new_level}",
                event="level_up",
                body=body,
                metadata={"level": award.new_level, "floor": award.new_floor_num, "total_xp": award.new_total},
                redis=redis,
                detached=detached,
            )
    except Exception:
        logger.warning("Failed to emit level_up notification for %s", user_id, exc_info=True)


async def update_login_streak(
    db: AsyncSession,
    user_id: uuid.UUID,
    today: date | None = None,
) -> LoginStreakResult:
    """Record today's login. Consecutive days extend the streak, gaps reset it to 1."""
    today = today or datetime.now(timezone.utc).date()

    profile = await get_profile(db, user_id)
    if profile is None:
        profile = await ensure_profile(db, user_id)
        profile.login_streak = 1
        profile.longest_login_streak = max(profile.longest_login_streak, 1)
        profile.last_login_date = today
        await db.flush()
        return LoginStreakResult(streak=1, is_new=True)

    if profile.last_login_date == today:
        return LoginStreakResult(streak=profile.login_streak, is_new=False)

    consecutive = profile.last_login_date == today - timedelta(days=1)
    new_streak = profile.login_streak + 1 if consecutive else 1

    profile.login_streak = new_streak
    profile.longest_login_streak = max(profile.longest_login_streak, new_streak)
    profile.last_login_date = today
    profile.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return LoginStreakResult(streak=new_streak, is_new=True)


async def get_xp_history(
    db: AsyncSession,
    user_id: uuid.UUID,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[XpLedger], int]:
    """Ledger entries, most recent first."""
    total = (
        await db.execute(select(func.count()).select_from(XpLedger).where(XpLedger.user_id == user_id))
    ).scalar_one()
    result = await db.execute(
        select(XpLedger)
        .where(XpLedger.user_id == user_id)
        .order_by(XpLedger.created_at.desc(), XpLedger.seq.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


def replay_ledger(amounts: list[int]) -> int:
    """Fold ledger amounts with the zero floor applied at every step."""
    total = 0
    for amount in amounts:
        total = max(0, total + amount)
    return total


async def reconcile_total(db: AsyncSession, user_id: uuid.UUID) -> int:
    """Recompute the crawler's total from the ledger alone, in write order."""
    result = await db.execute(
        select(XpLedger.amount).where(XpLedger.user_id == user_id).order_by(XpLedger.seq.asc())
    )
    return replay_ledger(list(result.scalars().all()))
