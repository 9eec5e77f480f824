"""Household leaderboard.

All-time ranks come straight from the cached profile totals. Weekly and
monthly ranks sum the XP ledger from the start of the period, so only
crawlers with ledger activity in the period appear.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from desperado.db.models import AchievementUnlock, CrawlerProfile, HouseholdMember, XpLedger
from desperado.households import get_household_ids

logger = logging.getLogger(__name__)

PERIODS = ("alltime", "weekly", "monthly")


@dataclass
class LeaderboardEntry:
    rank: int
    user_id: uuid.UUID
    crawler_name: str
    level: int
    title: str | None
    is_current_user: bool
    total_xp: int | None = None
    xp_earned: int | None = None
    login_streak: int | None = None
    achievements_unlocked: int | None = None


def period_start(period: str, now: datetime | None = None) -> date | None:
    """First day of the period containing ``now`` (UTC). None for all-time.

    Weeks start on Monday.
    """
    if period == "alltime":
        return None
    today = (now or datetime.now(timezone.utc)).astimezone(timezone.utc).date()
    if period == "weekly":
        return today - timedelta(days=today.weekday())
    if period == "monthly":
        return today.replace(day=1)
    msg = f"Unknown period: {period}"
    raise ValueError(msg)


async def get_party_member_ids(db: AsyncSession, user_id: uuid.UUID) -> list[uuid.UUID]:
    """Everyone sharing a household with ``user_id``, the user included."""
    household_ids = await get_household_ids(db, user_id)
    if not household_ids:
        return [user_id]
    result = await db.execute(
        select(HouseholdMember.user_id).where(HouseholdMember.household_id.in_(household_ids)).distinct()
    )
    members = set(result.scalars().all())
    members.add(user_id)
    return list(members)


async def _achievement_counts(db: AsyncSession, user_ids: list[uuid.UUID]) -> dict[uuid.UUID, int]:
    result = await db.execute(
        select(AchievementUnlock.user_id, func.count(AchievementUnlock.id))
        .where(AchievementUnlock.user_id.in_(user_ids))
        .group_by(AchievementUnlock.user_id)
    )
    return {row[0]: row[1] for row in result}


async def get_leaderboard(
    db: AsyncSession,
    current_user_id: uuid.UUID,
    period: str = "alltime",
    now: datetime | None = None,
) -> tuple[list[LeaderboardEntry], date | None]:
    """Ranked entries for the caller's household plus the period start."""
    start = period_start(period, now)
    member_ids = await get_party_member_ids(db, current_user_id)

    profiles = (
        await db.execute(
            select(CrawlerProfile)
            .where(CrawlerProfile.user_id.in_(member_ids))
            .execution_options(populate_existing=True)
        )
    ).scalars().all()
    by_user = {p.user_id: p for p in profiles}

    if start is None:
        counts = await _achievement_counts(db, member_ids)
        ranked = sorted(profiles, key=lambda p: (-p.total_xp, p.crawler_name, str(p.user_id)))
        entries = [
            LeaderboardEntry(
                rank=idx,
                user_id=p.user_id,
                crawler_name=p.crawler_name,
                level=p.current_level,
                title=p.title,
                is_current_user=p.user_id == current_user_id,
                total_xp=p.total_xp,
                login_streak=p.login_streak,
                achievements_unlocked=counts.get(p.user_id, 0),
            )
            for idx, p in enumerate(ranked, start=1)
        ]
        return entries, None

    since = datetime.combine(start, time.min, tzinfo=timezone.utc)
    result = await db.execute(
        select(XpLedger.user_id, func.sum(XpLedger.amount))
        .where(XpLedger.user_id.in_(member_ids), XpLedger.created_at >= since)
        .group_by(XpLedger.user_id)
    )
    earned = {row[0]: int(row[1] or 0) for row in result}

    def _name(uid: uuid.UUID) -> str:
        profile = by_user.get(uid)
        return profile.crawler_name if profile else "Unknown"

    ranked_ids = sorted(earned, key=lambda uid: (-earned[uid], _name(uid), str(uid)))
    entries = []
    for idx, uid in enumerate(ranked_ids, start=1):
        profile = by_user.get(uid)
        entries.append(LeaderboardEntry(
            rank=idx,
            user_id=uid,
            crawler_name=_name(uid),
            level=profile.current_level if profile else 1,
            title=profile.title if profile else None,
            is_current_user=uid == current_user_id,
            xp_earned=earned[uid],
        ))
    logger.debug("Built %s leaderboard from %s with %d entries", period, start, len(entries))
    return entries, start
