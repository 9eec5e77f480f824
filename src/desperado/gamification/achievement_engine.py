"""Achievement engine: evaluates trigger predicates and unlocks achievements."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from desperado.background import DetachedTaskGroup
from desperado.db.models import (
    Achievement,
    AchievementUnlock,
    CrawlerProfile,
    Goal,
    HabitCheckIn,
    ShoppingList,
    Task,
)
from desperado.gamification.loot_box_service import mint_loot_box
from desperado.gamification.triggers import (
    ContextStreakTrigger,
    CountTrigger,
    CustomTrigger,
    ProfileTrigger,
    SpeedTrigger,
    Trigger,
    UnknownTrigger,
    context_value,
    parse_trigger,
    speed_met,
)
from desperado.gamification.xp_service import award_xp
from desperado.notifications.notification_service import trigger_notification

logger = logging.getLogger(__name__)


@dataclass
class UnlockedAchievement:
    achievement_id: uuid.UUID
    slug: str
    name: str
    description: str
    xp_reward: int
    loot_box_tier: str | None
    is_party: bool
    unlock_count: int
    loot_box_id: uuid.UUID | None = None


def _json_safe(context: dict[str, Any]) -> dict[str, Any]:
    safe: dict[str, Any] = {}
    for key, value in context.items():
        if isinstance(value, datetime):
            safe[key] = value.isoformat()
        elif isinstance(value, uuid.UUID):
            safe[key] = str(value)
        else:
            safe[key] = value
    return safe


class AchievementEngine:
    """Evaluates achievement triggers for one crawler at a time."""

    def __init__(
        self,
        db: AsyncSession,
        redis: Any | None = None,
        detached: DetachedTaskGroup | None = None,
    ) -> None:
        self.db = db
        self.redis = redis
        self.detached = detached

    async def _load_candidates(self, trigger_type: str) -> list[Achievement]:
        result = await self.db.execute(
            select(Achievement)
            .where(Achievement.trigger_type == trigger_type, Achievement.active.is_(True))
            .order_by(Achievement.xp_reward.asc(), Achievement.slug.asc())
        )
        return list(result.scalars().all())

    async def _unlock_counts(self, user_id: uuid.UUID) -> dict[uuid.UUID, int]:
        result = await self.db.execute(
            select(AchievementUnlock.achievement_id, func.max(AchievementUnlock.unlock_count))
            .where(AchievementUnlock.user_id == user_id)
            .group_by(AchievementUnlock.achievement_id)
        )
        return {achievement_id: count for achievement_id, count in result}

    async def _count(self, kind: str, user_id: uuid.UUID) -> int:
        match kind:
            case "task_count":
                stmt = select(func.count()).select_from(Task).where(
                    Task.created_by == user_id, Task.completed_at.is_not(None)
                )
            case "habit_count":
                stmt = select(func.count()).select_from(HabitCheckIn).where(HabitCheckIn.checked_by == user_id)
            case "goal_completed":
                stmt = select(func.count()).select_from(Goal).where(
                    Goal.owner_id == user_id, Goal.status == "completed"
                )
            case "shopping_count":
                stmt = select(func.count()).select_from(ShoppingList).where(
                    ShoppingList.created_by == user_id, ShoppingList.completed_at.is_not(None)
                )
            case _:
                return 0
        return (await self.db.execute(stmt)).scalar_one()

    async def _profile_value(self, field: str, user_id: uuid.UUID) -> int:
        column = getattr(CrawlerProfile, field)
        result = await self.db.execute(select(column).where(CrawlerProfile.user_id == user_id))
        return result.scalar_one_or_none() or 0

    async def evaluate(self, trigger: Trigger, user_id: uuid.UUID, context: dict[str, Any]) -> bool:
        """Whether ``trigger`` is satisfied for the crawler right now."""
        match trigger:
            case CountTrigger(kind=kind, threshold=threshold):
                return await self._count(kind, user_id) >= threshold
            case ProfileTrigger(field=field, threshold=threshold):
                return await self._profile_value(field, user_id) >= threshold
            case ContextStreakTrigger(context_key=key, threshold=threshold):
                return context_value(context, key) >= threshold
            case SpeedTrigger():
                return speed_met(trigger, context)
            case CustomTrigger(custom_type=custom_type):
                return custom_type is not None and context.get("custom_type") == custom_type
            case UnknownTrigger():
                return False
            case _:
                return False

    async def _safe_evaluate(
        self,
        achievement: Achievement,
        user_id: uuid.UUID,
        context: dict[str, Any],
    ) -> bool:
        """Evaluate inside a savepoint; errors count as 'not met'."""
        try:
            async with self.db.begin_nested():
                trigger = parse_trigger(achievement.trigger_type, achievement.trigger_config)
                return await self.evaluate(trigger, user_id, context)
        except Exception:
            logger.warning("Trigger evaluation failed for achievement %s", achievement.slug, exc_info=True)
            return False

    async def check_achievements(
        self,
        user_id: uuid.UUID,
        trigger_type: str,
        context: dict[str, Any] | None = None,
    ) -> list[UnlockedAchievement]:
        """Unlock every active ``trigger_type`` achievement the crawler now qualifies for.

        Non-repeatable achievements unlock at most once; repeatable ones add
        a new unlock row each time with the next ``unlock_count``.
        """
        context = context or {}
        candidates = await self._load_candidates(trigger_type)
        if not candidates:
            return []

        counts = await self._unlock_counts(user_id)
        unlocked: list[UnlockedAchievement] = []

        for achievement in candidates:
            existing = counts.get(achievement.id, 0)
            if not achievement.is_repeatable and existing > 0:
                continue
            if not await self._safe_evaluate(achievement, user_id, context):
                continue

            unlock = await self._unlock(achievement, user_id, existing + 1, context)
            counts[achievement.id] = unlock.unlock_count
            unlocked.append(unlock)

        if unlocked:
            logger.info(
                "Unlocked %d achievement(s) for %s: %s",
                len(unlocked), user_id, ", ".join(u.slug for u in unlocked),
            )
        return unlocked

    async def _unlock(
        self,
        achievement: Achievement,
        user_id: uuid.UUID,
        unlock_count: int,
        context: dict[str, Any],
    ) -> UnlockedAchievement:
        self.db.add(AchievementUnlock(
            user_id=user_id,
            achievement_id=achievement.id,
            xp_awarded=achievement.xp_reward,
            unlock_count=unlock_count,
            unlock_metadata=_json_safe(context),
            unlocked_at=datetime.now(timezone.utc),
        ))
        await self.db.flush()

        await award_xp(
            self.db,
            user_id,
            achievement.xp_reward,
            "achievement",
            f"Achievement: {achievement.name}",
            source_type="achievement",
            source_id=str(achievement.id),
            redis=self.redis,
            detached=self.detached,
        )

        box_id = None
        if achievement.loot_box_tier:
            box = await mint_loot_box(
                self.db,
                user_id,
                achievement.loot_box_tier,
                source_achievement_id=achievement.id,
                source_description=f"Unlocked: {achievement.name}",
            )
            box_id = box.id if box else None

        await self._emit_unlocked(achievement, user_id)

        return UnlockedAchievement(
            achievement_id=achievement.id,
            slug=achievement.slug,
            name=achievement.name,
            description=achievement.description,
            xp_reward=achievement.xp_reward,
            loot_box_tier=achievement.loot_box_tier,
            is_party=achievement.is_party,
            unlock_count=unlock_count,
            loot_box_id=box_id,
        )

    async def _emit_unlocked(self, achievement: Achievement, user_id: uuid.UUID) -> None:
        """Achievement notification. Never fails the unlock."""
        loot = f" + {achievement.loot_box_tier} loot box" if achievement.loot_box_tier else ""
        try:
            async with self.db.begin_nested():
                await trigger_notification(
                    self.db,
                    user_id,
                    title=f"Achievement Unlocked: {achievement.name}",
                    event="achievement_unlocked",
                    body=f"{achievement.description} (+{achievement.xp_reward} XP{loot})",
                    metadata={
                        "achievement_id": str(achievement.id),
                        "achievement_slug": achievement.slug,
                        "xp_reward": achievement.xp_reward,
                        "loot_box_tier": achievement.loot_box_tier,
                    },
                    redis=self.redis,
                    detached=self.detached,
                )
        except Exception:
            logger.warning("Failed to emit achievement notification for %s", user_id, exc_info=True)


async def list_achievements(db: AsyncSession, user_id: uuid.UUID) -> list[dict[str, Any]]:
    """All active achievements with the crawler's unlock state. Hidden ones stay masked until unlocked."""
    achievements = (
        await db.execute(
            select(Achievement).where(Achievement.active.is_(True)).order_by(Achievement.category, Achievement.slug)
        )
    ).scalars().all()
    unlocks = await db.execute(
        select(
            AchievementUnlock.achievement_id,
            func.max(AchievementUnlock.unlock_count),
            func.max(AchievementUnlock.unlocked_at),
        )
        .where(AchievementUnlock.user_id == user_id)
        .group_by(AchievementUnlock.achievement_id)
    )
    unlocked = {aid: (count, at) for aid, count, at in unlocks}

    items = []
    for a in achievements:
        count, last_at = unlocked.get(a.id, (0, None))
        masked = a.is_hidden and count == 0
        items.append({
            "slug": a.slug,
            "name": "???" if masked else a.name,
            "description": "Hidden achievement. Keep crawling." if masked else a.description,
            "category": a.category,
            "tier": a.tier,
            "xp_reward": a.xp_reward,
            "icon": None if masked else a.icon,
            "loot_box_tier": a.loot_box_tier,
            "is_hidden": a.is_hidden,
            "is_party": a.is_party,
            "is_repeatable": a.is_repeatable,
            "unlock_count": count,
            "last_unlocked_at": last_at,
        })
    return items
