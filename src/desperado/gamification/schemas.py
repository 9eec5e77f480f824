"""Pydantic request/response models for gamification endpoints."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field

# --- Profile / XP ---


class FloorResponse(BaseModel):
    floor_number: int
    name: str
    description: str | None = None
    icon: str | None = None
    color: str | None = None


class ProfileResponse(BaseModel):
    crawler_name: str
    title: str | None = None
    total_xp: int
    current_level: int
    xp_to_next_level: int
    xp_in_level: int
    progress: float
    floor: FloorResponse | None = None
    login_streak: int
    longest_login_streak: int
    last_login_date: date | None = None
    showcase_achievement_ids: list[str] = []
    unopened_loot_boxes: int = 0


class ProfileUpdateRequest(BaseModel):
    """Display fields. Omitted fields are left alone; a null or blank title clears it."""

    crawler_name: str | None = Field(None, max_length=128)
    title: str | None = Field(None, max_length=128)
    showcase_achievement_ids: list[str] | None = None


class UnlockedAchievementResponse(BaseModel):
    slug: str
    name: str
    xp_reward: int
    loot_box_tier: str | None = None
    unlock_count: int


class LoginResponse(BaseModel):
    streak: int
    is_new: bool
    xp_awarded: int = 0
    leveled_up: bool = False
    new_level: int | None = None
    achievements: list[UnlockedAchievementResponse] = []


class XPHistoryEntry(BaseModel):
    id: uuid.UUID
    amount: int
    action_type: str
    source_entity_type: str | None = None
    source_entity_id: str | None = None
    description: str | None = None
    multiplier: float
    created_at: datetime


class XPHistoryResponse(BaseModel):
    entries: list[XPHistoryEntry]
    total: int
    page: int
    per_page: int


class LeaderboardEntryResponse(BaseModel):
    rank: int
    user_id: uuid.UUID
    crawler_name: str
    level: int
    title: str | None = None
    is_current_user: bool
    total_xp: int | None = None
    xp_earned: int | None = None
    login_streak: int | None = None
    achievements_unlocked: int | None = None


class LeaderboardResponse(BaseModel):
    leaderboard: list[LeaderboardEntryResponse]
    period: str
    period_start: date | None = None


class LevelEntry(BaseModel):
    level: int
    xp_required: int
    floor: int


class AllLevelsResponse(BaseModel):
    levels: list[LevelEntry]


# --- Achievements ---


class AchievementResponse(BaseModel):
    slug: str
    name: str
    description: str
    category: str
    tier: str
    xp_reward: int
    icon: str | None = None
    loot_box_tier: str | None = None
    is_hidden: bool
    is_party: bool
    is_repeatable: bool
    unlock_count: int = 0
    last_unlocked_at: datetime | None = None


class AchievementsResponse(BaseModel):
    achievements: list[AchievementResponse]
    total: int
    unlocked: int


# --- Loot boxes ---


class LootBoxResponse(BaseModel):
    id: uuid.UUID
    tier: str
    tier_name: str
    source_description: str | None = None
    opened: bool
    opened_at: datetime | None = None
    reward_name: str | None = None
    reward_redeemed: bool
    created_at: datetime


class LootBoxesResponse(BaseModel):
    loot_boxes: list[LootBoxResponse]


class LootBoxOpenResponse(BaseModel):
    loot_box_id: uuid.UUID
    tier_name: str
    reward_id: uuid.UUID
    reward_name: str
    reward_description: str | None = None
    reward_icon: str | None = None


# --- Rewards ---


class RewardCreateRequest(BaseModel):
    tier: str = Field(pattern="^(bronze|silver|gold|platinum)$")
    name: str = Field(min_length=1, max_length=128)
    description: str | None = Field(default=None, max_length=1000)
    icon: str | None = Field(default=None, max_length=16)
    household: bool = False


class RewardResponse(BaseModel):
    id: uuid.UUID
    tier_id: uuid.UUID
    name: str
    description: str | None = None
    icon: str | None = None
    is_household: bool
    active: bool
    times_won: int


class RewardsResponse(BaseModel):
    rewards: list[RewardResponse]
