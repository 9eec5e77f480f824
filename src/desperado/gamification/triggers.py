"""Achievement trigger kinds.

``parse_trigger`` turns an achievement's stored ``trigger_type`` and
``trigger_config`` into one of a closed set of frozen dataclasses. The
evaluator matches on the class; anything unrecognised becomes
``UnknownTrigger`` and never unlocks.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

DEFAULT_SPEED_MAX_MINUTES = 60

# Counted from stored household activity.
COUNT_KINDS = frozenset({"task_count", "habit_count", "goal_completed", "shopping_count"})

# Read from the crawler profile.
PROFILE_FIELDS: dict[str, str] = {
    "login_streak": "login_streak",
    "level_reached": "current_level",
}

# Pre-computed by the caller and passed in the evaluation context.
CONTEXT_KEYS: dict[str, str] = {
    "habit_streak": "current_streak",
    "zero_overdue": "consecutive_zero_overdue_days",
    "budget_under": "consecutive_under_budget_months",
    "combo_streak": "all_habits_streak",
    "party_task_streak": "party_task_streak",
    "party_habit_sync": "sync_streak",
}


@dataclass(frozen=True)
class CountTrigger:
    kind: str
    threshold: float


@dataclass(frozen=True)
class ProfileTrigger:
    field: str
    threshold: float


@dataclass(frozen=True)
class ContextStreakTrigger:
    context_key: str
    threshold: float


@dataclass(frozen=True)
class SpeedTrigger:
    max_minutes: float = DEFAULT_SPEED_MAX_MINUTES


@dataclass(frozen=True)
class CustomTrigger:
    custom_type: str | None


@dataclass(frozen=True)
class UnknownTrigger:
    trigger_type: str


Trigger = CountTrigger | ProfileTrigger | ContextStreakTrigger | SpeedTrigger | CustomTrigger | UnknownTrigger


def _number(value: Any, default: float = 0) -> float:  # noqa: ANN401
    """Coerce loosely typed JSON values; missing/falsey/invalid become ``default``."""
    if not value:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def parse_trigger(trigger_type: str, config: dict[str, Any] | None) -> Trigger:
    config = config or {}
    threshold = _number(config.get("threshold"))

    if trigger_type in COUNT_KINDS:
        return CountTrigger(kind=trigger_type, threshold=threshold)
    if trigger_type in PROFILE_FIELDS:
        return ProfileTrigger(field=PROFILE_FIELDS[trigger_type], threshold=threshold)
    if trigger_type in CONTEXT_KEYS:
        return ContextStreakTrigger(context_key=CONTEXT_KEYS[trigger_type], threshold=threshold)
    if trigger_type == "speed_complete":
        return SpeedTrigger(max_minutes=_number(config.get("max_minutes"), DEFAULT_SPEED_MAX_MINUTES))
    if trigger_type == "custom":
        return CustomTrigger(custom_type=config.get("type"))
    return UnknownTrigger(trigger_type=trigger_type)


def parse_timestamp(value: Any) -> datetime | None:  # noqa: ANN401
    """Accept datetimes or ISO-8601 strings (including a trailing 'Z')."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return None


def context_value(context: dict[str, Any], key: str) -> float:
    return _number(context.get(key))


def speed_met(trigger: SpeedTrigger, context: dict[str, Any]) -> bool:
    """Completed within ``max_minutes`` of creation; both timestamps are required."""
    created_at = parse_timestamp(context.get("created_at"))
    completed_at = parse_timestamp(context.get("completed_at"))
    if created_at is None or completed_at is None:
        return False
    if (created_at.tzinfo is None) != (completed_at.tzinfo is None):
        created_at = created_at.replace(tzinfo=created_at.tzinfo or timezone.utc)
        completed_at = completed_at.replace(tzinfo=completed_at.tzinfo or timezone.utc)
    elapsed = completed_at - created_at
    return elapsed.total_seconds() <= trigger.max_minutes * 60
