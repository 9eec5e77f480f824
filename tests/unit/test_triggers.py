"""Trigger parsing and the pure predicates."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from desperado.gamification.triggers import (
    ContextStreakTrigger,
    CountTrigger,
    CustomTrigger,
    ProfileTrigger,
    SpeedTrigger,
    UnknownTrigger,
    context_value,
    parse_timestamp,
    parse_trigger,
    speed_met,
)


class TestParseTrigger:
    def test_count_kinds(self):
        """Count triggers carry their kind and threshold."""
        assert parse_trigger("task_count", {"threshold": 10}) == CountTrigger(kind="task_count", threshold=10)
        assert parse_trigger("shopping_count", {"threshold": 3}) == CountTrigger(kind="shopping_count", threshold=3)

    def test_profile_fields(self):
        """Streak and level triggers read a profile field."""
        assert parse_trigger("login_streak", {"threshold": 30}) == ProfileTrigger(field="login_streak", threshold=30)
        assert parse_trigger("level_reached", {"threshold": 11}) == ProfileTrigger(
            field="current_level", threshold=11
        )

    def test_context_keys(self):
        """Context streak triggers name the context key they read."""
        assert parse_trigger("habit_streak", {"threshold": 7}) == ContextStreakTrigger(
            context_key="current_streak", threshold=7
        )
        assert parse_trigger("party_habit_sync", {"threshold": 14}) == ContextStreakTrigger(
            context_key="sync_streak", threshold=14
        )

    def test_speed_defaults_to_an_hour(self):
        """Speed triggers default to a 60 minute limit."""
        assert parse_trigger("speed_complete", {}) == SpeedTrigger(max_minutes=60)
        assert parse_trigger("speed_complete", {"max_minutes": 15}) == SpeedTrigger(max_minutes=15)

    def test_custom_keeps_its_type(self):
        """Custom triggers keep their type, even when missing."""
        assert parse_trigger("custom", {"type": "late_night_complete"}) == CustomTrigger("late_night_complete")
        assert parse_trigger("custom", None) == CustomTrigger(None)

    def test_unrecognised_type_is_unknown(self):
        """Unsupported trigger types parse as unknown."""
        assert parse_trigger("task_streak", {"threshold": 7}) == UnknownTrigger("task_streak")

    @pytest.mark.parametrize("raw", [None, "", "abc", 0, [], {}])
    def test_bad_threshold_becomes_zero(self, raw):
        """Unusable thresholds parse as zero."""
        assert parse_trigger("task_count", {"threshold": raw}).threshold == 0

    def test_numeric_string_threshold(self):
        """Numeric strings are accepted as thresholds."""
        assert parse_trigger("task_count", {"threshold": "5"}).threshold == 5


class TestContextValue:
    def test_missing_is_zero(self):
        """A missing context key reads as zero."""
        assert context_value({}, "current_streak") == 0

    def test_reads_number(self):
        """Numbers are read straight from the context."""
        assert context_value({"current_streak": 8}, "current_streak") == 8


class TestSpeed:
    def test_iso_strings_with_z(self):
        """ISO timestamps with a Z suffix are understood."""
        context = {"created_at": "2026-01-01T10:00:00Z", "completed_at": "2026-01-01T10:45:00Z"}
        assert speed_met(SpeedTrigger(60), context)

    def test_too_slow(self):
        """Completions past the limit don't count."""
        context = {"created_at": "2026-01-01T10:00:00Z", "completed_at": "2026-01-01T11:01:00Z"}
        assert not speed_met(SpeedTrigger(60), context)

    def test_exactly_at_limit(self):
        """Finishing exactly at the limit still counts."""
        created = datetime(2026, 1, 1, 10, tzinfo=timezone.utc)
        context = {"created_at": created, "completed_at": created + timedelta(minutes=60)}
        assert speed_met(SpeedTrigger(60), context)

    def test_missing_timestamp(self):
        """Either timestamp missing means not met."""
        assert not speed_met(SpeedTrigger(60), {"created_at": "2026-01-01T10:00:00Z"})
        assert not speed_met(SpeedTrigger(60), {})

    def test_mixed_naive_and_aware(self):
        """Naive timestamps are read as UTC alongside aware ones."""
        context = {
            "created_at": datetime(2026, 1, 1, 10),
            "completed_at": datetime(2026, 1, 1, 10, 30, tzinfo=timezone.utc),
        }
        assert speed_met(SpeedTrigger(60), context)

    def test_parse_timestamp_rejects_non_strings(self):
        """Non-strings and blanks don't parse."""
        assert parse_timestamp(12345) is None
        assert parse_timestamp("") is None
