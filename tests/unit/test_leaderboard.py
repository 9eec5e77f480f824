"""Household leaderboard: all-time totals, period sums and household scoping."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from desperado.db.models import Achievement, AchievementUnlock, XpLedger
from desperado.gamification.leaderboard_service import get_leaderboard, get_party_member_ids, period_start
from desperado.gamification.xp_service import award_xp, ensure_profile


class TestPeriodStart:
    def test_alltime_has_no_start(self):
        """All-time boards are unbounded."""
        assert period_start("alltime") is None

    def test_week_starts_monday(self):
        """A Sunday belongs to the week that began six days earlier."""
        # 2026-10-18 is a Sunday
        assert period_start("weekly", datetime(2026, 10, 18, 23, tzinfo=timezone.utc)) == date(2026, 10, 12)
        assert period_start("weekly", datetime(2026, 10, 19, 0, tzinfo=timezone.utc)) == date(2026, 10, 19)

    def test_month_starts_on_the_first(self):
        """Monthly boards start on day one."""
        assert period_start("monthly", datetime(2026, 10, 19, tzinfo=timezone.utc)) == date(2026, 10, 1)

    def test_unknown_period(self):
        """Unknown periods raise."""
        with pytest.raises(ValueError, match="Unknown period"):
            period_start("yearly")


class TestPartyScope:
    @pytest.mark.asyncio
    async def test_loner_sees_only_themselves(self, db_session, user):
        """Without a household the board holds just the caller."""
        assert await get_party_member_ids(db_session, user.id) == [user.id]

    @pytest.mark.asyncio
    async def test_household_members_only(self, db_session, user, make_user, make_household):
        """Crawlers from other households are not ranked."""
        donut = await make_user(display_name="donut", full_name="Donut")
        stranger = await make_user(full_name="Stranger")
        await make_household(user, donut)

        members = await get_party_member_ids(db_session, user.id)
        assert set(members) == {user.id, donut.id}
        assert stranger.id not in members


class TestAllTime:
    @pytest.mark.asyncio
    async def test_ranked_by_total_xp_with_achievement_counts(self, db_session, user, make_user, make_household):
        """Profiles rank by cached total and carry their unlock counts."""
        donut = await make_user(display_name="donut", full_name="Donut")
        await make_household(user, donut)
        await award_xp(db_session, user.id, 40, "task_complete", "Task")
        await award_xp(db_session, donut.id, 90, "task_complete", "Task")

        achievement = (await db_session.execute(select(Achievement).limit(1))).scalar_one()
        db_session.add(AchievementUnlock(user_id=user.id, achievement_id=achievement.id, unlock_count=1))
        db_session.add(AchievementUnlock(user_id=user.id, achievement_id=achievement.id, unlock_count=2))
        await db_session.flush()

        entries, start = await get_leaderboard(db_session, user.id, "alltime")

        assert start is None
        assert [(e.rank, e.crawler_name, e.total_xp) for e in entries] == [(1, "Donut", 90), (2, "Carl", 40)]
        assert [e.achievements_unlocked for e in entries] == [0, 2]
        assert [e.is_current_user for e in entries] == [False, True]
        assert all(e.xp_earned is None for e in entries)

    @pytest.mark.asyncio
    async def test_ties_break_by_name(self, db_session, user, make_user, make_household):
        """Equal totals rank alphabetically."""
        amy = await make_user(full_name="Amy")
        await make_household(user, amy)
        await ensure_profile(db_session, user.id)
        await ensure_profile(db_session, amy.id)

        entries, _ = await get_leaderboard(db_session, user.id)
        assert [e.crawler_name for e in entries] == ["Amy", "Carl"]


class TestPeriods:
    @pytest.mark.asyncio
    async def test_weekly_sums_ledger_since_monday(self, db_session, user, make_user, make_household):
        """Only XP earned since the period start counts, debits included."""
        donut = await make_user(display_name="donut", full_name="Donut")
        await make_household(user, donut)
        await award_xp(db_session, user.id, 30, "task_complete", "Task")
        await award_xp(db_session, user.id, -10, "penalty", "Penalty")
        await award_xp(db_session, donut.id, 15, "task_complete", "Task")

        now = datetime.now(timezone.utc)
        last_month = now - timedelta(days=40)
        db_session.add(XpLedger(
            user_id=donut.id, amount=500, action_type="task_complete", seq=1000, created_at=last_month,
        ))
        await db_session.flush()

        entries, start = await get_leaderboard(db_session, user.id, "weekly", now=now)

        assert start == period_start("weekly", now)
        assert [(e.crawler_name, e.xp_earned) for e in entries] == [("Carl", 20), ("Donut", 15)]
        assert all(e.total_xp is None for e in entries)

    @pytest.mark.asyncio
    async def test_idle_crawlers_are_left_out(self, db_session, user, make_user, make_household):
        """Members with no ledger activity in the period do not appear."""
        donut = await make_user(display_name="donut", full_name="Donut")
        await make_household(user, donut)
        await ensure_profile(db_session, donut.id)
        await award_xp(db_session, user.id, 10, "task_complete", "Task")

        entries, _ = await get_leaderboard(db_session, user.id, "monthly")
        assert [e.user_id for e in entries] == [user.id]
        assert entries[0].rank == 1
        assert entries[0].level == 1
