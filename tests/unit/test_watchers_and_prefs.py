"""Entity watchers, per-event subscriptions, quiet hours and channel preferences."""

from __future__ import annotations

from datetime import datetime, time, timezone

import pytest

from desperado.config import get_settings
from desperado.db.models import UserNotificationPref
from desperado.notifications.preferences import (
    get_disabled_recipients,
    get_quiet_hours,
    get_quiet_hours_map,
    get_subscriptions,
    list_channel_preferences,
    set_channel_preference,
    set_quiet_hours,
    set_subscription,
)
from desperado.notifications.quiet_hours import is_in_quiet_hours
from desperado.notifications.watchers import (
    ensure_watching,
    get_watch_level,
    get_watchers,
    remove_watcher,
    set_watch_level,
)


class TestWatchers:
    @pytest.mark.asyncio
    async def test_set_is_an_upsert(self, db_session, user):
        """Setting twice keeps one row with the latest level."""
        await set_watch_level(db_session, "task", "t-1", user.id, "all")
        await set_watch_level(db_session, "task", "t-1", user.id, "muted")

        assert len(await get_watchers(db_session, "task", "t-1")) == 1
        assert await get_watch_level(db_session, "task", "t-1", user.id) == "muted"

    @pytest.mark.asyncio
    async def test_invalid_level_rejected(self, db_session, user):
        """Unknown watch levels raise."""
        with pytest.raises(ValueError, match="Invalid watch level"):
            await set_watch_level(db_session, "task", "t-1", user.id, "loud")

    @pytest.mark.asyncio
    async def test_ensure_watching_keeps_existing_level(self, db_session, user):
        """An explicit level survives an implicit watch."""
        await set_watch_level(db_session, "task", "t-1", user.id, "muted")
        await ensure_watching(db_session, "task", "t-1", user.id)
        assert await get_watch_level(db_session, "task", "t-1", user.id) == "muted"

    @pytest.mark.asyncio
    async def test_ensure_watching_creates(self, db_session, user):
        """A first interaction watches at "all"."""
        await ensure_watching(db_session, "goal", "g-1", user.id)
        assert await get_watch_level(db_session, "goal", "g-1", user.id) == "all"

    @pytest.mark.asyncio
    async def test_remove(self, db_session, user):
        """Removing reports whether a row existed."""
        await set_watch_level(db_session, "task", "t-1", user.id)
        assert await remove_watcher(db_session, "task", "t-1", user.id)
        assert not await remove_watcher(db_session, "task", "t-1", user.id)
        assert await get_watch_level(db_session, "task", "t-1", user.id) is None


class TestSubscriptions:
    @pytest.mark.asyncio
    async def test_missing_row_means_enabled(self, db_session, user):
        """No subscription row means the event is enabled."""
        assert await get_disabled_recipients(db_session, [user.id], "task_commented") == set()

    @pytest.mark.asyncio
    async def test_toggle(self, db_session, user):
        """Disabling then enabling round-trips."""
        await set_subscription(db_session, user.id, "task_commented", False)
        assert await get_disabled_recipients(db_session, [user.id], "task_commented") == {user.id}

        await set_subscription(db_session, user.id, "task_commented", True)
        assert await get_disabled_recipients(db_session, [user.id], "task_commented") == set()
        assert await get_subscriptions(db_session, user.id) == {"task_commented": True}


class TestQuietHoursPrefs:
    @pytest.mark.asyncio
    async def test_no_prefs(self, db_session, user):
        """Users without preference rows have no quiet hours."""
        assert await get_quiet_hours(db_session, user.id) is None

    @pytest.mark.asyncio
    async def test_set_creates_row_and_normalises_days(self, db_session, user):
        """Days are deduplicated and sorted."""
        quiet = await set_quiet_hours(db_session, user.id, time(22), time(7), [6, 0, 6], "UTC")
        assert quiet.days == [0, 6]
        assert quiet.timezone == "UTC"

        stored = await get_quiet_hours(db_session, user.id)
        assert stored.start == time(22)
        assert stored.end == time(7)

    @pytest.mark.asyncio
    async def test_default_timezone(self, db_session, user, monkeypatch):
        """An omitted timezone is stored as the configured default."""
        monkeypatch.setenv("DESPERADO_DEFAULT_TIMEZONE", "Europe/Lisbon")
        get_settings.cache_clear()
        try:
            quiet = await set_quiet_hours(db_session, user.id, time(22), time(7))
        finally:
            get_settings.cache_clear()
        assert quiet.timezone == "Europe/Lisbon"

    @pytest.mark.asyncio
    async def test_days_only_quiet_hours(self, db_session, user):
        """Quiet days saved without a window still suppress on those days."""
        await set_quiet_hours(db_session, user.id, None, None, [0], "UTC")

        quiet = await get_quiet_hours(db_session, user.id)
        assert quiet.days == [0]
        assert is_in_quiet_hours(datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc), quiet)
        assert not is_in_quiet_hours(datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc), quiet)

    @pytest.mark.asyncio
    async def test_days_only_row_survives_a_bare_channel_row(self, db_session, user):
        """A channel row without settings doesn't hide quiet days from another row."""
        await set_quiet_hours(db_session, user.id, None, None, [6], "UTC")
        db_session.add(UserNotificationPref(user_id=user.id, enabled=True, config={}))
        await db_session.flush()

        quiet = (await get_quiet_hours_map(db_session, [user.id]))[user.id]
        assert quiet.days == [6]

    @pytest.mark.asyncio
    async def test_new_channel_row_inherits_quiet_hours(self, db_session, user):
        """A new channel row copies the user's quiet hours."""
        await set_quiet_hours(db_session, user.id, time(23), time(6), timezone="UTC")
        await set_channel_preference(db_session, user.id, "discord", True, {"webhook_url": "https://x"})

        quiet = (await get_quiet_hours_map(db_session, [user.id]))[user.id]
        assert (quiet.start, quiet.end, quiet.timezone) == (time(23), time(6), "UTC")


class TestChannels:
    @pytest.mark.asyncio
    async def test_unknown_channel(self, db_session, user):
        """Unknown channel slugs return None."""
        assert await set_channel_preference(db_session, user.id, "carrier_pigeon", True) is None

    @pytest.mark.asyncio
    async def test_lists_every_channel(self, db_session, user):
        """Channels without a row pair with None."""
        await set_channel_preference(db_session, user.id, "discord", True, {"webhook_url": "https://x"})
        pairs = {channel.slug: pref for channel, pref in await list_channel_preferences(db_session, user.id)}

        assert set(pairs) == {"discord", "web"}
        assert pairs["web"] is None
        assert pairs["discord"].enabled
        assert pairs["discord"].config == {"webhook_url": "https://x"}

    @pytest.mark.asyncio
    async def test_update_keeps_config_when_omitted(self, db_session, user):
        """Omitting config leaves it unchanged."""
        await set_channel_preference(db_session, user.id, "discord", True, {"webhook_url": "https://x"})
        pref = await set_channel_preference(db_session, user.id, "discord", False)
        assert not pref.enabled
        assert pref.config == {"webhook_url": "https://x"}
