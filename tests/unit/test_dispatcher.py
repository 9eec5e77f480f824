"""Entity notification dispatch: recipient resolution, filtering, persistence, fan-out."""

from __future__ import annotations

import uuid
from datetime import datetime, time, timezone

import pytest
from sqlalchemy import select

from desperado.db.models import EntityWatcher, Notification
from desperado.notifications import notification_service
from desperado.notifications.dispatcher import EntityEvent, notify_entity, resolve_recipients
from desperado.notifications.preferences import set_channel_preference, set_quiet_hours, set_subscription
from desperado.notifications.watchers import set_watch_level

WEBHOOK = "https://discord.com/api/webhooks/1/abc"


def _watcher(user_id, level):
    return EntityWatcher(entity_type="task", entity_id="t-1", user_id=user_id, watch_level=level)


class TestResolveRecipients:
    def setup_method(self):
        self.actor, self.a, self.b, self.c = (uuid.uuid4() for _ in range(4))

    def test_all_watchers_receive_except_actor(self):
        """Every "all" watcher is a recipient except the actor."""
        watchers = [_watcher(self.actor, "all"), _watcher(self.a, "all"), _watcher(self.b, "all")]
        assert resolve_recipients(watchers, self.actor) == {self.a: "watcher", self.b: "watcher"}

    def test_mentions_only_needs_a_mention(self):
        """Mentions-only watchers need to be mentioned."""
        watchers = [_watcher(self.a, "mentions_only"), _watcher(self.b, "mentions_only")]
        assert resolve_recipients(watchers, self.actor, [self.a]) == {self.a: "mention"}

    def test_muted_beats_mention(self):
        """A muted watcher stays silent even when mentioned."""
        watchers = [_watcher(self.a, "muted")]
        assert resolve_recipients(watchers, self.actor, [self.a]) == {}

    def test_mentioned_non_watcher_is_included(self):
        """Mentioning someone who doesn't watch still reaches them."""
        assert resolve_recipients([], self.actor, [self.c]) == {self.c: "mention"}

    def test_mention_upgrades_watcher_source(self):
        """A mentioned watcher is recorded as a mention."""
        watchers = [_watcher(self.a, "all")]
        assert resolve_recipients(watchers, self.actor, [self.a]) == {self.a: "mention"}

    def test_actor_mentioning_self_is_skipped(self):
        """The actor never notifies themselves."""
        assert resolve_recipients([], self.actor, [self.actor]) == {}

    def test_skip_ids(self):
        """Explicitly skipped users are left out."""
        watchers = [_watcher(self.a, "all"), _watcher(self.b, "all")]
        assert resolve_recipients(watchers, self.actor, [], [self.b]) == {self.a: "watcher"}

    def test_duplicate_mentions_collapse(self):
        """Repeated mentions yield one recipient."""
        assert resolve_recipients([], self.actor, [self.c, self.c]) == {self.c: "mention"}


def _event(actor, **kwargs):
    fields = {
        "entity_type": "task",
        "entity_id": "t-1",
        "event": "task_commented",
        "actor_id": actor.id,
        "title": "Carl commented on task: Feed Donut",
        "body": "Done yet?",
    }
    fields.update(kwargs)
    return EntityEvent(**fields)


class TestNotifyEntity:
    @pytest.mark.asyncio
    async def test_persists_one_row_per_recipient(self, db_session, user, make_user):
        """Each recipient gets one grouped notification row."""
        donut = await make_user(display_name="donut")
        mordecai = await make_user(display_name="mordecai")
        for u in (user, donut, mordecai):
            await set_watch_level(db_session, "task", "t-1", u.id, "all")

        result = await notify_entity(db_session, _event(user))

        assert sorted(result.delivered_to) == sorted([donut.id, mordecai.id])
        rows = (await db_session.execute(select(Notification))).scalars().all()
        assert len(rows) == 2
        assert {r.group_key for r in rows} == {"task_commented:t-1"}
        assert all(r.entity_type == "task" and r.entity_id == "t-1" for r in rows)
        assert all(r.notification_metadata["source_user_id"] == str(user.id) for r in rows)
        assert all(r.notification_metadata["notification_source"] == "watcher" for r in rows)

    @pytest.mark.asyncio
    async def test_unsubscribed_recipients_are_dropped(self, db_session, user, make_user):
        """Recipients who opted out of the event are dropped."""
        donut = await make_user(display_name="donut")
        await set_watch_level(db_session, "task", "t-1", donut.id, "all")
        await set_subscription(db_session, donut.id, "task_commented", False)

        result = await notify_entity(db_session, _event(user))

        assert result.unsubscribed == {donut.id}
        assert result.notifications == []

    @pytest.mark.asyncio
    async def test_other_events_still_delivered_after_opt_out(self, db_session, user, make_user):
        """Opting out of one event leaves others alone."""
        donut = await make_user(display_name="donut")
        await set_watch_level(db_session, "task", "t-1", donut.id, "all")
        await set_subscription(db_session, donut.id, "task_overdue", False)

        result = await notify_entity(db_session, _event(user))
        assert result.delivered_to == [donut.id]

    @pytest.mark.asyncio
    async def test_quiet_hours_suppress(self, db_session, user, make_user):
        """Recipients inside their quiet window are held back."""
        donut = await make_user(display_name="donut")
        await set_watch_level(db_session, "task", "t-1", donut.id, "all")
        await set_quiet_hours(db_session, donut.id, time(22, 0), time(7, 0), timezone="UTC")

        late = datetime(2026, 10, 20, 23, 30, tzinfo=timezone.utc)
        result = await notify_entity(db_session, _event(user), now=late)
        assert result.quiet == {donut.id}
        assert result.notifications == []

        noon = datetime(2026, 10, 20, 12, 0, tzinfo=timezone.utc)
        result = await notify_entity(db_session, _event(user), now=noon)
        assert result.delivered_to == [donut.id]

    @pytest.mark.asyncio
    async def test_no_recipients_writes_nothing(self, db_session, user):
        """No recipients, no rows."""
        result = await notify_entity(db_session, _event(user))
        assert result.recipients == {}
        assert (await db_session.execute(select(Notification))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_external_delivery_is_detached(self, db_session, user, make_user, detached, monkeypatch):
        """Discord delivery waits for commit and runs detached."""
        sent = []

        async def fake_send(url, payload, client=None):
            sent.append((url, payload))
            return True

        monkeypatch.setattr(notification_service, "send_discord_webhook", fake_send)
        donut = await make_user(display_name="donut")
        await set_watch_level(db_session, "task", "t-1", donut.id, "all")
        await set_channel_preference(db_session, donut.id, "discord", True, {"webhook_url": WEBHOOK})

        result = await notify_entity(db_session, _event(user), detached=detached)
        assert sent == []
        await db_session.commit()
        await detached.drain(timeout=1)

        assert result.external_scheduled == 1
        assert len(sent) == 1
        url, payload = sent[0]
        assert url == WEBHOOK
        assert payload["embeds"][0]["description"] == "Done yet?"

    @pytest.mark.asyncio
    async def test_disabled_channel_is_not_delivered(self, db_session, user, make_user, detached):
        """A disabled channel still gets the in-app row but no webhook."""
        donut = await make_user(display_name="donut")
        await set_watch_level(db_session, "task", "t-1", donut.id, "all")
        await set_channel_preference(db_session, donut.id, "discord", False, {"webhook_url": WEBHOOK})

        result = await notify_entity(db_session, _event(user), detached=detached)
        assert result.delivered_to == [donut.id]
        assert result.external_scheduled == 0

    @pytest.mark.asyncio
    async def test_pushes_to_redis_when_available(self, db_session, user, make_user):
        """Each notification is published on the recipient's channel."""
        published = []

        class FakeRedis:
            async def publish(self, channel, message):
                published.append(channel)

        donut = await make_user(display_name="donut")
        await set_watch_level(db_session, "task", "t-1", donut.id, "all")

        await notify_entity(db_session, _event(user), redis=FakeRedis())
        assert published == [f"ws:user:{donut.id}"]
