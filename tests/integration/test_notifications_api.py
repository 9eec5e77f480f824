"""Notification inbox, subscriptions, preferences, watchers and comments over HTTP."""

from __future__ import annotations

import uuid

import pytest

from desperado.config import get_settings
from desperado.notifications.notification_service import trigger_notification

WEBHOOK = "https://discord.com/api/webhooks/1/abc"


class TestInbox:
    @pytest.mark.asyncio
    async def test_list_and_read(self, client, db_session, user, auth_headers):
        """Notifications can be listed and marked read."""
        first = await trigger_notification(db_session, user.id, "Task assigned", "task_assigned")
        await trigger_notification(db_session, user.id, "Task overdue", "task_overdue")
        await db_session.commit()
        headers = auth_headers(user)

        listing = (await client.get("/api/v1/notifications", headers=headers)).json()
        assert listing["total"] == 2
        assert listing["unread"] == 2

        resp = await client.post(f"/api/v1/notifications/{first.id}/read", headers=headers)
        assert resp.json() == {"status": "read"}
        assert (await client.get("/api/v1/notifications/unread-count", headers=headers)).json() == {"unread": 1}

        unread = (await client.get("/api/v1/notifications?unread_only=true", headers=headers)).json()
        assert [n["title"] for n in unread["notifications"]] == ["Task overdue"]

        assert (await client.post("/api/v1/notifications/read-all", headers=headers)).json() == {"updated": 1}
        assert (await client.get("/api/v1/notifications/unread-count", headers=headers)).json() == {"unread": 0}

    @pytest.mark.asyncio
    async def test_read_unknown(self, client, user, auth_headers):
        """Marking a missing notification is 404."""
        resp = await client.post(f"/api/v1/notifications/{uuid.uuid4()}/read", headers=auth_headers(user))
        assert resp.status_code == 404


class TestSubscriptionsAndPreferences:
    @pytest.mark.asyncio
    async def test_subscriptions(self, client, user, auth_headers):
        """Subscriptions are replaced and echoed."""
        headers = auth_headers(user)
        assert (await client.get("/api/v1/notifications/subscriptions", headers=headers)).json() == {
            "subscriptions": {}
        }

        resp = await client.put(
            "/api/v1/notifications/subscriptions",
            headers=headers,
            json={"subscriptions": {"task_commented": False, "mention": True}},
        )
        assert resp.json() == {"subscriptions": {"task_commented": False, "mention": True}}

    @pytest.mark.asyncio
    async def test_preferences_never_echo_webhook(self, client, user, auth_headers):
        """Webhook URLs are stored but never returned."""
        headers = auth_headers(user)
        resp = await client.put(
            "/api/v1/notifications/preferences",
            headers=headers,
            json={
                "channel": {"slug": "discord", "enabled": True, "webhook_url": WEBHOOK},
                "quiet_hours": {"start": "22:00:00", "end": "07:00:00", "days": [0], "timezone": "UTC"},
            },
        )
        assert resp.status_code == 200
        data = resp.json()
        assert WEBHOOK not in resp.text
        channels = {c["slug"]: c for c in data["channels"]}
        assert channels["discord"]["enabled"]
        assert channels["discord"]["configured"]
        assert not channels["web"]["configured"]
        assert data["quiet_hours"] == {"start": "22:00:00", "end": "07:00:00", "days": [0], "timezone": "UTC"}

        again = (await client.get("/api/v1/notifications/preferences", headers=headers)).json()
        assert again == data

    @pytest.mark.asyncio
    async def test_rejects_non_discord_webhook(self, client, user, auth_headers):
        """Only Discord webhook hosts are accepted."""
        resp = await client.put(
            "/api/v1/notifications/preferences",
            headers=auth_headers(user),
            json={"channel": {"slug": "discord", "webhook_url": "https://evil.example.com/hook"}},
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_rejects_unknown_timezone(self, client, user, auth_headers):
        """Quiet hours need a known IANA zone."""
        resp = await client.put(
            "/api/v1/notifications/preferences",
            headers=auth_headers(user),
            json={"quiet_hours": {"start": "22:00:00", "end": "07:00:00", "timezone": "Mars/Olympus"}},
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_days_only_quiet_hours(self, client, user, auth_headers):
        """Quiet days can be saved without a window and default the timezone."""
        resp = await client.put(
            "/api/v1/notifications/preferences",
            headers=auth_headers(user),
            json={"quiet_hours": {"days": [0, 6]}},
        )
        assert resp.status_code == 200
        assert resp.json()["quiet_hours"] == {
            "start": None,
            "end": None,
            "days": [0, 6],
            "timezone": get_settings().default_timezone,
        }

    @pytest.mark.asyncio
    async def test_unknown_channel(self, client, user, auth_headers):
        """Unknown channel slugs are 404."""
        resp = await client.put(
            "/api/v1/notifications/preferences",
            headers=auth_headers(user),
            json={"channel": {"slug": "carrier_pigeon"}},
        )
        assert resp.status_code == 404


class TestWatchers:
    @pytest.mark.asyncio
    async def test_watch_cycle(self, client, user, auth_headers):
        """Watching can be set, read and removed."""
        headers = auth_headers(user)
        url = "/api/v1/watchers/task/t-1"

        assert (await client.get(url, headers=headers)).json()["watch_level"] is None

        resp = await client.put(url, headers=headers, json={"watch_level": "mentions_only"})
        assert resp.json() == {"entity_type": "task", "entity_id": "t-1", "watch_level": "mentions_only", "watchers": 1}

        assert (await client.delete(url, headers=headers)).status_code == 204
        assert (await client.delete(url, headers=headers)).status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_level(self, client, user, auth_headers):
        """Unknown watch levels are rejected."""
        resp = await client.put("/api/v1/watchers/task/t-1", headers=auth_headers(user), json={"watch_level": "loud"})
        assert resp.status_code == 422


class TestComments:
    @pytest.mark.asyncio
    async def test_comment_notifies_mentioned_user(self, client, user, make_user, auth_headers):
        """Mentions resolve to users and notify them."""
        donut = await make_user(display_name="donut")

        resp = await client.post(
            "/api/v1/comments/goal/g-1", headers=auth_headers(user), json={"body": "  @donut @ghost look  "}
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["body"] == "@donut @ghost look"
        assert data["mentions"] == [
            {"identifier": "donut", "user_id": str(donut.id)},
            {"identifier": "ghost", "user_id": None},
        ]
        assert data["notified"] == 1

        inbox = (await client.get("/api/v1/notifications", headers=auth_headers(donut))).json()
        [n] = inbox["notifications"]
        assert n["title"] == "carl commented on goal: an item"
        assert n["group_key"] == "goal_commented:g-1"
        assert n["metadata"]["notification_source"] == "mention"

        watch = (await client.get("/api/v1/watchers/goal/g-1", headers=auth_headers(user))).json()
        assert watch["watch_level"] == "all"

    @pytest.mark.asyncio
    async def test_unknown_entity_type(self, client, user, auth_headers):
        """Comments need a known entity type."""
        resp = await client.post("/api/v1/comments/dungeon/d-1", headers=auth_headers(user), json={"body": "hi"})
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_empty_body(self, client, user, auth_headers):
        """Empty comments are rejected."""
        resp = await client.post("/api/v1/comments/task/t-1", headers=auth_headers(user), json={"body": ""})
        assert resp.status_code == 422
