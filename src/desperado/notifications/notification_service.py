"""Notification creation and delivery service.

Notifications are:
1. Persisted in the database
2. Pushed to the user via Redis pub/sub (ws:user:{id})
3. Delivered to enabled external channels (Discord) as detached tasks
   once the surrounding transaction commits
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from desperado.background import DetachedTaskGroup
from desperado.db.models import Notification, NotificationChannel, UserNotificationPref
from desperado.notifications.discord import build_discord_embed, send_discord_webhook
from desperado.notifications.notification_push import push_notification_to_user

logger = logging.getLogger(__name__)

DISCORD_CHANNEL = "discord"


async def get_discord_webhooks(db: AsyncSession, user_ids: Iterable[uuid.UUID]) -> list[tuple[uuid.UUID, str]]:
    """Enabled Discord webhook URLs for the given users, as (user_id, url) pairs."""
    ids = list(user_ids)
    if not ids:
        return []

    result = await db.execute(
        select(UserNotificationPref)
        .join(NotificationChannel, UserNotificationPref.channel_id == NotificationChannel.id)
        .where(
            UserNotificationPref.user_id.in_(ids),
            UserNotificationPref.enabled.is_(True),
            NotificationChannel.slug == DISCORD_CHANNEL,
        )
    )
    webhooks = []
    for pref in result.scalars():
        url = (pref.config or {}).get("webhook_url")
        if url:
            webhooks.append((pref.user_id, url))
    return webhooks


async def fanout_external(
    db: AsyncSession,
    recipient_ids: Iterable[uuid.UUID],
    title: str,
    body: str | None,
    event: str,
    detached: DetachedTaskGroup | None,
) -> int:
    """Queue external-channel delivery for each recipient. Returns deliveries queued.

    The preference lookup runs inline. The HTTP calls are spawned detached
    after the session commits, so a rolled-back notification is never
    delivered and a slow webhook never blocks the caller.
    """
    webhooks = await get_discord_webhooks(db, recipient_ids)
    if not webhooks:
        return 0
    if detached is None:
        logger.debug("No detached task group; skipping %d external deliveries", len(webhooks))
        return 0

    payload = build_discord_embed(title, body, event)
    for user_id, url in webhooks:
        detached.spawn_after_commit(
            db, lambda url=url: send_discord_webhook(url, payload), name=f"discord:{user_id}"
        )
    return len(webhooks)


async def trigger_notification(
    db: AsyncSession,
    recipient_id: uuid.UUID,
    title: str,
    event: str,
    body: str | None = None,
    source_user_id: uuid.UUID | None = None,
    metadata: dict[str, Any] | None = None,
    *,
    redis: Any | None = None,
    detached: DetachedTaskGroup | None = None,
) -> Notification:
    """Create a direct notification for one recipient and push it out.

    Raises on persistence errors; callers treating the notification as
    best-effort wrap the call in a savepoint.
    """
    notification = Notification(
        user_id=recipient_id,
        title=title,
        body=body,
        source=event,
        event_type=event,
        notification_metadata={
            **(metadata or {}),
            "source_user_id": str(source_user_id) if source_user_id else None,
        },
        created_at=datetime.now(timezone.utc),
    )
    db.add(notification)
    await db.flush()

    await push_notification_to_user(redis, notification)

    scheduled = await fanout_external(db, [recipient_id], title, body, event, detached)
    if scheduled:
        notification.sent_at = datetime.now(timezone.utc)
        await db.flush()

    return notification


async def get_notifications(
    db: AsyncSession,
    user_id: uuid.UUID,
    page: int = 1,
    per_page: int = 20,
    unread_only: bool = False,
) -> tuple[list[Notification], int]:
    """Get user's notifications (paginated, most recent first)."""
    offset = (page - 1) * per_page
    filters = [Notification.user_id == user_id]
    if unread_only:
        filters.append(Notification.read.is_(False))

    total_result = await db.execute(select(func.count()).select_from(Notification).where(*filters))
    total = total_result.scalar_one()

    result = await db.execute(
        select(Notification)
        .where(*filters)
        .order_by(Notification.created_at.desc())
        .offset(offset)
        .limit(per_page)
    )
    notifications = list(result.scalars().all())
    return notifications, total


async def mark_as_read(db: AsyncSession, user_id: uuid.UUID, notification_id: uuid.UUID) -> bool:
    """Mark a single notification as read. Returns True if found."""
    result = await db.execute(
        update(Notification)
        .where(Notification.id == notification_id, Notification.user_id == user_id)
        .values(read=True)
    )
    await db.flush()
    return result.rowcount > 0


async def mark_all_as_read(db: AsyncSession, user_id: uuid.UUID) -> int:
    """Mark all unread notifications as read. Returns count updated."""
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
        .values(read=True)
    )
    await db.flush()
    return result.rowcount


async def get_unread_count(db: AsyncSession, user_id: uuid.UUID) -> int:
    """Get count of unread notifications."""
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
    )
    return result.scalar_one()
