"""Per-event subscriptions, quiet hours and external channel preferences."""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import time

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from desperado.database import upsert
from desperado.db.models import NotificationChannel, NotificationSubscription, UserNotificationPref
from desperado.notifications.quiet_hours import QuietHours, default_timezone


async def set_subscription(db: AsyncSession, user_id: uuid.UUID, event_type: str, enabled: bool) -> None:
    """Upsert on (user_id, event_type)."""
    stmt = upsert(db, NotificationSubscription).values(
        id=uuid.uuid4(),
        user_id=user_id,
        event_type=event_type,
        enabled=enabled,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "event_type"],
        set_={"enabled": stmt.excluded.enabled},
    )
    await db.execute(stmt)
    await db.flush()


async def get_subscriptions(db: AsyncSession, user_id: uuid.UUID) -> dict[str, bool]:
    result = await db.execute(
        select(NotificationSubscription.event_type, NotificationSubscription.enabled).where(
            NotificationSubscription.user_id == user_id
        )
    )
    return {event_type: enabled for event_type, enabled in result}


async def get_disabled_recipients(db: AsyncSession, user_ids: Iterable[uuid.UUID], event_type: str) -> set[uuid.UUID]:
    """Users with an explicit ``enabled=false`` row for ``event_type``. No row means enabled."""
    ids = list(user_ids)
    if not ids:
        return set()
    result = await db.execute(
        select(NotificationSubscription.user_id).where(
            NotificationSubscription.user_id.in_(ids),
            NotificationSubscription.event_type == event_type,
            NotificationSubscription.enabled.is_(False),
        )
    )
    return set(result.scalars().all())


def _quiet_hours_from(pref: UserNotificationPref) -> QuietHours:
    return QuietHours(
        start=pref.quiet_hours_start,
        end=pref.quiet_hours_end,
        days=list(pref.quiet_days or []),
        timezone=pref.timezone or default_timezone(),
    )


async def get_quiet_hours_map(db: AsyncSession, user_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, QuietHours]:
    """Quiet-hours settings keyed by user. Users without preference rows are absent."""
    ids = list(user_ids)
    if not ids:
        return {}
    result = await db.execute(select(UserNotificationPref).where(UserNotificationPref.user_id.in_(ids)))
    quiet: dict[uuid.UUID, QuietHours] = {}
    for pref in result.scalars():
        # Rows without a window or quiet days don't override one that has them.
        has_settings = (pref.quiet_hours_start and pref.quiet_hours_end) or pref.quiet_days
        if pref.user_id in quiet and not has_settings:
            continue
        quiet[pref.user_id] = _quiet_hours_from(pref)
    return quiet


async def get_quiet_hours(db: AsyncSession, user_id: uuid.UUID) -> QuietHours | None:
    return (await get_quiet_hours_map(db, [user_id])).get(user_id)


async def set_quiet_hours(
    db: AsyncSession,
    user_id: uuid.UUID,
    start: time | None,
    end: time | None,
    days: list[int] | None = None,
    timezone: str | None = None,
) -> QuietHours:
    """Apply quiet hours to every preference row of the user, creating one if needed."""
    result = await db.execute(select(UserNotificationPref).where(UserNotificationPref.user_id == user_id))
    prefs = list(result.scalars().all())
    if not prefs:
        pref = UserNotificationPref(user_id=user_id, enabled=True, config={})
        db.add(pref)
        prefs = [pref]

    for pref in prefs:
        pref.quiet_hours_start = start
        pref.quiet_hours_end = end
        pref.quiet_days = sorted(set(days)) if days else None
        pref.timezone = timezone or default_timezone()
    await db.flush()
    return _quiet_hours_from(prefs[0])


async def set_channel_preference(
    db: AsyncSession,
    user_id: uuid.UUID,
    channel_slug: str,
    enabled: bool,
    config: dict | None = None,
) -> UserNotificationPref | None:
    """Enable/disable an external channel (e.g. a Discord webhook). None if the channel is unknown."""
    channel = (
        await db.execute(select(NotificationChannel).where(NotificationChannel.slug == channel_slug))
    ).scalar_one_or_none()
    if channel is None:
        return None

    result = await db.execute(
        select(UserNotificationPref).where(
            UserNotificationPref.user_id == user_id,
            UserNotificationPref.channel_id == channel.id,
        )
    )
    pref = result.scalar_one_or_none()
    if pref is None:
        # Quiet hours are per user, not per channel
        existing = await get_quiet_hours(db, user_id)
        pref = UserNotificationPref(user_id=user_id, channel_id=channel.id)
        if existing is not None:
            pref.quiet_hours_start = existing.start if isinstance(existing.start, time) else None
            pref.quiet_hours_end = existing.end if isinstance(existing.end, time) else None
            pref.quiet_days = existing.days or None
            pref.timezone = existing.timezone
        db.add(pref)

    pref.enabled = enabled
    if config is not None:
        pref.config = config
    await db.flush()
    return pref


async def list_channel_preferences(
    db: AsyncSession,
    user_id: uuid.UUID,
) -> list[tuple[NotificationChannel, UserNotificationPref | None]]:
    """Every channel paired with the user's preference row for it, if any."""
    channels = (await db.execute(select(NotificationChannel).order_by(NotificationChannel.slug))).scalars().all()
    prefs = (
        await db.execute(
            select(UserNotificationPref).where(
                UserNotificationPref.user_id == user_id,
                UserNotificationPref.channel_id.is_not(None),
            )
        )
    ).scalars().all()
    by_channel = {p.channel_id: p for p in prefs}
    return [(c, by_channel.get(c.id)) for c in channels]
