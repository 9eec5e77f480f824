"""Notification API endpoints: inbox, subscriptions, preferences and entity watchers."""

from __future__ import annotations

import uuid
from datetime import time

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from desperado.auth.dependencies import get_current_user
from desperado.database import get_session
from desperado.db.models import Notification, User
from desperado.notifications import preferences, watchers
from desperado.notifications.notification_service import (
    get_notifications,
    get_unread_count,
    mark_all_as_read,
    mark_as_read,
)
from desperado.notifications.schemas import (
    ChannelPreferenceResponse,
    NotificationListResponse,
    NotificationResponse,
    PreferencesResponse,
    PreferencesUpdateRequest,
    QuietHoursBody,
    SubscriptionsResponse,
    SubscriptionsUpdateRequest,
    UnreadCountResponse,
    WatchRequest,
    WatchResponse,
)

router = APIRouter(prefix="/api/v1", tags=["Notifications"])


def _notification_response(n: Notification) -> NotificationResponse:
    return NotificationResponse(
        id=n.id,
        title=n.title,
        body=n.body,
        source=n.source,
        event_type=n.event_type,
        entity_type=n.entity_type,
        entity_id=n.entity_id,
        group_key=n.group_key,
        metadata=n.notification_metadata or {},
        read=n.read,
        sent_at=n.sent_at,
        created_at=n.created_at,
    )


@router.get("/notifications", response_model=NotificationListResponse)
async def list_notifications(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    unread_only: bool = False,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    notifications, total = await get_notifications(db, user.id, page, per_page, unread_only)
    return NotificationListResponse(
        notifications=[_notification_response(n) for n in notifications],
        total=total,
        page=page,
        per_page=per_page,
        unread=await get_unread_count(db, user.id),
    )


@router.get("/notifications/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return UnreadCountResponse(unread=await get_unread_count(db, user.id))


@router.post("/notifications/read-all")
async def read_all(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    updated = await mark_all_as_read(db, user.id)
    await db.commit()
    return {"updated": updated}


@router.post("/notifications/{notification_id}/read")
async def read_one(
    notification_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    if not await mark_as_read(db, user.id, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    await db.commit()
    return {"status": "read"}


# ── Subscriptions ──


@router.get("/notifications/subscriptions", response_model=SubscriptionsResponse)
async def get_subscriptions(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Explicit per-event settings. Events not listed are enabled."""
    return SubscriptionsResponse(subscriptions=await preferences.get_subscriptions(db, user.id))


@router.put("/notifications/subscriptions", response_model=SubscriptionsResponse)
async def update_subscriptions(
    body: SubscriptionsUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    for event_type, enabled in body.subscriptions.items():
        await preferences.set_subscription(db, user.id, event_type, enabled)
    await db.commit()
    return SubscriptionsResponse(subscriptions=await preferences.get_subscriptions(db, user.id))


# ── Preferences ──


async def _preferences_response(db: AsyncSession, user_id: uuid.UUID) -> PreferencesResponse:
    channels = await preferences.list_channel_preferences(db, user_id)
    quiet = await preferences.get_quiet_hours(db, user_id)
    return PreferencesResponse(
        channels=[
            ChannelPreferenceResponse(
                slug=channel.slug,
                name=channel.name,
                enabled=pref.enabled if pref else False,
                configured=bool(pref and (pref.config or {}).get("webhook_url")),
            )
            for channel, pref in channels
        ],
        quiet_hours=QuietHoursBody(
            start=quiet.start if isinstance(quiet.start, time) else None,
            end=quiet.end if isinstance(quiet.end, time) else None,
            days=quiet.days,
            timezone=quiet.timezone,
        ) if quiet else None,
    )


@router.get("/notifications/preferences", response_model=PreferencesResponse)
async def get_preferences(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Channels with their enabled state, and the quiet-hours window. Webhook URLs are never echoed."""
    return await _preferences_response(db, user.id)


@router.put("/notifications/preferences", response_model=PreferencesResponse)
async def update_preferences(
    body: PreferencesUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    if body.channel is not None:
        config = {"webhook_url": body.channel.webhook_url} if body.channel.webhook_url else None
        pref = await preferences.set_channel_preference(
            db, user.id, body.channel.slug, body.channel.enabled, config
        )
        if pref is None:
            raise HTTPException(status_code=404, detail=f"Unknown channel: {body.channel.slug}")

    if body.quiet_hours is not None:
        q = body.quiet_hours
        await preferences.set_quiet_hours(db, user.id, q.start, q.end, q.days, q.timezone)

    await db.commit()
    return await _preferences_response(db, user.id)


# ── Watchers ──


@router.get("/watchers/{entity_type}/{entity_id}", response_model=WatchResponse)
async def get_watch(
    entity_type: str,
    entity_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return WatchResponse(
        entity_type=entity_type,
        entity_id=entity_id,
        watch_level=await watchers.get_watch_level(db, entity_type, entity_id, user.id),
        watchers=len(await watchers.get_watchers(db, entity_type, entity_id)),
    )


@router.put("/watchers/{entity_type}/{entity_id}", response_model=WatchResponse)
async def set_watch(
    entity_type: str,
    entity_id: str,
    body: WatchRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await watchers.set_watch_level(db, entity_type, entity_id, user.id, body.watch_level)
    await db.commit()
    return WatchResponse(
        entity_type=entity_type,
        entity_id=entity_id,
        watch_level=body.watch_level,
        watchers=len(await watchers.get_watchers(db, entity_type, entity_id)),
    )


@router.delete("/watchers/{entity_type}/{entity_id}", status_code=204)
async def unwatch(
    entity_type: str,
    entity_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    if not await watchers.remove_watcher(db, entity_type, entity_id, user.id):
        raise HTTPException(status_code=404, detail="Not watching")
    await db.commit()
