"""Entity-scoped notification dispatch.

One call runs RESOLVE_RECIPIENTS -> FILTER -> PERSIST -> FANOUT:

- recipients are entity watchers at level "all" plus mentioned users
  (including "mentions_only" watchers who were mentioned); muted watchers,
  the actor and any skipped ids never receive anything
- recipients with the event disabled, or currently in quiet hours, are dropped
- survivors get one notification row each, sharing ``event:entity_id`` as group key
- external channels are delivered as detached tasks
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from desperado.background import DetachedTaskGroup
from desperado.db.models import EntityWatcher, Notification
from desperado.notifications.notification_push import push_notification_to_user
from desperado.notifications.notification_service import fanout_external
from desperado.notifications.preferences import get_disabled_recipients, get_quiet_hours_map
from desperado.notifications.quiet_hours import is_in_quiet_hours
from desperado.notifications.watchers import WATCH_ALL, WATCH_MENTIONS_ONLY, WATCH_MUTED, get_watchers

logger = logging.getLogger(__name__)

SOURCE_WATCHER = "watcher"
SOURCE_MENTION = "mention"


@dataclass
class EntityEvent:
    entity_type: str
    entity_id: str
    event: str
    actor_id: uuid.UUID
    title: str
    body: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    mentioned_user_ids: list[uuid.UUID] = field(default_factory=list)
    skip_user_ids: list[uuid.UUID] = field(default_factory=list)

    @property
    def group_key(self) -> str:
        return f"{self.event}:{self.entity_id}"


@dataclass
class DispatchResult:
    recipients: dict[uuid.UUID, str] = field(default_factory=dict)
    unsubscribed: set[uuid.UUID] = field(default_factory=set)
    quiet: set[uuid.UUID] = field(default_factory=set)
    notifications: list[Notification] = field(default_factory=list)
    external_scheduled: int = 0

    @property
    def delivered_to(self) -> list[uuid.UUID]:
        return [n.user_id for n in self.notifications]


def resolve_recipients(
    watchers: Iterable[EntityWatcher],
    actor_id: uuid.UUID,
    mentioned_ids: Iterable[uuid.UUID] = (),
    skip_ids: Iterable[uuid.UUID] = (),
) -> dict[uuid.UUID, str]:
    """Map each recipient to the path that admitted them ("watcher" or "mention").

    Muted always wins over a mention.
    """
    skip = set(skip_ids)
    skip.add(actor_id)
    levels = {w.user_id: w.watch_level for w in watchers}
    mentioned = list(dict.fromkeys(mentioned_ids))

    recipients: dict[uuid.UUID, str] = {}
    for user_id, level in levels.items():
        if level == WATCH_ALL and user_id not in skip:
            recipients[user_id] = SOURCE_WATCHER

    for user_id in mentioned:
        if user_id in skip or levels.get(user_id) == WATCH_MUTED:
            continue
        recipients[user_id] = SOURCE_MENTION

    for user_id, level in levels.items():
        if level == WATCH_MENTIONS_ONLY and user_id not in skip and user_id in mentioned:
            recipients[user_id] = SOURCE_MENTION

    return recipients


async def notify_entity(
    db: AsyncSession,
    payload: EntityEvent,
    *,
    now: datetime | None = None,
    redis: Any | None = None,
    detached: DetachedTaskGroup | None = None,
) -> DispatchResult:
    """Notify everyone following ``payload``'s entity. Persist errors propagate."""
    now = now or datetime.now(timezone.utc)
    result = DispatchResult()

    watchers = await get_watchers(db, payload.entity_type, payload.entity_id)
    result.recipients = resolve_recipients(
        watchers, payload.actor_id, payload.mentioned_user_ids, payload.skip_user_ids
    )
    if not result.recipients:
        return result

    recipient_ids = list(result.recipients)
    result.unsubscribed = await get_disabled_recipients(db, recipient_ids, payload.event)
    quiet_map = await get_quiet_hours_map(db, recipient_ids)

    for user_id, source in result.recipients.items():
        if user_id in result.unsubscribed:
            continue
        quiet = quiet_map.get(user_id)
        if quiet is not None and is_in_quiet_hours(now, quiet):
            result.quiet.add(user_id)
            continue
        result.notifications.append(
            Notification(
                user_id=user_id,
                title=payload.title,
                body=payload.body,
                source=payload.event,
                event_type=payload.event,
                entity_type=payload.entity_type,
                entity_id=str(payload.entity_id),
                group_key=payload.group_key,
                notification_metadata={
                    **payload.metadata,
                    "source_user_id": str(payload.actor_id),
                    "notification_source": source,
                },
                created_at=now,
            )
        )

    if not result.notifications:
        return result

    db.add_all(result.notifications)
    await db.flush()

    for notification in result.notifications:
        await push_notification_to_user(redis, notification)

    try:
        async with db.begin_nested():
            result.external_scheduled = await fanout_external(
                db, result.delivered_to, payload.title, payload.body, payload.event, detached
            )
    except Exception:
        logger.warning("External channel fan-out failed for %s", payload.group_key, exc_info=True)

    return result
