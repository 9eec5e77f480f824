"""Realtime delivery: each stored notification is published on the recipient's Redis channel.

The web app's socket gateway subscribes to ``ws:user:*`` and forwards the
message to the user's open tabs. Publishing is best effort.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from desperado.db.models import Notification

logger = logging.getLogger(__name__)

PUSH_EVENT = "notification"


def user_channel(user_id: uuid.UUID) -> str:
    return f"ws:user:{user_id}"


def notification_payload(notification: Notification) -> dict[str, Any]:
    created = notification.created_at
    return {
        "event": PUSH_EVENT,
        "data": {
            "id": str(notification.id),
            "title": notification.title,
            "body": notification.body,
            "source": notification.source,
            "entityType": notification.entity_type,
            "entityId": notification.entity_id,
            "groupKey": notification.group_key,
            "timestamp": created.isoformat() if created else None,
            "read": bool(notification.read),
        },
    }


async def push_notification_to_user(redis: Any | None, notification: Notification) -> None:  # noqa: ANN401
    """Publish one flushed notification. Skipped without Redis; failures are logged."""
    if redis is None:
        return
    channel = user_channel(notification.user_id)
    try:
        await redis.publish(channel, json.dumps(notification_payload(notification)))
    except Exception:
        logger.warning("Realtime push to %s failed", channel, exc_info=True)
