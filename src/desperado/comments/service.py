"""Entity comments: the main producer of mention and watcher notifications."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from desperado.background import DetachedTaskGroup
from desperado.db.models import Comment, Goal, Habit, Task, User
from desperado.notifications.dispatcher import DispatchResult, EntityEvent, notify_entity
from desperado.notifications.mentions import ParsedMention, parse_mentions, persist_mentions
from desperado.notifications.watchers import ensure_watching

logger = logging.getLogger(__name__)

BODY_PREVIEW_LENGTH = 200

_TITLE_COLUMNS = {
    "task": Task.title,
    "goal": Goal.title,
    "habit": Habit.name,
}


@dataclass
class CommentResult:
    comment: Comment
    mentions: list[ParsedMention]
    dispatch: DispatchResult | None


def display_name(user: User) -> str:
    return user.display_name or user.full_name or user.email or "Someone"


def preview(body: str) -> str:
    if len(body) > BODY_PREVIEW_LENGTH:
        return body[:BODY_PREVIEW_LENGTH] + "..."
    return body


async def entity_title(db: AsyncSession, entity_type: str, entity_id: str) -> str:
    column = _TITLE_COLUMNS.get(entity_type)
    if column is None:
        return "an item"
    try:
        key = uuid.UUID(entity_id)
    except ValueError:
        return "an item"
    title = (await db.execute(select(column).where(column.class_.id == key))).scalar_one_or_none()
    return title or "an item"


async def add_comment(
    db: AsyncSession,
    author: User,
    entity_type: str,
    entity_id: str,
    body: str,
    metadata: dict[str, Any] | None = None,
    *,
    redis: Any | None = None,
    detached: DetachedTaskGroup | None = None,
) -> CommentResult:
    """Store a comment, record its mentions, auto-watch the entity and notify followers.

    The comment and its mentions are the primary write. Watching and
    notifying are best effort.
    """
    comment = Comment(entity_type=entity_type, entity_id=str(entity_id), user_id=author.id, body=body)
    db.add(comment)
    await db.flush()

    mentions, mentioned_ids = await parse_mentions(db, body)
    await persist_mentions(db, comment.id, entity_type, entity_id, mentioned_ids)

    await ensure_watching(db, entity_type, entity_id, author.id)

    event = EntityEvent(
        entity_type=entity_type,
        entity_id=str(entity_id),
        event=f"{entity_type}_commented",
        actor_id=author.id,
        title=f"{display_name(author)} commented on {entity_type}: {await entity_title(db, entity_type, entity_id)}",
        body=preview(body),
        metadata={"comment_id": str(comment.id), **(metadata or {})},
        mentioned_user_ids=mentioned_ids,
    )
    dispatch = None
    try:
        async with db.begin_nested():
            dispatch = await notify_entity(db, event, redis=redis, detached=detached)
    except Exception:
        logger.warning("Comment notification failed for %s", event.group_key, exc_info=True)

    return CommentResult(comment=comment, mentions=mentions, dispatch=dispatch)
