"""Crawler profile display fields: name, title and achievement showcase."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from desperado.db.models import CrawlerProfile
from desperado.gamification.xp_service import ensure_profile

MAX_NAME_LENGTH = 50
MAX_SHOWCASE = 5


async def update_profile(db: AsyncSession, user_id: uuid.UUID, changes: dict[str, Any]) -> CrawlerProfile:
    """Apply the supplied display fields to the caller's profile.

    Names and titles are trimmed and cut to 50 characters; a blank title
    clears it. Only the first five showcase ids are kept.

    Raises:
        ValueError: If nothing applicable was supplied or the name is blank.
    """
    updates: dict[str, Any] = {}
    if "crawler_name" in changes and changes["crawler_name"] is not None:
        name = changes["crawler_name"].strip()[:MAX_NAME_LENGTH]
        if not name:
            msg = "Crawler name cannot be blank"
            raise ValueError(msg)
        updates["crawler_name"] = name
    if "title" in changes:
        title = (changes["title"] or "").strip()[:MAX_NAME_LENGTH]
        updates["title"] = title or None
    if "showcase_achievement_ids" in changes and changes["showcase_achievement_ids"] is not None:
        updates["showcase_achievement_ids"] = list(changes["showcase_achievement_ids"])[:MAX_SHOWCASE]

    if not updates:
        msg = "No valid updates"
        raise ValueError(msg)

    profile = await ensure_profile(db, user_id)
    for key, value in updates.items():
        setattr(profile, key, value)
    profile.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return profile
