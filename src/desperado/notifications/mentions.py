"""@mention extraction and resolution for comment text.

Recognised forms: ``@display_name`` and ``@email``, matched case-insensitively.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from desperado.db.models import Mention, User

MENTION_PATTERN = re.compile(r"@(\w[\w.@-]{0,100})")
MIN_IDENTIFIER_LENGTH = 2


@dataclass
class ParsedMention:
    identifier: str
    user_id: uuid.UUID | None

    @property
    def raw(self) -> str:
        return f"@{self.identifier}"


def extract_mentions(text: str | None) -> list[str]:
    """Identifiers mentioned in ``text``, deduplicated in first-seen order."""
    if not text:
        return []
    identifiers: list[str] = []
    for match in MENTION_PATTERN.finditer(text):
        identifier = match.group(1).removesuffix(".")
        if len(identifier) >= MIN_IDENTIFIER_LENGTH and identifier not in identifiers:
            identifiers.append(identifier)
    return identifiers


async def resolve_mentions(db: AsyncSession, identifiers: list[str]) -> dict[str, uuid.UUID]:
    """Map each identifier to a user id by display name or email."""
    if not identifiers:
        return {}

    lowered = {identifier.lower() for identifier in identifiers}
    result = await db.execute(
        select(User).where(
            or_(
                func.lower(User.display_name).in_(lowered),
                func.lower(User.email).in_(lowered),
            )
        )
    )
    resolved: dict[str, uuid.UUID] = {}
    for user in result.scalars():
        for identifier in identifiers:
            lower = identifier.lower()
            if (user.display_name and user.display_name.lower() == lower) or (
                user.email and user.email.lower() == lower
            ):
                resolved[identifier] = user.id
    return resolved


async def parse_mentions(db: AsyncSession, text: str | None) -> tuple[list[ParsedMention], list[uuid.UUID]]:
    """Extract and resolve. Returns (mentions, deduplicated resolved user ids)."""
    identifiers = extract_mentions(text)
    if not identifiers:
        return [], []

    resolved = await resolve_mentions(db, identifiers)
    mentions = [ParsedMention(identifier=i, user_id=resolved.get(i)) for i in identifiers]
    user_ids = list(dict.fromkeys(m.user_id for m in mentions if m.user_id is not None))
    return mentions, user_ids


async def persist_mentions(
    db: AsyncSession,
    comment_id: uuid.UUID,
    entity_type: str,
    entity_id: str,
    user_ids: list[uuid.UUID],
) -> int:
    if not user_ids:
        return 0
    db.add_all(
        Mention(
            comment_id=comment_id,
            mentioned_user_id=user_id,
            entity_type=entity_type,
            entity_id=str(entity_id),
        )
        for user_id in user_ids
    )
    await db.flush()
    return len(user_ids)
