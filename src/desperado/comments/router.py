"""Comment endpoint."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from desperado.auth.dependencies import get_current_user
from desperado.background import DetachedTaskGroup, get_detached
from desperado.comments.service import add_comment
from desperado.database import get_session
from desperado.db.models import User
from desperado.redis_client import get_redis_optional

router = APIRouter(prefix="/api/v1", tags=["Comments"])

ENTITY_TYPE_PATTERN = "^(task|goal|habit|shopping_list|life_event)$"


class CommentCreateRequest(BaseModel):
    body: str = Field(min_length=1, max_length=5000)
    metadata: dict[str, Any] = {}


class MentionResponse(BaseModel):
    identifier: str
    user_id: uuid.UUID | None = None


class CommentResponse(BaseModel):
    id: uuid.UUID
    entity_type: str
    entity_id: str
    body: str
    created_at: datetime
    mentions: list[MentionResponse] = []
    notified: int = 0


@router.post("/comments/{entity_type}/{entity_id}", response_model=CommentResponse, status_code=201)
async def create_comment(
    body: CommentCreateRequest,
    entity_id: str,
    entity_type: str = Path(pattern=ENTITY_TYPE_PATTERN),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_redis_optional),
    detached: DetachedTaskGroup = Depends(get_detached),
):
    result = await add_comment(
        db, user, entity_type, entity_id, body.body.strip(), body.metadata, redis=redis, detached=detached
    )
    await db.commit()
    return CommentResponse(
        id=result.comment.id,
        entity_type=result.comment.entity_type,
        entity_id=result.comment.entity_id,
        body=result.comment.body,
        created_at=result.comment.created_at,
        mentions=[MentionResponse(identifier=m.identifier, user_id=m.user_id) for m in result.mentions],
        notified=len(result.dispatch.notifications) if result.dispatch else 0,
    )
