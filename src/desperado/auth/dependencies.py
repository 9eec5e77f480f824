"""FastAPI authentication dependencies."""

from __future__ import annotations

import uuid

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from desperado.auth.jwt import verify_token
from desperado.database import get_session
from desperado.db.models import User
from desperado.households import get_primary_household_id

_bearer = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User:
    """Verify the bearer token and return the User it belongs to. Raises 401 on failure."""
    try:
        payload = verify_token(credentials.credentials)
        user_id = uuid.UUID(payload["sub"])
    except (jwt.InvalidTokenError, ValueError) as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


async def get_current_household_id(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> uuid.UUID:
    """The caller's household. 404 when they have not joined one."""
    household_id = await get_primary_household_id(db, user.id)
    if household_id is None:
        raise HTTPException(status_code=404, detail="No household found")
    return household_id
