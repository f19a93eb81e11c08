"""Signed-request authentication dependency for FastAPI."""

import uuid

import redis.asyncio as aioredis
from fastapi import Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from classifieds.config import settings
from classifieds.database import get_db
from classifieds.models.user import User
from classifieds.redis import get_redis
from classifieds.utils.crypto import is_timestamp_valid, parse_authorization, verify_signature


class AuthenticatedUser:
    """Container for the verified user context."""

    def __init__(self, user_id: uuid.UUID, user: User) -> None:
        self.user_id = user_id
        self.user = user

    @property
    def is_admin(self) -> bool:
        return self.user.is_admin

    def can_manage(self, owner_id: uuid.UUID) -> bool:
        """Owners manage their own content; administrators manage everything."""
        return self.is_admin or self.user_id == owner_id


async def verify_request(
    request: Request,
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> AuthenticatedUser:
    """Verify the Ed25519 signature on an incoming request."""
    auth_header = request.headers.get("Authorization")
    timestamp = request.headers.get("X-Timestamp")
    nonce = request.headers.get("X-Nonce")

    if not auth_header or not timestamp:
        raise HTTPException(status_code=403, detail="Missing authentication headers")

    try:
        user_id, signature = parse_authorization(auth_header)
    except ValueError as e:
        raise HTTPException(status_code=403, detail=str(e))

    if not is_timestamp_valid(timestamp, settings.signature_max_age_seconds):
        raise HTTPException(status_code=403, detail="Request timestamp expired")

    # Replay protection
    if nonce:
        fresh = await redis.set(f"nonce:{nonce}", "1", nx=True, ex=settings.nonce_ttl_seconds)
        if not fresh:
            raise HTTPException(status_code=403, detail="Nonce already used")

    result = await db.execute(select(User).where(User.user_id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=403, detail="User not found")

    body = await request.body()
    if not verify_signature(
        user.public_key, signature, timestamp, request.method, request.url.path, body
    ):
        raise HTTPException(status_code=403, detail="Invalid signature")

    return AuthenticatedUser(user_id=user_id, user=user)


async def require_admin(
    auth: AuthenticatedUser = Depends(verify_request),
) -> AuthenticatedUser:
    if not auth.is_admin:
        raise HTTPException(status_code=403, detail="Administrator access required")
    return auth
