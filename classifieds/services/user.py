"""User registration and lookup."""

import logging
import uuid

from fastapi import HTTPException
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from classifieds.config import settings
from classifieds.models.user import User
from classifieds.schemas.user import UserCreate

logger = logging.getLogger(__name__)


async def register_user(db: AsyncSession, data: UserCreate) -> User:
    """Register a user with the public key they will sign requests with."""
    result = await db.execute(
        select(User).where(or_(User.email == data.email, User.public_key == data.public_key))
    )
    if result.scalars().first() is not None:
        raise HTTPException(status_code=409, detail="Email or public key already registered")

    admin_emails = {e.strip().lower() for e in settings.admin_emails}
    user = User(
        user_id=uuid.uuid4(),
        email=data.email,
        display_name=data.display_name,
        public_key=data.public_key,
        is_admin=data.email in admin_emails,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("Registered user %s (admin=%s)", user.user_id, user.is_admin)
    return user


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    result = await db.execute(select(User).where(User.user_id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user
