"""Rolling posting-slot policy.

Every user holds ``settings.posting_limit_slots`` slots (2). Creating a
classified occupies a slot immediately, whatever its moderation status, and the
slot frees ``settings.posting_limit_window_days`` (15) days after creation,
independent of the classified's own duration.

Slot usage is never stored as a counter: it is derived from the user's
classified history on every check.
"""

import math
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from classifieds.config import settings
from classifieds.models.classified import Classified

_ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class PostingLimitInfo:
    """Slot usage for one user at a point in time."""
    can_post: bool
    posts_available: int
    posts_used: int
    days_until_slot1_unlock: int
    days_until_slot2_unlock: int | None
    oldest_post_date: datetime | None

    def to_dict(self) -> dict:
        return {
            "can_post": self.can_post,
            "posts_available": self.posts_available,
            "posts_used": self.posts_used,
            "days_until_slot1_unlock": self.days_until_slot1_unlock,
            "days_until_slot2_unlock": self.days_until_slot2_unlock,
            "oldest_post_date": (
                self.oldest_post_date.isoformat() if self.oldest_post_date else None
            ),
        }


class PostingLimitExceeded(HTTPException):
    """All posting slots are occupied. Carries the unlock countdowns."""

    def __init__(self, info: PostingLimitInfo) -> None:
        days = info.days_until_slot1_unlock
        super().__init__(
            status_code=429,
            detail={
                "message": (
                    f"You've used all {info.posts_used} posting slots. "
                    f"Your first slot will be available in {days} day{'s' if days != 1 else ''}."
                ),
                "days_until_slot1_unlock": info.days_until_slot1_unlock,
                "days_until_slot2_unlock": info.days_until_slot2_unlock,
            },
        )
        self.info = info


def _as_utc(value: datetime) -> datetime:
    # Some drivers (SQLite) hand back naive datetimes; they are stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def days_until_unlock(created_at: datetime, now: datetime) -> int:
    """Whole days, rounded up, until a classified stops occupying its slot."""
    window = timedelta(days=settings.posting_limit_window_days)
    remaining = (_as_utc(created_at) + window) - _as_utc(now)
    return max(0, math.ceil(remaining / _ONE_DAY))


def evaluate_posting_limit(
    created_ats: Iterable[datetime], now: datetime
) -> PostingLimitInfo:
    """Derive slot usage from the creation times of a user's classifieds.

    Input order does not matter. Only timestamps inside the rolling window
    count; if more than the slot count fall inside it (racing submissions),
    the most recent ones are the occupants. Slot 1 is always the older
    occupant, so it is the one that frees first.
    """
    slots = settings.posting_limit_slots
    now = _as_utc(now)
    cutoff = now - timedelta(days=settings.posting_limit_window_days)

    in_window = sorted(ts for ts in map(_as_utc, created_ats) if ts >= cutoff)
    occupants = in_window[-slots:] if in_window else []
    used = len(occupants)

    slot1 = days_until_unlock(occupants[0], now) if used >= 1 else 0
    slot2 = days_until_unlock(occupants[1], now) if used >= 2 else None

    return PostingLimitInfo(
        can_post=used < slots,
        posts_available=slots - used,
        posts_used=used,
        days_until_slot1_unlock=slot1,
        days_until_slot2_unlock=slot2,
        oldest_post_date=occupants[0] if occupants else None,
    )


async def get_posting_limit(
    db: AsyncSession, user_id: uuid.UUID, now: datetime | None = None
) -> PostingLimitInfo:
    """Load a user's recent classifieds and evaluate their posting slots."""
    if now is None:
        now = datetime.now(UTC)
    cutoff = now - timedelta(days=settings.posting_limit_window_days)
    result = await db.execute(
        select(Classified.created_at).where(
            Classified.created_by_id == user_id,
            Classified.created_at >= cutoff,
        )
    )
    return evaluate_posting_limit(result.scalars().all(), now)


async def ensure_can_post(
    db: AsyncSession, user_id: uuid.UUID, now: datetime | None = None
) -> PostingLimitInfo:
    """Raise PostingLimitExceeded if the user has no free slot."""
    info = await get_posting_limit(db, user_id, now)
    if not info.can_post:
        raise PostingLimitExceeded(info)
    return info
