"""User registration, profile, posting-limit, and per-user classifieds endpoints."""

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from classifieds.auth.middleware import AuthenticatedUser, verify_request
from classifieds.auth.rate_limit import check_rate_limit
from classifieds.database import get_db
from classifieds.schemas.classified import ClassifiedResponse, PostingLimitResponse
from classifieds.schemas.user import UserCreate, UserResponse
from classifieds.services import classified as classified_service
from classifieds.services import user as user_service
from classifieds.services.posting_limit import get_posting_limit

router = APIRouter(prefix="/users", tags=["users"])


def _require_self_or_admin(auth: AuthenticatedUser, user_id: uuid.UUID) -> None:
    if not auth.can_manage(user_id):
        raise HTTPException(status_code=403, detail="Can only view own account data")


@router.post(
    "",
    response_model=UserResponse,
    status_code=201,
    dependencies=[Depends(check_rate_limit)],
)
async def register_user(
    data: UserCreate,
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    """Register a user and their request-signing public key."""
    user = await user_service.register_user(db, data)
    return UserResponse.model_validate(user)


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    dependencies=[Depends(check_rate_limit)],
)
async def get_user(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    user = await user_service.get_user(db, user_id)
    return UserResponse.model_validate(user)


@router.get("/{user_id}/posting-limit", response_model=PostingLimitResponse)
async def posting_limit(
    user_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> PostingLimitResponse:
    """Free posting slots and the days until occupied ones unlock."""
    _require_self_or_admin(auth, user_id)
    info = await get_posting_limit(db, user_id)
    return PostingLimitResponse(**info.to_dict())


@router.get("/{user_id}/classifieds", response_model=list[ClassifiedResponse])
async def user_classifieds(
    user_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> list[ClassifiedResponse]:
    """Every classified the user created, in any status."""
    _require_self_or_admin(auth, user_id)
    items = await classified_service.list_user_classifieds(db, user_id)
    return [ClassifiedResponse.model_validate(c) for c in items]
