"""Classified browse and lifecycle endpoints."""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from classifieds.auth.middleware import AuthenticatedUser, verify_request
from classifieds.auth.rate_limit import check_rate_limit
from classifieds.database import get_db
from classifieds.schemas.classified import (
    ClassifiedCreate,
    ClassifiedFilters,
    ClassifiedResponse,
    ClassifiedStatusUpdate,
    ClassifiedUpdate,
    PaginatedClassifieds,
)
from classifieds.services import classified as classified_service

router = APIRouter(prefix="/classifieds", tags=["classifieds"])


@router.get(
    "",
    response_model=PaginatedClassifieds,
    dependencies=[Depends(check_rate_limit)],
)
async def browse_classifieds(
    filters: Annotated[ClassifiedFilters, Query()],
    db: AsyncSession = Depends(get_db),
) -> PaginatedClassifieds:
    """Browse classifieds. Only active ones unless another status is requested."""
    page = await classified_service.list_classifieds(db, filters)
    return PaginatedClassifieds(
        data=[ClassifiedResponse.model_validate(c) for c in page["data"]],
        total=page["total"],
        page=page["page"],
        page_size=page["page_size"],
        total_pages=page["total_pages"],
    )


@router.post(
    "",
    response_model=ClassifiedResponse,
    status_code=201,
    dependencies=[Depends(check_rate_limit)],
)
async def create_classified(
    data: ClassifiedCreate,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> ClassifiedResponse:
    """Submit a classified for review. Consumes one posting slot."""
    classified = await classified_service.create_classified(db, auth.user_id, data)
    return ClassifiedResponse.model_validate(classified)


@router.get(
    "/{classified_id}",
    response_model=ClassifiedResponse,
    dependencies=[Depends(check_rate_limit)],
)
async def get_classified(
    classified_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> ClassifiedResponse:
    classified = await classified_service.get_classified(db, classified_id)
    response = ClassifiedResponse.model_validate(classified)
    await classified_service.increment_views(db, classified_id)
    return response


@router.patch("/{classified_id}", response_model=ClassifiedResponse)
async def update_classified(
    classified_id: uuid.UUID,
    data: ClassifiedUpdate,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> ClassifiedResponse:
    """Edit a classified. Owner or administrator only."""
    classified = await classified_service.update_classified(db, classified_id, auth, data)
    return ClassifiedResponse.model_validate(classified)


@router.patch("/{classified_id}/status", response_model=ClassifiedResponse)
async def update_status(
    classified_id: uuid.UUID,
    data: ClassifiedStatusUpdate,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> ClassifiedResponse:
    """Mark sold/archived (owner) or moderate (administrator)."""
    classified = await classified_service.update_status(db, classified_id, auth, data.status)
    return ClassifiedResponse.model_validate(classified)


@router.delete("/{classified_id}", status_code=204)
async def delete_classified(
    classified_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Permanently delete a classified. Owner or administrator only."""
    await classified_service.delete_classified(db, classified_id, auth)
    return Response(status_code=204)
