"""Administrator endpoints: moderation queue, featured flag, categories."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from classifieds.auth.middleware import AuthenticatedUser, require_admin
from classifieds.database import get_db
from classifieds.schemas.classified import (
    CategoryCreate,
    CategoryResponse,
    ClassifiedResponse,
    FeaturedUpdate,
)
from classifieds.services import catalog as catalog_service
from classifieds.services import classified as classified_service

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/classifieds", response_model=list[ClassifiedResponse])
async def list_all_classifieds(
    auth: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> list[ClassifiedResponse]:
    """Every classified in any status, newest first."""
    items = await classified_service.list_all_classifieds(db)
    return [ClassifiedResponse.model_validate(c) for c in items]


@router.put("/classifieds/{classified_id}/featured", response_model=ClassifiedResponse)
async def set_featured(
    classified_id: uuid.UUID,
    data: FeaturedUpdate,
    auth: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> ClassifiedResponse:
    classified = await classified_service.set_featured(db, classified_id, data.is_featured)
    return ClassifiedResponse.model_validate(classified)


@router.post("/categories", response_model=CategoryResponse, status_code=201)
async def create_category(
    data: CategoryCreate,
    auth: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> CategoryResponse:
    category = await catalog_service.create_category(db, data)
    return CategoryResponse.model_validate(category)
