"""Public reference data: categories and city autocomplete."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from classifieds.auth.rate_limit import check_rate_limit
from classifieds.database import get_db
from classifieds.schemas.classified import CategoryResponse, CityResponse
from classifieds.services import catalog as catalog_service

router = APIRouter(tags=["catalog"], dependencies=[Depends(check_rate_limit)])


@router.get("/classifieds/categories", response_model=list[CategoryResponse])
async def list_categories(db: AsyncSession = Depends(get_db)) -> list[CategoryResponse]:
    categories = await catalog_service.list_categories(db)
    return [CategoryResponse.model_validate(c) for c in categories]


@router.get("/locations/cities", response_model=list[CityResponse])
async def search_cities(
    q: str = Query("", max_length=128),
    db: AsyncSession = Depends(get_db),
) -> list[CityResponse]:
    """Active cities starting with ``q`` (at least 2 characters)."""
    cities = await catalog_service.search_cities(db, q)
    return [CityResponse.model_validate(c) for c in cities]
