"""Reference data: classified categories and the city lookup."""

import logging

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from classifieds.config import settings
from classifieds.models.classified import ClassifiedCategory
from classifieds.models.location import LocationCity
from classifieds.schemas.classified import CategoryCreate

logger = logging.getLogger(__name__)


async def list_categories(db: AsyncSession) -> list[ClassifiedCategory]:
    result = await db.execute(select(ClassifiedCategory).order_by(ClassifiedCategory.name))
    return list(result.scalars().all())


async def create_category(db: AsyncSession, data: CategoryCreate) -> ClassifiedCategory:
    result = await db.execute(
        select(ClassifiedCategory).where(ClassifiedCategory.slug == data.slug)
    )
    if result.scalar_one_or_none() is not None:
        raise HTTPException(status_code=409, detail=f"Category slug '{data.slug}' already exists")

    category = ClassifiedCategory(name=data.name, slug=data.slug)
    db.add(category)
    await db.commit()
    await db.refresh(category)
    logger.info("Created category %s (%s)", category.slug, category.category_id)
    return category


async def search_cities(db: AsyncSession, query: str) -> list[LocationCity]:
    """Prefix match on active cities for autocomplete. Short queries match nothing."""
    query = query.strip()
    if len(query) < settings.city_search_min_chars:
        return []
    result = await db.execute(
        select(LocationCity)
        .where(LocationCity.city.ilike(f"{query}%"), LocationCity.is_active.is_(True))
        .order_by(LocationCity.city)
        .limit(settings.city_search_limit)
    )
    return list(result.scalars().all())
