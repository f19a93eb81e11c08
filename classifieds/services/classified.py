"""Classified lifecycle and browsing business logic."""

import logging
import math
import uuid
from datetime import UTC, datetime

from fastapi import HTTPException
from sqlalchemy import Select, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from classifieds.auth.middleware import AuthenticatedUser
from classifieds.config import settings
from classifieds.models.classified import (
    Classified,
    ClassifiedCategory,
    ClassifiedCondition,
    ClassifiedStatus,
)
from classifieds.models.user import User
from classifieds.schemas.classified import ClassifiedCreate, ClassifiedFilters, ClassifiedUpdate
from classifieds.services.fees import calculate_end_date, calculate_listing_terms
from classifieds.services.posting_limit import ensure_can_post

logger = logging.getLogger(__name__)

# Statuses an owner may set on their own classified. Everything else is moderation.
OWNER_STATUSES = {ClassifiedStatus.SOLD, ClassifiedStatus.ARCHIVED}

_SORT_ORDER = {
    "newest": Classified.created_at.desc(),
    "price_asc": Classified.price.asc().nulls_last(),
    "price_desc": Classified.price.desc().nulls_last(),
    "most_viewed": Classified.views_count.desc(),
}


def normalize_locality(
    is_all_cities: bool, city: str | None, state: str | None
) -> tuple[str | None, str | None]:
    """All-cities classifieds carry the sentinel city and no state."""
    if is_all_cities:
        return settings.all_cities_sentinel, None
    return city or None, state or None


def build_classifieds_query(filters: ClassifiedFilters) -> Select:
    """Translate browse filters into an unpaginated, ordered SELECT.

    Top classifieds come first, then featured ones, then the requested sort.
    Contradictory toggles (e.g. top_only with exclude_top_and_featured) are
    not rejected; they simply match nothing.
    """
    query = select(Classified)

    if filters.search:
        # Substring match; % and _ typed by the user are literal
        query = query.where(
            or_(
                Classified.title.icontains(filters.search, autoescape=True),
                Classified.description.icontains(filters.search, autoescape=True),
            )
        )
    if filters.category_id:
        query = query.where(Classified.category_id == filters.category_id)
    if filters.city:
        query = query.where(Classified.city.icontains(filters.city, autoescape=True))
    if filters.state:
        query = query.where(Classified.state.icontains(filters.state, autoescape=True))
    if filters.min_price is not None:
        query = query.where(Classified.price >= filters.min_price)
    if filters.max_price is not None:
        query = query.where(Classified.price <= filters.max_price)
    if filters.condition:
        query = query.where(
            Classified.condition.in_([ClassifiedCondition(c) for c in filters.condition])
        )
    if filters.featured_only:
        query = query.where(
            or_(Classified.is_featured.is_(True), Classified.is_featured_classified.is_(True))
        )
    if filters.top_only:
        query = query.where(Classified.is_top_classified.is_(True))
    if filters.exclude_top_and_featured:
        query = query.where(
            Classified.is_top_classified.is_(False),
            Classified.is_featured_classified.is_(False),
            Classified.is_featured.is_(False),
        )

    status = ClassifiedStatus(filters.status) if filters.status else ClassifiedStatus.ACTIVE
    query = query.where(Classified.status == status)

    return query.order_by(
        Classified.is_top_classified.desc(),
        Classified.is_featured.desc(),
        Classified.is_featured_classified.desc(),
        _SORT_ORDER[filters.sort],
    )


async def list_classifieds(db: AsyncSession, filters: ClassifiedFilters) -> dict:
    """Fetch one page of classifieds plus the totals needed for page controls."""
    page_size = filters.page_size or settings.default_page_size
    query = build_classifieds_query(filters)

    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar_one()

    result = await db.execute(
        query.limit(page_size).offset((filters.page - 1) * page_size)
    )
    return {
        "data": list(result.scalars().all()),
        "total": total,
        "page": filters.page,
        "page_size": page_size,
        "total_pages": math.ceil(total / page_size),
    }


async def _check_category(db: AsyncSession, category_id: uuid.UUID | None) -> None:
    if category_id is None:
        return
    if await db.get(ClassifiedCategory, category_id) is None:
        raise HTTPException(status_code=422, detail="Unknown category_id")


async def create_classified(
    db: AsyncSession, user_id: uuid.UUID, data: ClassifiedCreate
) -> Classified:
    """Create a pending classified, consuming one of the user's posting slots."""
    await _check_category(db, data.category_id)

    if settings.posting_limit_lock_user_row:
        # Serializes concurrent submissions by the same user (no-op on SQLite)
        await db.execute(select(User.user_id).where(User.user_id == user_id).with_for_update())

    now = datetime.now(UTC)
    try:
        await ensure_can_post(db, user_id, now)
    except HTTPException:
        logger.warning("Posting refused for user %s: no free slot", user_id)
        raise

    terms = calculate_listing_terms(
        now,
        data.duration_days,
        is_all_cities=data.is_all_cities,
        is_top_classified=data.is_top_classified,
        is_featured_classified=data.is_featured_classified,
    )
    city, state = normalize_locality(data.is_all_cities, data.city, data.state)

    classified = Classified(
        classified_id=uuid.uuid4(),
        created_by_id=user_id,
        category_id=data.category_id,
        title=data.title,
        description=data.description,
        price=data.price,
        currency=data.currency or "USD",
        condition=ClassifiedCondition(data.condition) if data.condition else None,
        city=city,
        state=state,
        country=data.country or "USA",
        zipcode=data.zipcode,
        is_all_cities=data.is_all_cities,
        contact_email=data.contact_email,
        contact_phone=data.contact_phone or None,
        images=list(data.images),
        terms_accepted=data.terms_accepted,
        status=ClassifiedStatus.PENDING,
        duration_days=data.duration_days,
        start_date=now,
        end_date=terms.end_date,
        is_top_classified=data.is_top_classified,
        is_featured_classified=data.is_featured_classified,
        all_cities_fee=terms.all_cities_fee,
        top_amount=terms.top_amount,
        featured_amount=terms.featured_amount,
        total_amount=terms.total_amount,
        created_at=now,
        updated_at=now,
    )
    db.add(classified)
    await db.commit()
    classified = await get_classified(db, classified.classified_id)
    logger.info(
        "Classified %s created by %s (pending, total %s)",
        classified.classified_id, user_id, classified.total_amount,
    )
    return classified


async def get_classified(db: AsyncSession, classified_id: uuid.UUID) -> Classified:
    result = await db.execute(
        select(Classified)
        .where(Classified.classified_id == classified_id)
        .execution_options(populate_existing=True)
    )
    classified = result.scalar_one_or_none()
    if classified is None:
        raise HTTPException(status_code=404, detail="Classified not found")
    return classified


async def _get_managed(
    db: AsyncSession, classified_id: uuid.UUID, auth: AuthenticatedUser
) -> Classified:
    classified = await get_classified(db, classified_id)
    if not auth.can_manage(classified.created_by_id):
        raise HTTPException(status_code=403, detail="Can only manage own classifieds")
    return classified


async def increment_views(db: AsyncSession, classified_id: uuid.UUID) -> None:
    """Best-effort view counter. Failures are logged, never raised."""
    try:
        await db.execute(
            update(Classified)
            .where(Classified.classified_id == classified_id)
            .values(views_count=Classified.views_count + 1)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.warning("Could not increment views for classified %s", classified_id, exc_info=True)


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def _require_locality(city: str | None, state: str | None) -> None:
    """Edits must leave a local classified with both a city and a state."""
    errors = []
    if city is None:
        errors.append(("city", "Please select a city from suggestions"))
    if state is None:
        errors.append(("state", "State is required when not posting in all cities"))
    if errors:
        raise HTTPException(
            status_code=422,
            detail=[
                {"loc": ["body", field], "msg": msg, "type": "value_error"}
                for field, msg in errors
            ],
        )


async def update_classified(
    db: AsyncSession,
    classified_id: uuid.UUID,
    auth: AuthenticatedUser,
    data: ClassifiedUpdate,
) -> Classified:
    """Partially update a classified. Owner or administrator only.

    start_date never moves: a new duration is measured from the original
    start date. Fees are recomputed from the resulting options.
    """
    classified = await _get_managed(db, classified_id, auth)
    changes = data.model_dump(exclude_unset=True)

    if "category_id" in changes:
        await _check_category(db, changes["category_id"])

    locality = {k: changes.pop(k) for k in ("is_all_cities", "city", "state") if k in changes}
    # An explicit null leaves the flag as it is, like nulls on other required columns
    is_all_cities = classified.is_all_cities
    if locality.get("is_all_cities") is not None:
        is_all_cities = bool(locality["is_all_cities"])
    if is_all_cities:
        city, state = normalize_locality(True, None, None)
    else:
        city = _clean(locality["city"]) if "city" in locality else classified.city
        state = _clean(locality["state"]) if "state" in locality else classified.state
        if city == settings.all_cities_sentinel:
            # Leaving all-cities needs a real locality
            city = None
        _require_locality(city, state)
    classified.is_all_cities = is_all_cities
    classified.city, classified.state = city, state

    for field, value in changes.items():
        if field == "condition":
            value = ClassifiedCondition(value) if value else None
        elif field in ("currency", "country") and not value:
            value = "USD" if field == "currency" else "USA"
        elif field == "contact_phone":
            value = value or None
        elif value is None and field not in ("price", "category_id"):
            # Explicit nulls on required columns are ignored
            continue
        setattr(classified, field, value)

    terms = calculate_listing_terms(
        classified.start_date,
        classified.duration_days,
        is_all_cities=classified.is_all_cities,
        is_top_classified=classified.is_top_classified,
        is_featured_classified=classified.is_featured_classified,
    )
    if "duration_days" in changes:
        classified.end_date = calculate_end_date(classified.start_date, classified.duration_days)
    classified.all_cities_fee = terms.all_cities_fee
    classified.top_amount = terms.top_amount
    classified.featured_amount = terms.featured_amount
    classified.total_amount = terms.total_amount

    await db.commit()
    classified = await get_classified(db, classified.classified_id)
    return classified


async def update_status(
    db: AsyncSession,
    classified_id: uuid.UUID,
    auth: AuthenticatedUser,
    status: str,
) -> Classified:
    """Owners may mark their classified sold or archived; moderation needs an admin."""
    classified = await _get_managed(db, classified_id, auth)
    new_status = ClassifiedStatus(status)
    if not auth.is_admin and new_status not in OWNER_STATUSES:
        raise HTTPException(
            status_code=403,
            detail=f"Only administrators can set status to '{new_status.value}'",
        )

    old_status = classified.status
    classified.status = new_status
    await db.commit()
    classified = await get_classified(db, classified.classified_id)
    logger.info(
        "Classified %s status %s -> %s by %s",
        classified_id, old_status.value, new_status.value, auth.user_id,
    )
    return classified


async def delete_classified(
    db: AsyncSession, classified_id: uuid.UUID, auth: AuthenticatedUser
) -> None:
    """Permanently delete a classified. Owner or administrator only."""
    classified = await _get_managed(db, classified_id, auth)
    await db.delete(classified)
    await db.commit()
    logger.info("Classified %s deleted by %s", classified_id, auth.user_id)


async def set_featured(
    db: AsyncSession, classified_id: uuid.UUID, is_featured: bool
) -> Classified:
    """Admin toggle for the fee-free featured flag."""
    classified = await get_classified(db, classified_id)
    classified.is_featured = is_featured
    await db.commit()
    classified = await get_classified(db, classified.classified_id)
    return classified


async def list_user_classifieds(db: AsyncSession, user_id: uuid.UUID) -> list[Classified]:
    """All of a user's classifieds in any status, newest first."""
    result = await db.execute(
        select(Classified)
        .where(Classified.created_by_id == user_id)
        .order_by(Classified.created_at.desc())
    )
    return list(result.scalars().all())


async def list_all_classifieds(db: AsyncSession) -> list[Classified]:
    """Moderation view: every classified in any status, newest first."""
    result = await db.execute(select(Classified).order_by(Classified.created_at.desc()))
    return list(result.scalars().all())
