"""Fee schedule and quote endpoints. Public, no auth required."""

from datetime import UTC, datetime

from fastapi import APIRouter, HTTPException, Query

from classifieds.schemas.classified import FeeQuoteResponse
from classifieds.services.fees import calculate_listing_terms, get_fee_schedule

router = APIRouter(prefix="/fees", tags=["fees"])


@router.get("")
async def fee_schedule() -> dict:
    """Current upsell fee schedule. Totals are informational and never charged."""
    return get_fee_schedule()


@router.get("/quote", response_model=FeeQuoteResponse)
async def fee_quote(
    duration_days: int = Query(15),
    is_all_cities: bool = Query(False),
    is_top_classified: bool = Query(False),
    is_featured_classified: bool = Query(False),
) -> FeeQuoteResponse:
    """Expiry and fee breakdown for a classified posted now with these options."""
    try:
        terms = calculate_listing_terms(
            datetime.now(UTC),
            duration_days,
            is_all_cities=is_all_cities,
            is_top_classified=is_top_classified,
            is_featured_classified=is_featured_classified,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return FeeQuoteResponse(
        end_date=terms.end_date,
        all_cities_fee=terms.all_cities_fee,
        top_amount=terms.top_amount,
        featured_amount=terms.featured_amount,
        total_amount=terms.total_amount,
    )
