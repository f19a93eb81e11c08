"""Listing expiry and upsell fee calculation.

Fee structure (all configurable via settings):

1. **All-cities**: flat fee to show a classified in every locality.
2. **Top classified**: pinned above everything else, tiered by duration.
3. **Featured classified**: highlighted after top classifieds, tiered by duration.

The total is informational: it is stored with the classified and displayed,
but nothing is charged.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from classifieds.config import settings

_ZERO = Decimal("0.00")


@dataclass(frozen=True)
class ListingTerms:
    """Expiry and itemized fees derived from a classified's options."""
    end_date: datetime
    all_cities_fee: Decimal
    top_amount: Decimal
    featured_amount: Decimal
    total_amount: Decimal

    def to_dict(self) -> dict:
        return {
            "end_date": self.end_date.isoformat(),
            "all_cities_fee": str(self.all_cities_fee),
            "top_amount": str(self.top_amount),
            "featured_amount": str(self.featured_amount),
            "total_amount": str(self.total_amount),
        }


def validate_duration(duration_days: int) -> int:
    if duration_days not in settings.allowed_duration_days:
        allowed = ", ".join(str(d) for d in settings.allowed_duration_days)
        raise ValueError(f"duration_days must be one of: {allowed}")
    return duration_days


def calculate_end_date(start_date: datetime, duration_days: int) -> datetime:
    """Calendar-day expiry. Always measured from the original start date."""
    return start_date + timedelta(days=validate_duration(duration_days))


def calculate_listing_terms(
    start_date: datetime,
    duration_days: int,
    is_all_cities: bool = False,
    is_top_classified: bool = False,
    is_featured_classified: bool = False,
) -> ListingTerms:
    """Compute expiry and the fee breakdown for a set of classified options.

    Pure: the same inputs always produce the same result.
    """
    end_date = calculate_end_date(start_date, duration_days)

    all_cities_fee = settings.fee_all_cities if is_all_cities else _ZERO
    top_amount = settings.top_fee(duration_days) if is_top_classified else _ZERO
    featured_amount = settings.featured_fee(duration_days) if is_featured_classified else _ZERO

    return ListingTerms(
        end_date=end_date,
        all_cities_fee=all_cities_fee,
        top_amount=top_amount,
        featured_amount=featured_amount,
        total_amount=all_cities_fee + top_amount + featured_amount,
    )


def get_fee_schedule() -> dict:
    """Return the current upsell fee schedule for display."""
    return {
        "currency": "USD",
        "note": "Fees are shown for information only and are not charged.",
        "durations": list(settings.allowed_duration_days),
        "all_cities": {
            "amount": str(settings.fee_all_cities),
            "detail": "Flat fee, independent of duration. Shows the ad in every city.",
        },
        "top_classified": {
            str(days): str(settings.top_fee(days)) for days in settings.allowed_duration_days
        },
        "featured_classified": {
            str(days): str(settings.featured_fee(days)) for days in settings.allowed_duration_days
        },
    }
