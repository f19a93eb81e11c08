"""Pydantic v2 schemas for classifieds, categories, and browsing."""

import re
import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, computed_field, field_validator

from classifieds.config import settings
from classifieds.services.fees import validate_duration

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

_CONDITION = r"^(new|like_new|good|fair|for_parts)$"
_STATUS = r"^(pending|active|sold|archived)$"
_SORT = r"^(newest|price_asc|price_desc|most_viewed)$"


def _require_text(v: str | None, message: str) -> str | None:
    if v is not None and not v.strip():
        raise ValueError(message)
    return v.strip() if v is not None else v


def _validate_images(v: list[str] | None) -> list[str] | None:
    if v is None:
        return v
    if len(v) == 0:
        raise ValueError("Please upload at least one image")
    if len(v) > settings.max_images_per_classified:
        raise ValueError(f"Maximum {settings.max_images_per_classified} images allowed")
    return v


def _validate_contact_email(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.strip()
    if not v:
        raise ValueError("Contact email is required")
    if not _EMAIL_PATTERN.match(v):
        raise ValueError("Invalid email format")
    return v


class ClassifiedCreate(BaseModel):
    title: str = Field(..., max_length=200)
    description: str = Field(..., max_length=10000)
    category_id: uuid.UUID | None = None
    price: Decimal | None = Field(None, ge=0, max_digits=12, decimal_places=2)
    currency: str = Field("USD", min_length=1, max_length=8)
    condition: str | None = Field(None, pattern=_CONDITION)
    # Declared before city/state so their validators can see it
    is_all_cities: bool = False
    city: str | None = Field(None, max_length=128, validate_default=True)
    state: str | None = Field(None, max_length=64, validate_default=True)
    country: str = Field("USA", max_length=64)
    zipcode: str = Field(..., max_length=16)
    contact_email: str = Field(..., max_length=320)
    contact_phone: str | None = Field(None, max_length=32)
    images: list[str] = Field(..., description="1 to 4 image URLs")
    duration_days: int = 15
    is_top_classified: bool = False
    is_featured_classified: bool = False
    terms_accepted: bool = Field(False, validate_default=True)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _require_text(v, "Title is required")

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        return _require_text(v, "Description is required")

    @field_validator("zipcode")
    @classmethod
    def validate_zipcode(cls, v: str) -> str:
        return _require_text(v, "Zipcode is required")

    @field_validator("city")
    @classmethod
    def validate_city(cls, v: str | None, info: ValidationInfo) -> str | None:
        if info.data.get("is_all_cities"):
            return v
        if v is None or not v.strip():
            raise ValueError("Please select a city from suggestions")
        return v.strip()

    @field_validator("state")
    @classmethod
    def validate_state(cls, v: str | None, info: ValidationInfo) -> str | None:
        if info.data.get("is_all_cities"):
            return v
        if v is None or not v.strip():
            raise ValueError("State is required when not posting in all cities")
        return v.strip()

    @field_validator("contact_email")
    @classmethod
    def validate_contact_email(cls, v: str) -> str:
        return _validate_contact_email(v)

    @field_validator("images")
    @classmethod
    def validate_images(cls, v: list[str]) -> list[str]:
        return _validate_images(v)

    @field_validator("duration_days")
    @classmethod
    def validate_duration_days(cls, v: int) -> int:
        return validate_duration(v)

    @field_validator("terms_accepted")
    @classmethod
    def validate_terms(cls, v: bool) -> bool:
        if not v:
            raise ValueError("You must accept the terms of use")
        return v


class ClassifiedUpdate(BaseModel):
    """Partial update. Fees and end date are recomputed server-side."""
    title: str | None = Field(None, max_length=200)
    description: str | None = Field(None, max_length=10000)
    category_id: uuid.UUID | None = None
    price: Decimal | None = Field(None, ge=0, max_digits=12, decimal_places=2)
    currency: str | None = Field(None, max_length=8)
    condition: str | None = Field(None, pattern=_CONDITION)
    is_all_cities: bool | None = None
    city: str | None = Field(None, max_length=128)
    state: str | None = Field(None, max_length=64)
    country: str | None = Field(None, max_length=64)
    zipcode: str | None = Field(None, max_length=16)
    contact_email: str | None = Field(None, max_length=320)
    contact_phone: str | None = Field(None, max_length=32)
    images: list[str] | None = None
    duration_days: int | None = None
    is_top_classified: bool | None = None
    is_featured_classified: bool | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str | None) -> str | None:
        return _require_text(v, "Title is required")

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str | None) -> str | None:
        return _require_text(v, "Description is required")

    @field_validator("zipcode")
    @classmethod
    def validate_zipcode(cls, v: str | None) -> str | None:
        return _require_text(v, "Zipcode is required")

    @field_validator("contact_email")
    @classmethod
    def validate_contact_email(cls, v: str | None) -> str | None:
        return _validate_contact_email(v)

    @field_validator("images")
    @classmethod
    def validate_images(cls, v: list[str] | None) -> list[str] | None:
        return _validate_images(v)

    @field_validator("duration_days")
    @classmethod
    def validate_duration_days(cls, v: int | None) -> int | None:
        if v is None:
            return v
        return validate_duration(v)


class ClassifiedStatusUpdate(BaseModel):
    status: str = Field(..., pattern=_STATUS)


class FeaturedUpdate(BaseModel):
    is_featured: bool


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    slug: str = Field(..., min_length=1, max_length=128)

    @field_validator("slug")
    @classmethod
    def validate_slug(cls, v: str) -> str:
        if not _SLUG_PATTERN.match(v):
            raise ValueError("Slug must be lowercase alphanumeric words joined by hyphens")
        return v


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category_id: uuid.UUID
    name: str
    slug: str


class CityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    city_id: uuid.UUID
    city: str
    state: str
    country: str


class ClassifiedResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    classified_id: uuid.UUID
    created_by_id: uuid.UUID
    category_id: uuid.UUID | None
    category: CategoryResponse | None = None
    title: str
    description: str
    price: Decimal | None
    currency: str
    condition: str | None
    city: str | None
    state: str | None
    country: str
    zipcode: str
    is_all_cities: bool
    contact_email: str
    contact_phone: str | None
    images: list[str]
    status: str
    duration_days: int
    start_date: datetime
    end_date: datetime
    is_top_classified: bool
    is_featured_classified: bool
    is_featured: bool
    all_cities_fee: Decimal
    top_amount: Decimal
    featured_amount: Decimal
    total_amount: Decimal
    views_count: int
    created_at: datetime
    updated_at: datetime

    @field_validator("condition", "status", mode="before")
    @classmethod
    def serialize_enum(cls, v: object) -> str | None:
        if v is None:
            return None
        if hasattr(v, "value"):
            return v.value
        return str(v)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def price_display(self) -> str:
        if self.price is None:
            return "Negotiable"
        return f"{self.price} {self.currency}"


class ClassifiedFilters(BaseModel):
    """Query params for GET /classifieds."""
    search: str | None = Field(None, max_length=200)
    category_id: uuid.UUID | None = None
    city: str | None = Field(None, max_length=128)
    state: str | None = Field(None, max_length=64)
    min_price: Decimal | None = Field(None, ge=0)
    max_price: Decimal | None = Field(None, ge=0)
    condition: list[str] | None = None
    featured_only: bool = False
    top_only: bool = False
    # Contradicts featured_only/top_only; combining them yields an empty page
    exclude_top_and_featured: bool = False
    status: str | None = Field(None, pattern=_STATUS)
    sort: str = Field("newest", pattern=_SORT)
    page: int = Field(1, ge=1)
    page_size: int | None = Field(None, ge=1)

    @field_validator("condition")
    @classmethod
    def validate_condition(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return v
        pattern = re.compile(_CONDITION)
        for c in v:
            if not pattern.match(c):
                raise ValueError(f"Unknown condition: {c}")
        return v

    @field_validator("page_size")
    @classmethod
    def validate_page_size(cls, v: int | None) -> int | None:
        if v is not None and v > settings.max_page_size:
            raise ValueError(f"page_size must be at most {settings.max_page_size}")
        return v


class PaginatedClassifieds(BaseModel):
    data: list[ClassifiedResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class PostingLimitResponse(BaseModel):
    can_post: bool
    posts_available: int
    posts_used: int
    days_until_slot1_unlock: int
    days_until_slot2_unlock: int | None
    oldest_post_date: datetime | None


class FeeQuoteResponse(BaseModel):
    end_date: datetime
    all_cities_fee: Decimal
    top_amount: Decimal
    featured_amount: Decimal
    total_amount: Decimal
