"""Classified ad and category SQLAlchemy models."""

import enum
import uuid
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import JSON, Boolean, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from classifieds.database import Base


class ClassifiedStatus(enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    SOLD = "sold"
    ARCHIVED = "archived"


class ClassifiedCondition(enum.Enum):
    NEW = "new"
    LIKE_NEW = "like_new"
    GOOD = "good"
    FAIR = "fair"
    FOR_PARTS = "for_parts"


class ClassifiedCategory(Base):
    __tablename__ = "classified_categories"

    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    slug: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )


class Classified(Base):
    __tablename__ = "classifieds"

    classified_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    created_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("classified_categories.category_id", ondelete="SET NULL"),
        nullable=True,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # None renders as "Negotiable"
    price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="USD")
    condition: Mapped[ClassifiedCondition | None] = mapped_column(
        Enum(ClassifiedCondition, values_callable=lambda x: [e.value for e in x]),
        nullable=True,
    )

    city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    state: Mapped[str | None] = mapped_column(String(64), nullable=True)
    country: Mapped[str] = mapped_column(String(64), nullable=False, default="USA")
    zipcode: Mapped[str] = mapped_column(String(16), nullable=False)
    is_all_cities: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    contact_email: Mapped[str] = mapped_column(String(320), nullable=False)
    contact_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    images: Mapped[list[str]] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list
    )
    terms_accepted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    status: Mapped[ClassifiedStatus] = mapped_column(
        Enum(ClassifiedStatus, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=ClassifiedStatus.PENDING,
        index=True,
    )
    duration_days: Mapped[int] = mapped_column(Integer, nullable=False, default=15)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    is_top_classified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_featured_classified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Admin-controlled, no fee attached
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    all_cities_fee: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    top_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    featured_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )

    views_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    category = relationship("ClassifiedCategory", lazy="selectin")
