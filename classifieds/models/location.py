"""City lookup table backing location autocomplete."""

import uuid

from sqlalchemy import Boolean, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from classifieds.database import Base


class LocationCity(Base):
    __tablename__ = "locations_cities"

    city_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    city: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    state: Mapped[str] = mapped_column(String(64), nullable=False)
    country: Mapped[str] = mapped_column(String(64), nullable=False, default="USA")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
