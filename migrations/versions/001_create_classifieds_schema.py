"""Create users, categories, cities, and classifieds tables.

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("user_id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("display_name", sa.String(128), nullable=False),
        sa.Column("public_key", sa.String(128), nullable=False, unique=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "classified_categories",
        sa.Column("category_id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("slug", sa.String(128), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "locations_cities",
        sa.Column("city_id", sa.Uuid(), primary_key=True),
        sa.Column("city", sa.String(128), nullable=False),
        sa.Column("state", sa.String(64), nullable=False),
        sa.Column("country", sa.String(64), nullable=False, server_default="USA"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_locations_cities_city", "locations_cities", ["city"])

    op.create_table(
        "classifieds",
        sa.Column("classified_id", sa.Uuid(), primary_key=True),
        sa.Column("created_by_id", sa.Uuid(), sa.ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "category_id", sa.Uuid(),
            sa.ForeignKey("classified_categories.category_id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=True),
        sa.Column("currency", sa.String(8), nullable=False, server_default="USD"),
        sa.Column(
            "condition",
            sa.Enum("new", "like_new", "good", "fair", "for_parts", name="classifiedcondition"),
            nullable=True,
        ),
        sa.Column("city", sa.String(128), nullable=True),
        sa.Column("state", sa.String(64), nullable=True),
        sa.Column("country", sa.String(64), nullable=False, server_default="USA"),
        sa.Column("zipcode", sa.String(16), nullable=False),
        sa.Column("is_all_cities", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("contact_email", sa.String(320), nullable=False),
        sa.Column("contact_phone", sa.String(32), nullable=True),
        sa.Column("images", JSONB, nullable=False, server_default="[]"),
        sa.Column("terms_accepted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "status",
            sa.Enum("pending", "active", "sold", "archived", name="classifiedstatus"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("duration_days", sa.Integer(), nullable=False, server_default="15"),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_top_classified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_featured_classified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_featured", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("all_cities_fee", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("top_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("featured_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("views_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("duration_days IN (15, 30)", name="ck_classifieds_duration_days"),
        sa.CheckConstraint(
            "NOT is_all_cities OR (city = 'ALL' AND state IS NULL)",
            name="ck_classifieds_all_cities_locality",
        ),
    )
    op.create_index("ix_classifieds_created_by_id", "classifieds", ["created_by_id"])
    op.create_index("ix_classifieds_status", "classifieds", ["status"])
    op.create_index("ix_classifieds_created_at", "classifieds", ["created_at"])


def downgrade() -> None:
    op.drop_table("classifieds")
    op.drop_table("locations_cities")
    op.drop_table("classified_categories")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS classifiedstatus")
    op.execute("DROP TYPE IF EXISTS classifiedcondition")
