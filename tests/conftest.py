"""Test configuration and fixtures.

Runs against an in-memory SQLite database (StaticPool, so every session shares
one connection and committed rows are visible everywhere) and an in-process
fakeredis server. Tables are created and dropped around every test.
"""

import json
import uuid
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import fakeredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from classifieds.config import settings
from classifieds.database import Base, get_db
from classifieds.main import app
from classifieds.models.classified import Classified, ClassifiedStatus
from classifieds.models.location import LocationCity  # noqa: F401
from classifieds.models.user import User  # noqa: F401
from classifieds.redis import get_redis
from classifieds.services.fees import calculate_listing_terms
from classifieds.utils.crypto import AUTH_SCHEME, generate_keypair, generate_nonce, sign_request

ADMIN_EMAIL = "admin@example.com"

test_engine = create_async_engine(
    settings.test_database_url,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSession = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


# ---------------------------------------------------------------------------
# Per-test fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _isolate_settings() -> None:
    """Snapshot settings before each test and restore after to prevent mutation bleed."""
    original = settings.model_dump()
    object.__setattr__(settings, "admin_emails", [ADMIN_EMAIL])
    # Request throttling gets its own tests; keep it out of the way elsewhere
    for name in (
        "rate_limit_search_capacity",
        "rate_limit_read_capacity",
        "rate_limit_write_capacity",
        "rate_limit_registration_capacity",
    ):
        object.__setattr__(settings, name, 1000)
    yield  # type: ignore[misc]
    for key, value in original.items():
        object.__setattr__(settings, key, value)


@pytest_asyncio.fixture(autouse=True)
async def _setup_db() -> AsyncGenerator[None, None]:
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    async with TestSession() as session:
        yield session


@pytest_asyncio.fixture
async def fake_redis() -> AsyncGenerator[fakeredis.FakeAsyncRedis, None]:
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest_asyncio.fixture
async def client(fake_redis: fakeredis.FakeAsyncRedis) -> AsyncGenerator[AsyncClient, None]:
    """HTTP test client with overridden DB and Redis dependencies."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with TestSession() as session:
            yield session

    async def override_get_redis() -> AsyncGenerator[fakeredis.FakeAsyncRedis, None]:
        yield fake_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

@dataclass
class TestUser:
    user_id: str
    private_key: str
    email: str

    __test__ = False


def make_auth_headers(
    user_id: str,
    private_key_hex: str,
    method: str,
    path: str,
    body: bytes = b"",
) -> dict[str, str]:
    """Build signed auth headers for a request."""
    timestamp = datetime.now(UTC).isoformat()
    signature = sign_request(private_key_hex, timestamp, method, path, body)
    return {
        "Authorization": f"{AUTH_SCHEME} {user_id}:{signature}",
        "X-Timestamp": timestamp,
        "X-Nonce": generate_nonce(),
    }


async def signed_request(
    client: AsyncClient,
    user: TestUser,
    method: str,
    path: str,
    json_body: dict | None = None,
    params: dict | None = None,
) -> Response:
    """Send a request signed as ``user``. The signed bytes are the bytes sent."""
    body = b"" if json_body is None else json.dumps(json_body).encode()
    headers = make_auth_headers(user.user_id, user.private_key, method, path, body)
    if json_body is not None:
        headers["Content-Type"] = "application/json"
    return await client.request(
        method, path, content=body or None, headers=headers, params=params
    )


async def register_user(
    client: AsyncClient, email: str | None = None, display_name: str = "Test User"
) -> TestUser:
    priv, pub = generate_keypair()
    email = email or f"user-{uuid.uuid4().hex[:8]}@example.com"
    resp = await client.post(
        "/users", json={"email": email, "display_name": display_name, "public_key": pub}
    )
    assert resp.status_code == 201, resp.text
    return TestUser(user_id=resp.json()["user_id"], private_key=priv, email=email)


def classified_payload(**overrides: object) -> dict:
    """Factory for a valid classified submission."""
    base = {
        "title": "Mountain bike",
        "description": "Barely used, 21 speeds",
        "price": "250.00",
        "currency": "USD",
        "condition": "like_new",
        "city": "Austin",
        "state": "TX",
        "zipcode": "78701",
        "contact_email": "seller@example.com",
        "images": ["https://img.example.com/bike-1.jpg"],
        "duration_days": 15,
        "terms_accepted": True,
    }
    base.update(overrides)
    return base


async def insert_classified(
    db: AsyncSession,
    user_id: str | uuid.UUID,
    created_at: datetime | None = None,
    status: ClassifiedStatus = ClassifiedStatus.ACTIVE,
    **overrides: object,
) -> Classified:
    """Insert a classified directly, bypassing the posting limit (for backdating)."""
    created_at = created_at or datetime.now(UTC)
    duration_days = int(overrides.pop("duration_days", 15))
    terms = calculate_listing_terms(
        created_at,
        duration_days,
        is_all_cities=bool(overrides.get("is_all_cities", False)),
        is_top_classified=bool(overrides.get("is_top_classified", False)),
        is_featured_classified=bool(overrides.get("is_featured_classified", False)),
    )
    fields: dict = {
        "title": "Desk lamp",
        "description": "Warm light, works fine",
        "price": Decimal("20.00"),
        "city": "Austin",
        "state": "TX",
        "zipcode": "78701",
        "contact_email": "seller@example.com",
        "images": ["https://img.example.com/lamp.jpg"],
        "terms_accepted": True,
    }
    fields.update(overrides)
    classified = Classified(
        classified_id=uuid.uuid4(),
        created_by_id=uuid.UUID(str(user_id)),
        status=status,
        duration_days=duration_days,
        start_date=created_at,
        end_date=terms.end_date,
        all_cities_fee=terms.all_cities_fee,
        top_amount=terms.top_amount,
        featured_amount=terms.featured_amount,
        total_amount=terms.total_amount,
        created_at=created_at,
        updated_at=created_at,
        **fields,
    )
    db.add(classified)
    await db.commit()
    return classified


def days_ago(days: float) -> datetime:
    return datetime.now(UTC) - timedelta(days=days)
