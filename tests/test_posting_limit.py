"""Tests for the rolling two-slot posting policy (classifieds/services/posting_limit.py)."""

import uuid
from datetime import UTC, datetime, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.dialects import postgresql
from sqlalchemy.ext.asyncio import AsyncSession

from classifieds.config import settings
from classifieds.models.classified import ClassifiedStatus
from classifieds.schemas.classified import ClassifiedCreate
from classifieds.services.classified import create_classified
from classifieds.services.posting_limit import (
    PostingLimitExceeded,
    days_until_unlock,
    evaluate_posting_limit,
)
from tests.conftest import (
    classified_payload,
    days_ago,
    insert_classified,
    register_user,
    signed_request,
)

NOW = datetime(2026, 3, 20, 12, 0, tzinfo=UTC)


def _ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


# ---------------------------------------------------------------------------
# Pure evaluator
# ---------------------------------------------------------------------------


def test_no_history_is_fully_open() -> None:
    info = evaluate_posting_limit([], NOW)
    assert info.can_post is True
    assert info.posts_used == 0
    assert info.posts_available == 2
    assert info.days_until_slot1_unlock == 0
    assert info.days_until_slot2_unlock is None
    assert info.oldest_post_date is None


@pytest.mark.parametrize("k", [0, 1, 7, 14])
def test_one_recent_post_uses_one_slot(k: int) -> None:
    info = evaluate_posting_limit([_ago(k)], NOW)
    assert info.can_post is True
    assert info.posts_used == 1
    assert info.posts_available == 1
    assert info.days_until_slot1_unlock == 15 - k
    assert info.days_until_slot2_unlock is None
    assert info.oldest_post_date == _ago(k)


def test_two_recent_posts_block_posting() -> None:
    """The older occupant is slot 1 and unlocks first."""
    info = evaluate_posting_limit([_ago(2), _ago(9)], NOW)
    assert info.can_post is False
    assert info.posts_used == 2
    assert info.posts_available == 0
    assert info.days_until_slot1_unlock == 6
    assert info.days_until_slot2_unlock == 13
    assert info.oldest_post_date == _ago(9)


def test_scenario_two_posts_three_days_apart() -> None:
    """A at day 0, B at day 3: checked at day 10, then at day 16."""
    a = NOW
    b = NOW + timedelta(days=3)

    at_day_10 = evaluate_posting_limit([a, b], NOW + timedelta(days=10))
    assert at_day_10.posts_used == 2
    assert at_day_10.can_post is False
    assert at_day_10.days_until_slot1_unlock == 5
    assert at_day_10.days_until_slot2_unlock == 8

    at_day_16 = evaluate_posting_limit([a, b], NOW + timedelta(days=16))
    assert at_day_16.posts_used == 1
    assert at_day_16.can_post is True
    assert at_day_16.days_until_slot1_unlock == 2
    assert at_day_16.days_until_slot2_unlock is None
    assert at_day_16.oldest_post_date == b


def test_posts_outside_window_are_ignored() -> None:
    info = evaluate_posting_limit([_ago(15.5), _ago(40)], NOW)
    assert info.can_post is True
    assert info.posts_used == 0


def test_input_order_does_not_matter() -> None:
    stamps = [_ago(1), _ago(12), _ago(5)]
    assert evaluate_posting_limit(stamps, NOW) == evaluate_posting_limit(list(reversed(stamps)), NOW)


def test_more_than_two_in_window_keeps_two_most_recent() -> None:
    """Racing submissions can leave three rows in the window; the newest two occupy."""
    info = evaluate_posting_limit([_ago(12), _ago(4), _ago(1)], NOW)
    assert info.posts_used == 2
    assert info.can_post is False
    assert info.days_until_slot1_unlock == 11
    assert info.days_until_slot2_unlock == 14
    assert info.oldest_post_date == _ago(4)


def test_partial_days_round_up() -> None:
    assert days_until_unlock(_ago(14.5), NOW) == 1
    assert days_until_unlock(_ago(0.01), NOW) == 15


def test_remaining_days_never_negative() -> None:
    assert days_until_unlock(_ago(30), NOW) == 0


def test_naive_timestamps_are_treated_as_utc() -> None:
    naive = _ago(3).replace(tzinfo=None)
    info = evaluate_posting_limit([naive], NOW)
    assert info.posts_used == 1
    assert info.days_until_slot1_unlock == 12


def test_evaluation_is_idempotent_and_does_not_mutate_input() -> None:
    stamps = [_ago(3), _ago(1)]
    snapshot = list(stamps)
    first = evaluate_posting_limit(stamps, NOW)
    second = evaluate_posting_limit(stamps, NOW)
    assert first == second
    assert first.to_dict() == second.to_dict()
    assert stamps == snapshot


def test_window_and_slots_follow_settings() -> None:
    object.__setattr__(settings, "posting_limit_slots", 3)
    object.__setattr__(settings, "posting_limit_window_days", 7)
    info = evaluate_posting_limit([_ago(1), _ago(2), _ago(8)], NOW)
    assert info.posts_used == 2
    assert info.posts_available == 1
    assert info.can_post is True
    assert info.days_until_slot1_unlock == 5


def test_to_dict_wire_shape() -> None:
    body = evaluate_posting_limit([_ago(2)], NOW).to_dict()
    assert set(body) == {
        "can_post",
        "posts_available",
        "posts_used",
        "days_until_slot1_unlock",
        "days_until_slot2_unlock",
        "oldest_post_date",
    }
    assert body["oldest_post_date"] == _ago(2).isoformat()


def test_exceeded_error_carries_countdowns() -> None:
    info = evaluate_posting_limit([_ago(14), _ago(3)], NOW)
    exc = PostingLimitExceeded(info)
    assert exc.status_code == 429
    assert exc.detail["days_until_slot1_unlock"] == 1
    assert exc.detail["days_until_slot2_unlock"] == 12
    assert "1 day." in exc.detail["message"]


# ---------------------------------------------------------------------------
# Endpoint and enforcement
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_posting_limit_endpoint_counts_backdated_posts(
    client: AsyncClient, db_session: AsyncSession
) -> None:
    user = await register_user(client)
    await insert_classified(db_session, user.user_id, created_at=days_ago(10))
    await insert_classified(db_session, user.user_id, created_at=days_ago(7))

    resp = await signed_request(client, user, "GET", f"/users/{user.user_id}/posting-limit")
    assert resp.status_code == 200
    body = resp.json()
    assert body["can_post"] is False
    assert body["posts_used"] == 2
    assert body["posts_available"] == 0
    assert body["days_until_slot1_unlock"] == 5
    assert body["days_until_slot2_unlock"] == 8
    assert body["oldest_post_date"] is not None


@pytest.mark.asyncio
async def test_expired_slot_frees_after_window(
    client: AsyncClient, db_session: AsyncSession
) -> None:
    user = await register_user(client)
    await insert_classified(db_session, user.user_id, created_at=days_ago(16))
    await insert_classified(db_session, user.user_id, created_at=days_ago(13))

    resp = await signed_request(client, user, "GET", f"/users/{user.user_id}/posting-limit")
    body = resp.json()
    assert body["can_post"] is True
    assert body["posts_used"] == 1
    assert body["days_until_slot1_unlock"] == 2


@pytest.mark.asyncio
async def test_slot_freeing_ignores_duration_and_status(
    client: AsyncClient, db_session: AsyncSession
) -> None:
    """A 30-day sold classified stops occupying its slot after 15 days all the same."""
    user = await register_user(client)
    await insert_classified(
        db_session, user.user_id, created_at=days_ago(20),
        duration_days=30, status=ClassifiedStatus.SOLD,
    )
    await insert_classified(
        db_session, user.user_id, created_at=days_ago(1), status=ClassifiedStatus.PENDING,
    )

    resp = await signed_request(client, user, "GET", f"/users/{user.user_id}/posting-limit")
    body = resp.json()
    assert body["posts_used"] == 1
    assert body["can_post"] is True


@pytest.mark.asyncio
async def test_third_post_is_refused(client: AsyncClient) -> None:
    user = await register_user(client)
    for _ in range(2):
        resp = await signed_request(client, user, "POST", "/classifieds", classified_payload())
        assert resp.status_code == 201

    resp = await signed_request(client, user, "POST", "/classifieds", classified_payload())
    assert resp.status_code == 429
    detail = resp.json()["detail"]
    assert detail["days_until_slot1_unlock"] == 15
    assert detail["days_until_slot2_unlock"] == 15

    listed = await signed_request(client, user, "GET", f"/users/{user.user_id}/classifieds")
    assert len(listed.json()) == 2


@pytest.mark.asyncio
async def test_other_users_posts_do_not_count(
    client: AsyncClient, db_session: AsyncSession
) -> None:
    alice = await register_user(client)
    bob = await register_user(client)
    await insert_classified(db_session, alice.user_id, created_at=days_ago(1))
    await insert_classified(db_session, alice.user_id, created_at=days_ago(2))

    resp = await signed_request(client, bob, "POST", "/classifieds", classified_payload())
    assert resp.status_code == 201


@pytest.mark.asyncio
async def test_posting_limit_is_private(client: AsyncClient) -> None:
    alice = await register_user(client)
    bob = await register_user(client)
    resp = await signed_request(client, bob, "GET", f"/users/{alice.user_id}/posting-limit")
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_admin_can_view_any_posting_limit(client: AsyncClient) -> None:
    from tests.conftest import ADMIN_EMAIL

    admin = await register_user(client, email=ADMIN_EMAIL)
    alice = await register_user(client)
    resp = await signed_request(client, admin, "GET", f"/users/{alice.user_id}/posting-limit")
    assert resp.status_code == 200
    assert resp.json()["can_post"] is True


def test_exceeded_message_follows_slot_count() -> None:
    object.__setattr__(settings, "posting_limit_slots", 3)
    info = evaluate_posting_limit([_ago(1), _ago(2), _ago(3)], NOW)
    exc = PostingLimitExceeded(info)
    assert "all 3 posting slots" in exc.detail["message"]


# ---------------------------------------------------------------------------
# User-row lock
# ---------------------------------------------------------------------------


async def _create_recording_sql(
    client: AsyncClient, db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch
) -> list[str]:
    """Create a classified through the service and return each statement, compiled for PostgreSQL."""
    user = await register_user(client)
    statements: list[str] = []
    execute = AsyncSession.execute

    async def recording_execute(self, statement, *args, **kwargs):  # type: ignore[no-untyped-def]
        statements.append(str(statement.compile(dialect=postgresql.dialect())))
        return await execute(self, statement, *args, **kwargs)

    monkeypatch.setattr(AsyncSession, "execute", recording_execute)
    await create_classified(
        db_session, uuid.UUID(user.user_id), ClassifiedCreate(**classified_payload())
    )
    return statements


@pytest.mark.asyncio
async def test_user_row_locked_before_slot_check(
    client: AsyncClient, db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch
) -> None:
    statements = await _create_recording_sql(client, db_session, monkeypatch)

    lock = next(
        i for i, sql in enumerate(statements) if "FROM users" in sql and "FOR UPDATE" in sql
    )
    slot_check = next(
        i for i, sql in enumerate(statements)
        if "classifieds.created_at" in sql and "FROM classifieds" in sql
    )
    assert lock < slot_check


@pytest.mark.asyncio
async def test_user_row_lock_can_be_disabled(
    client: AsyncClient, db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch
) -> None:
    object.__setattr__(settings, "posting_limit_lock_user_row", False)
    statements = await _create_recording_sql(client, db_session, monkeypatch)

    assert not any("FOR UPDATE" in sql for sql in statements)
    assert any("classifieds.created_at >=" in sql for sql in statements)
