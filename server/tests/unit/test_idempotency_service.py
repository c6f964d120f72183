"""Unit tests for the idempotency service."""

from datetime import timedelta

import pytest
from sqlalchemy import func, select, update

from marketplace.core.clock import utcnow
from marketplace.models.idempotency import IdempotencyRecord
from marketplace.services.idempotency_service import (
    IdempotencyMismatchError,
    IdempotencyService,
    scope_idempotency_key,
)

BODY = {"tourId": "abc", "adults": 2}


async def _expire_all(session):
    await session.execute(update(IdempotencyRecord).values(expires_at=utcnow() - timedelta(minutes=1)))
    await session.commit()


@pytest.mark.asyncio
async def test_store_and_replay(test_session):
    """A stored response is replayed for the same body and refused for another."""
    service = IdempotencyService(test_session)
    await service.store_response("key-1", "bookings/create", BODY, 201, {"id": "first"})

    assert await service.check_idempotency("key-1", "bookings/create", BODY) == (201, {"id": "first"})
    assert await service.check_idempotency("key-1", "other/op", BODY) is None
    with pytest.raises(IdempotencyMismatchError):
        await service.check_idempotency("key-1", "bookings/create", {**BODY, "adults": 3})


@pytest.mark.asyncio
async def test_expired_key_can_be_reused(test_session):
    """After its TTL a key runs again and the new response replaces the old one."""
    service = IdempotencyService(test_session)
    await service.store_response("key-2", "bookings/create", BODY, 201, {"id": "first"})
    await _expire_all(test_session)

    assert await service.check_idempotency("key-2", "bookings/create", BODY) is None

    await service.store_response("key-2", "bookings/create", {**BODY, "adults": 3}, 201, {"id": "second"})

    replay = await service.check_idempotency("key-2", "bookings/create", {**BODY, "adults": 3})
    assert replay == (201, {"id": "second"})
    assert await test_session.scalar(select(func.count(IdempotencyRecord.id))) == 1


@pytest.mark.asyncio
async def test_cleanup_expired_records(test_session):
    """Cleanup removes only expired records."""
    service = IdempotencyService(test_session)
    await service.store_response("old", "bookings/create", BODY, 201, {"id": "old"})
    await _expire_all(test_session)
    await service.store_response("fresh", "bookings/create", BODY, 201, {"id": "fresh"})

    assert await service.cleanup_expired_records() == 1
    remaining = (await test_session.execute(select(IdempotencyRecord.idempotency_key))).scalars().all()
    assert remaining == ["fresh"]


def test_scoped_keys_differ_per_caller():
    """The same header value maps to different keys for different callers."""
    alice = scope_idempotency_key("retry-1", "alice")
    bob = scope_idempotency_key("retry-1", "bob")

    assert alice != bob
    assert alice == scope_idempotency_key("retry-1", "alice")
    assert scope_idempotency_key("retry-1", None) == scope_idempotency_key("retry-1", "guest")
    assert len(alice) == 64
