"""Tests for the document store adapter."""
from datetime import datetime, timedelta, timezone

import pytest

from ledger.errors import StoreError


async def _create(store, email="a@example.com", money=0):
    return await store.create_user(
        email,
        password_hash="hash",
        role="user",
        money=money,
        expire_at=datetime(2030, 1, 1, tzinfo=timezone(timedelta(hours=-3))),
    )


@pytest.mark.asyncio
async def test_user_roundtrip_normalises_to_utc(store):
    """Expiry comes back in UTC; createdAt is filled in by the database."""
    user = await _create(store)
    assert user["expireAt"] == datetime(2030, 1, 1, 3, 0, tzinfo=timezone.utc)
    assert user["expireAt"].tzinfo is not None
    assert isinstance(user["createdAt"], datetime)
    assert await store.get_user("missing@example.com") is None


@pytest.mark.asyncio
async def test_duplicate_user_raises_store_error(store):
    await _create(store)
    with pytest.raises(StoreError):
        await _create(store)


@pytest.mark.asyncio
async def test_update_user_merges_fields(store):
    await _create(store, money=10)
    assert await store.update_user("a@example.com", {"role": "admin"})
    user = await store.get_user("a@example.com")
    assert user["role"] == "admin"
    assert user["money"] == 10
    assert not await store.update_user("ghost@example.com", {"role": "admin"})
    with pytest.raises(ValueError):
        await store.update_user("a@example.com", {"email": "b@example.com"})


@pytest.mark.asyncio
async def test_deduct_balance_is_conditional(store):
    await _create(store, money=5000)
    assert await store.deduct_balance("a@example.com", 3000)
    assert not await store.deduct_balance("a@example.com", 3000)
    assert (await store.get_user("a@example.com"))["money"] == 2000
    assert await store.refund_balance("a@example.com", 3000)
    assert (await store.get_user("a@example.com"))["money"] == 5000


@pytest.mark.asyncio
async def test_panel_scan_with_filter(store):
    await store.create_panel("a@example.com", {"serverId": 1, "userId": 9, "username": "one", "ram": 1024})
    await store.create_panel("a@example.com", {"serverId": 2.0, "userId": 9, "username": "two"})
    await store.create_panel("b@example.com", {"serverId": 3, "userId": 9, "username": "one"})

    matches = await store.list_panels("a@example.com", username="one")
    assert len(matches) == 1
    assert matches[0]["id"] == "1"
    assert matches[0]["ram"] == 1024
    assert isinstance(matches[0]["createdAt"], datetime)

    assert await store.get_panel("a@example.com", 2) is not None
    assert await store.list_panel_keys("a@example.com") == ["1", "2"]
    with pytest.raises(ValueError):
        await store.list_panels("a@example.com", ram=1024)


@pytest.mark.asyncio
async def test_delete_panels_in_one_commit(store):
    for server_id in (1, 2, 3):
        await store.create_panel("a@example.com", {"serverId": server_id, "userId": 9, "username": f"p{server_id}"})
    assert await store.delete_panels("a@example.com", [1, "2"]) == 2
    assert await store.delete_panels("a@example.com", []) == 0
    assert await store.list_panel_keys("a@example.com") == ["3"]
    assert await store.delete_panel("a@example.com", 3)
    assert not await store.delete_panel("a@example.com", 3)
