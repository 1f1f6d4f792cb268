from __future__ import annotations

import asyncio
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

import pytest

from debtsync.cache import QueryCache, QuerySnapshot, debts_key
from debtsync.exceptions import (
    NetworkError,
    NotAuthenticatedError,
    OwnershipError,
    StaleWriteError,
    StoreError,
    ValidationError,
)
from debtsync.models.debt import DebtPriority, DebtStatus, NewDebt
from debtsync.mutations import MutationCoordinator
from debtsync.queries import debts_query
from debtsync.validation import validate_new_debt

USER_ID = "user-1"
OTHER_USER_ID = "user-2"
KEY = debts_key(USER_ID)


async def _loaded(store, auth, **kwargs: Any) -> tuple[QueryCache, MutationCoordinator]:
    cache = QueryCache()
    await cache.fetch(KEY, debts_query(store, USER_ID))
    return cache, MutationCoordinator(store, cache, auth, **kwargs)


@pytest.mark.asyncio
async def test_created_debt_is_visible_before_any_refetch(store, auth) -> None:
    cache, coordinator = await _loaded(store, auth)
    selects = store.count("select")

    created = await coordinator.create({"creditor": "Bank A", "amount": "100.00", "priority": "HIGH"})
    snap = cache.get(KEY)

    assert [debt.id for debt in snap.data] == [created.id]
    assert store.count("select") == selects


@pytest.mark.asyncio
async def test_create_round_trip_matches_refetch(store, auth) -> None:
    cache, coordinator = await _loaded(store, auth)

    created = await coordinator.create(
        {
            "creditor": "  Card Co  ",
            "amount": "100.00",
            "priority": "high",
            "description": "Credit card",
            "due_date": "2026-12-01",
        }
    )

    assert created.user_id == USER_ID
    assert created.status is DebtStatus.PENDING
    assert created.priority is DebtPriority.HIGH
    assert created.creditor == "Card Co"
    assert created.amount == Decimal("100.00")
    assert created.due_date == date(2026, 12, 1)
    assert created.created_at is not None

    refetched = await cache.fetch(KEY)
    assert refetched == (created,)


@pytest.mark.asyncio
async def test_created_debts_are_kept_in_creditor_order(store, auth, seed) -> None:
    await seed(creditor="Bank B")
    cache, coordinator = await _loaded(store, auth)

    await coordinator.create(NewDebt(creditor="Bank A", amount=Decimal("5")))
    await coordinator.create(NewDebt(creditor="Bank C", amount=Decimal("5")))

    assert [debt.creditor for debt in cache.get_data(KEY)] == ["Bank A", "Bank B", "Bank C"]


@pytest.mark.asyncio
async def test_create_without_cached_collection_leaves_cache_empty(store, auth) -> None:
    cache = QueryCache()
    coordinator = MutationCoordinator(store, cache, auth)

    await coordinator.create({"creditor": "Bank A", "amount": "1"})

    assert not cache.has_data(KEY)
    assert len(store.inner.rows("debts")) == 1


@pytest.mark.asyncio
async def test_invalid_create_fails_before_network(store, auth) -> None:
    cache, coordinator = await _loaded(store, auth)

    with pytest.raises(ValidationError) as exc_info:
        await coordinator.create({"creditor": "   ", "amount": "0"})

    assert set(exc_info.value.errors) == {"creditor", "amount"}
    assert store.count("insert") == 0
    assert cache.get_data(KEY) == ()


@pytest.mark.asyncio
async def test_custom_validator_replaces_default(store, auth) -> None:
    def capped(value: Any) -> NewDebt:
        debt = validate_new_debt(value)
        if debt.amount > 1000:
            raise ValidationError("too large", errors={"amount": "must be at most 1000"})
        return debt

    _cache, coordinator = await _loaded(store, auth, new_debt_validator=capped)

    with pytest.raises(ValidationError):
        await coordinator.create({"creditor": "Bank A", "amount": "5000"})
    assert store.count("insert") == 0


@pytest.mark.asyncio
async def test_mutations_require_a_signed_in_user(store, auth) -> None:
    cache, coordinator = await _loaded(store, auth)
    auth.clear_session()

    with pytest.raises(NotAuthenticatedError) as exc_info:
        await coordinator.create({"creditor": "Bank A", "amount": "1"})
    assert exc_info.value.code == "no_session"

    with pytest.raises(NotAuthenticatedError):
        await coordinator.update("any", {"amount": "1"})
    with pytest.raises(NotAuthenticatedError):
        await coordinator.delete("any")

    assert store.calls.keys() == {"select"}


@pytest.mark.asyncio
async def test_failed_create_leaves_cache_untouched_and_is_not_retried(store, auth) -> None:
    cache, coordinator = await _loaded(store, auth)
    before = cache.get_data(KEY)
    events: list[QuerySnapshot] = []
    cache.subscribe(KEY, events.append)
    store.write_error = NetworkError("timeout")

    with pytest.raises(NetworkError):
        await coordinator.create({"creditor": "Bank A", "amount": "1"})

    assert store.count("insert") == 1
    assert cache.get_data(KEY) is before
    assert events == []


@pytest.mark.asyncio
async def test_update_and_delete_of_foreign_record_raise_ownership_error(store, auth, seed) -> None:
    await seed(creditor="Mine")
    foreign = await seed(user_id=OTHER_USER_ID, creditor="Theirs", amount="50.00")
    cache, coordinator = await _loaded(store, auth)
    before = cache.get_data(KEY)
    events: list[QuerySnapshot] = []
    cache.subscribe(KEY, events.append)

    with pytest.raises(OwnershipError) as exc_info:
        await coordinator.update(foreign["id"], {"amount": "1"})
    assert exc_info.value.record_id == foreign["id"]

    with pytest.raises(OwnershipError):
        await coordinator.delete(foreign["id"])

    assert cache.get_data(KEY) is before
    assert events == []
    stored = {row["id"]: row for row in store.inner.rows("debts")}
    assert stored[foreign["id"]]["amount"] == "50.00"


@pytest.mark.asyncio
async def test_missing_record_with_optimistic_mode_raises_ownership_error(store, auth) -> None:
    cache, coordinator = await _loaded(store, auth, optimistic=True)

    with pytest.raises(OwnershipError):
        await coordinator.update("missing", {"status": "PAID"})
    with pytest.raises(OwnershipError):
        await coordinator.delete("missing")

    assert cache.get_data(KEY) == ()


@pytest.mark.asyncio
async def test_invalid_patches_fail_before_network(store, auth, seed) -> None:
    row = await seed()
    _cache, coordinator = await _loaded(store, auth)

    for patch in ({}, {"amount": None}, {"amount": "-1"}, {"status": "LATE"}, {"bogus": 1}):
        with pytest.raises(ValidationError):
            await coordinator.update(row["id"], patch)

    assert store.count("update") == 0


@pytest.mark.asyncio
async def test_update_applies_server_row_and_invalidates(store, auth, seed) -> None:
    row = await seed()
    cache, coordinator = await _loaded(store, auth)

    updated = await coordinator.update(row["id"], {"status": "PAID"})

    assert updated.is_paid
    assert cache.get_data(KEY) == (updated,)
    assert cache.get(KEY, enabled=False).is_stale


@pytest.mark.asyncio
async def test_delete_removes_record(store, auth, seed) -> None:
    keep = await seed(creditor="Bank A")
    drop = await seed(creditor="Bank B")
    cache, coordinator = await _loaded(store, auth)

    await coordinator.delete(drop["id"])

    assert [debt.id for debt in cache.get_data(KEY)] == [keep["id"]]
    assert [r["id"] for r in store.inner.rows("debts")] == [keep["id"]]


@pytest.mark.asyncio
async def test_optimistic_update_rolls_back_on_failure(store, auth, seed) -> None:
    row = await seed(amount="100.00")
    cache, coordinator = await _loaded(store, auth, optimistic=True)
    store.write_gate = asyncio.Event()
    store.write_error = StoreError("check constraint violated", code="23514")

    pending = asyncio.ensure_future(coordinator.update(row["id"], {"amount": "5"}))
    await store.wait_for("update")
    assert cache.get_data(KEY)[0].amount == Decimal("5")

    store.write_gate.set()
    with pytest.raises(StoreError):
        await pending

    assert cache.get_data(KEY)[0].amount == Decimal("100.00")


@pytest.mark.asyncio
async def test_optimistic_delete_rolls_back_on_failure(store, auth, seed) -> None:
    row = await seed()
    cache, coordinator = await _loaded(store, auth, optimistic=True)
    store.write_gate = asyncio.Event()
    store.write_error = NetworkError("connection reset")

    pending = asyncio.ensure_future(coordinator.delete(row["id"]))
    await store.wait_for("delete")
    assert cache.get_data(KEY) == ()

    store.write_gate.set()
    with pytest.raises(NetworkError):
        await pending

    assert [debt.id for debt in cache.get_data(KEY)] == [row["id"]]


@pytest.mark.asyncio
async def test_stale_write_is_rejected_before_network(store, auth, seed) -> None:
    row = await seed()
    cache, coordinator = await _loaded(store, auth)
    cached = cache.get_data(KEY)[0]

    with pytest.raises(StaleWriteError) as exc_info:
        await coordinator.update(
            row["id"],
            {"amount": "1"},
            if_unmodified_since=cached.updated_at - timedelta(seconds=1),
        )
    assert exc_info.value.record_id == row["id"]
    assert store.count("update") == 0

    updated = await coordinator.update(row["id"], {"amount": "1"}, if_unmodified_since=cached.updated_at)
    assert updated.amount == Decimal("1")


@pytest.mark.asyncio
async def test_older_response_does_not_replace_newer_cached_row(store, auth, seed) -> None:
    row = await seed(amount="100.00")
    cache, coordinator = await _loaded(store, auth)
    cached = cache.get_data(KEY)[0]
    newer = cached.model_copy(update={"amount": Decimal("999"), "updated_at": cached.updated_at + timedelta(days=1)})
    cache.set(KEY, (newer,))

    updated = await coordinator.update(row["id"], {"amount": "1"})

    assert updated.amount == Decimal("1")
    assert cache.get_data(KEY) == (newer,)


@pytest.mark.asyncio
async def test_update_of_uncached_record_does_not_resurrect_it(store, auth, seed) -> None:
    row = await seed()
    cache, coordinator = await _loaded(store, auth)
    cache.set(KEY, ())

    await coordinator.update(row["id"], {"priority": "LOW"})

    assert cache.get_data(KEY) == ()


@pytest.mark.asyncio
async def test_concurrent_updates_last_write_wins(store, auth, seed) -> None:
    row = await seed(amount="100.00")
    cache, coordinator = await _loaded(store, auth)

    first, second = await asyncio.gather(
        coordinator.update(row["id"], {"amount": "10"}),
        coordinator.update(row["id"], {"amount": "20"}),
    )

    assert second.updated_at > first.updated_at
    assert store.inner.rows("debts")[0]["amount"] == "20"
    assert cache.get_data(KEY) == (second,)
