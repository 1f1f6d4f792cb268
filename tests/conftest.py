from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import pytest

from debtsync.auth import SessionAuthProvider
from debtsync.models.user import AuthUser
from debtsync.store.base import OrderBy, Row
from debtsync.store.memory import MemoryStore

USER_ID = "user-1"


@dataclass
class FakeClock:
    now: float = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class FakeStore:
    """MemoryStore wrapper with call counters, gates and failure injection."""

    inner: MemoryStore = field(default_factory=MemoryStore)
    calls: dict[str, int] = field(default_factory=dict)
    select_gate: asyncio.Event | None = None
    write_gate: asyncio.Event | None = None
    select_errors: list[Exception] = field(default_factory=list)
    write_error: Exception | None = None

    def _record(self, op: str) -> None:
        self.calls[op] = self.calls.get(op, 0) + 1

    def count(self, op: str) -> int:
        return self.calls.get(op, 0)

    async def _before_write(self, op: str) -> None:
        self._record(op)
        if self.write_gate is not None:
            await self.write_gate.wait()
        if self.write_error is not None:
            raise self.write_error

    async def select(self, table: str, filters: Mapping[str, Any], order: OrderBy | None = None) -> list[Row]:
        self._record("select")
        if self.select_gate is not None:
            await self.select_gate.wait()
        if self.select_errors:
            raise self.select_errors.pop(0)
        return await self.inner.select(table, filters, order)

    async def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        await self._before_write("insert")
        return await self.inner.insert(table, row)

    async def update(self, table: str, record_id: str, owner_id: str, patch: Mapping[str, Any]) -> Row | None:
        await self._before_write("update")
        return await self.inner.update(table, record_id, owner_id, patch)

    async def delete(self, table: str, record_id: str, owner_id: str) -> bool:
        await self._before_write("delete")
        return await self.inner.delete(table, record_id, owner_id)

    async def wait_for(self, op: str, count: int = 1) -> None:
        for _ in range(100):
            if self.count(op) >= count:
                return
            await asyncio.sleep(0)
        raise AssertionError(f"{op} was called {self.count(op)} time(s), expected {count}")


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def user() -> AuthUser:
    return AuthUser(id=USER_ID, email="user@example.com", access_token="user-jwt")


@pytest.fixture
def auth(user: AuthUser) -> SessionAuthProvider:
    return SessionAuthProvider(user)


@pytest.fixture
def seed(store: FakeStore) -> Callable[..., Awaitable[Row]]:
    """Insert a row directly into the backing store (not counted)."""

    async def _seed(**fields: Any) -> Row:
        row: dict[str, Any] = {
            "user_id": USER_ID,
            "creditor": "Bank A",
            "amount": "100.00",
            "priority": "MEDIUM",
        }
        row.update(fields)
        return await store.inner.insert("debts", row)

    return _seed
