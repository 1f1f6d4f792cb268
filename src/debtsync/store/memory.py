"""In-process remote store.

Behaves like the PostgREST-backed store (server-assigned ids and
timestamps, owner-scoped writes, status default) without a network.
Useful for offline work, demos and tests.
"""

from __future__ import annotations

import asyncio
import copy
import uuid
from collections.abc import Callable, Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

from debtsync.exceptions import StoreError
from debtsync.store.base import OrderBy, Row

_IMMUTABLE_COLUMNS = frozenset({"id", "user_id", "created_at", "updated_at"})
_ROW_DEFAULTS: dict[str, Any] = {"status": "PENDING"}


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _sort_key(column: str) -> Callable[[Row], tuple[bool, Any]]:
    def key(row: Row) -> tuple[bool, Any]:
        value = row.get(column)
        return (value is None, value if value is not None else "")

    return key


class MemoryStore:
    """Dict-backed implementation of :class:`debtsync.store.RemoteStore`."""

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._tables: dict[str, dict[str, Row]] = {}
        self._last_stamp: datetime | None = None

    def _table(self, table: str) -> dict[str, Row]:
        rows = self._tables.get(table)
        if rows is None:
            rows = {}
            self._tables[table] = rows
        return rows

    def _stamp(self) -> str:
        """Strictly increasing timestamp, even when the clock stalls."""
        now = self._clock()
        if self._last_stamp is not None and now <= self._last_stamp:
            now = self._last_stamp + timedelta(microseconds=1)
        self._last_stamp = now
        return now.isoformat()

    def rows(self, table: str) -> list[Row]:
        """Snapshot of every row in *table*, for inspection."""
        return [copy.deepcopy(row) for row in self._table(table).values()]

    async def select(
        self,
        table: str,
        filters: Mapping[str, Any],
        order: OrderBy | None = None,
    ) -> list[Row]:
        await asyncio.sleep(0)
        matched = [
            copy.deepcopy(row)
            for row in self._table(table).values()
            if all(row.get(column) == value for column, value in filters.items())
        ]
        if order is not None:
            matched.sort(key=_sort_key(order.column), reverse=not order.ascending)
        return matched

    async def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        await asyncio.sleep(0)
        rows = self._table(table)
        record = {**_ROW_DEFAULTS, **copy.deepcopy(dict(row))}
        record_id = str(record.get("id") or uuid.uuid4())
        if record_id in rows:
            raise StoreError(f"duplicate key value for id {record_id}", code="23505", endpoint=table)
        stamp = self._stamp()
        record.update({"id": record_id, "created_at": stamp, "updated_at": stamp})
        rows[record_id] = record
        return copy.deepcopy(record)

    async def update(
        self,
        table: str,
        record_id: str,
        owner_id: str,
        patch: Mapping[str, Any],
    ) -> Row | None:
        await asyncio.sleep(0)
        forbidden = _IMMUTABLE_COLUMNS.intersection(patch)
        if forbidden:
            raise StoreError(
                f"columns cannot be updated: {', '.join(sorted(forbidden))}",
                code="42501",
                endpoint=table,
            )
        record = self._table(table).get(record_id)
        if record is None or record.get("user_id") != owner_id:
            return None
        record.update(copy.deepcopy(dict(patch)))
        record["updated_at"] = self._stamp()
        return copy.deepcopy(record)

    async def delete(self, table: str, record_id: str, owner_id: str) -> bool:
        await asyncio.sleep(0)
        rows = self._table(table)
        record = rows.get(record_id)
        if record is None or record.get("user_id") != owner_id:
            return False
        del rows[record_id]
        return True
