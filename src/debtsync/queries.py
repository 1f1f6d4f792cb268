"""Query functions and row parsing for the debts collection."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import pydantic

from debtsync.cache.entry import QueryFn
from debtsync.exceptions import StoreError
from debtsync.models.debt import Debt
from debtsync.store.base import OrderBy, RemoteStore

DEBTS_ORDER = OrderBy("creditor")


def parse_debt(row: dict[str, Any], *, endpoint: str = "") -> Debt:
    """Parse a store row, mapping malformed rows to :class:`StoreError`."""
    try:
        return Debt.model_validate(row)
    except pydantic.ValidationError as exc:
        raise StoreError(
            f"Malformed debt row: {exc.error_count()} error(s)",
            code="invalid_row",
            endpoint=endpoint,
        ) from exc


def sort_debts(debts: Iterable[Debt]) -> tuple[Debt, ...]:
    """Order like the store's select (creditor ascending, stable on ties)."""
    return tuple(sorted(debts, key=lambda debt: debt.creditor))


def debts_query(store: RemoteStore, user_id: str, *, table: str = "debts") -> QueryFn:
    """Build the query function that loads *user_id*'s debts."""

    async def _load() -> tuple[Debt, ...]:
        rows = await store.select(table, {"user_id": user_id}, DEBTS_ORDER)
        return tuple(parse_debt(row, endpoint=table) for row in rows)

    return _load
