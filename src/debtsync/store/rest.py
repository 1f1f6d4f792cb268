"""Remote store backed by a PostgREST row API (e.g. Supabase)."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from debtsync._transport import Transport
from debtsync.exceptions import NetworkError
from debtsync.store.base import OrderBy, Row

_logger = logging.getLogger(__name__)

_RETURN_ROWS = "return=representation"


def _eq(value: Any) -> str:
    return f"eq.{value}"


def _expect_rows(result: Any, endpoint: str) -> list[Row]:
    if result is None:
        return []
    if not isinstance(result, list) or not all(isinstance(row, dict) for row in result):
        raise NetworkError(f"Expected a list of rows from {endpoint}", endpoint=endpoint)
    return result


class RestStore:
    """Translate store operations into PostgREST requests.

    Filters become ``column=eq.value`` query parameters; writes ask for
    ``return=representation`` so the affected rows come back and an empty
    result means nothing matched the owner-scoped filter.
    """

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    async def select(
        self,
        table: str,
        filters: Mapping[str, Any],
        order: OrderBy | None = None,
    ) -> list[Row]:
        params: dict[str, str] = {"select": "*"}
        for column, value in filters.items():
            params[column] = _eq(value)
        if order is not None:
            params["order"] = f"{order.column}.{'asc' if order.ascending else 'desc'}"
        result = await self._transport.request("GET", table, params=params)
        return _expect_rows(result, table)

    async def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        result = await self._transport.request("POST", table, body=dict(row), prefer=_RETURN_ROWS)
        rows = _expect_rows(result, table)
        if len(rows) != 1:
            raise NetworkError(f"Insert into {table} returned {len(rows)} rows", endpoint=table)
        return rows[0]

    async def update(
        self,
        table: str,
        record_id: str,
        owner_id: str,
        patch: Mapping[str, Any],
    ) -> Row | None:
        params = {"id": _eq(record_id), "user_id": _eq(owner_id)}
        result = await self._transport.request(
            "PATCH",
            table,
            params=params,
            body=dict(patch),
            prefer=_RETURN_ROWS,
        )
        rows = _expect_rows(result, table)
        if not rows:
            _logger.debug("Update of %s/%s matched no rows", table, record_id)
            return None
        return rows[0]

    async def delete(self, table: str, record_id: str, owner_id: str) -> bool:
        params = {"id": _eq(record_id), "user_id": _eq(owner_id)}
        result = await self._transport.request("DELETE", table, params=params, prefer=_RETURN_ROWS)
        rows = _expect_rows(result, table)
        if not rows:
            _logger.debug("Delete of %s/%s matched no rows", table, record_id)
        return bool(rows)
