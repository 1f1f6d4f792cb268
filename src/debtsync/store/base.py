"""Remote store interface.

The remote store is the system of record: a row-oriented CRUD backend
whose writes are scoped by owner id. The cache and the mutation
coordinator only ever talk to it through this protocol.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

Row = dict[str, Any]


@dataclass(frozen=True)
class OrderBy:
    """Sort specification for :meth:`RemoteStore.select`."""

    column: str
    ascending: bool = True


class RemoteStore(Protocol):
    """Structural interface implemented by :class:`RestStore` and :class:`MemoryStore`."""

    async def select(
        self,
        table: str,
        filters: Mapping[str, Any],
        order: OrderBy | None = None,
    ) -> list[Row]:
        """Return rows whose columns equal every value in *filters*."""
        ...

    async def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        """Insert a row and return it with server-assigned fields."""
        ...

    async def update(
        self,
        table: str,
        record_id: str,
        owner_id: str,
        patch: Mapping[str, Any],
    ) -> Row | None:
        """Patch the row matching (id, owner); ``None`` when no row matched."""
        ...

    async def delete(self, table: str, record_id: str, owner_id: str) -> bool:
        """Delete the row matching (id, owner); ``False`` when no row matched."""
        ...
