"""Cache entry and the snapshot handed to consumers."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict

from debtsync.cache.keys import QueryKey

QueryFn = Callable[[], Awaitable[Any]]


@dataclass(slots=True)
class CacheEntry:
    """Mutable state for one query key. Owned by :class:`QueryCache`."""

    key: QueryKey
    data: Any = None
    has_data: bool = False
    updated_at: float | None = None
    invalidated: bool = False
    invalidated_seq: int = 0
    error: Exception | None = None
    error_at: float | None = None
    query_fn: QueryFn | None = None
    task: asyncio.Task[None] | None = None

    @property
    def is_fetching(self) -> bool:
        return self.task is not None and not self.task.done()


class QuerySnapshot(BaseModel):
    """Point-in-time view of a cache entry.

    ``data`` keeps the last successfully fetched (or set) value even when a
    later fetch failed; ``is_error`` then reports the failure alongside it.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    key: QueryKey
    data: Any = None
    has_data: bool = False
    is_loading: bool = False
    is_fetching: bool = False
    is_error: bool = False
    is_stale: bool = True
    error: Exception | None = None
    updated_at: float | None = None

    @property
    def is_success(self) -> bool:
        return self.has_data and not self.is_error
