"""In-memory query cache with stale-while-revalidate reads.

This is the only component allowed to write cached query data. The
mutation coordinator goes through :meth:`QueryCache.set`,
:meth:`QueryCache.update_data` and :meth:`QueryCache.invalidate` like any
other caller.

All methods except :meth:`fetch` and :meth:`close` are synchronous and
run to completion without yielding to the event loop; the only
suspension points are the query functions (network calls) and retry
sleeps inside the background fetch task.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from collections.abc import Callable, Hashable, Iterable
from typing import Any

from debtsync.cache.entry import CacheEntry, QueryFn, QuerySnapshot
from debtsync.cache.keys import QueryKey, matches_prefix, normalize_key
from debtsync.cache.policy import is_stale, retry_delay, should_fetch_on_read, should_retry
from debtsync.cache.subscriptions import Listener, SubscriptionRegistry, Unsubscribe
from debtsync.config import SyncConfig
from debtsync.exceptions import DebtSyncError

_logger = logging.getLogger(__name__)


class QueryCache:
    """Keyed cache of query results.

    Guarantees at most one fetch in flight per key: concurrent reads join
    the pending fetch instead of starting another one.

    Usage::

        cache = QueryCache(stale_time=10.0)
        snapshot = cache.get(("debts", user_id), load_debts)
        unsubscribe = cache.subscribe(("debts", user_id), render)
        ...
        await cache.close()
    """

    def __init__(
        self,
        *,
        stale_time: float = 10.0,
        retry: int = 2,
        retry_delay: float = 0.5,
        retry_max_delay: float = 4.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._stale_time = stale_time
        self._retry = retry
        self._retry_delay = retry_delay
        self._retry_max_delay = retry_max_delay
        self._clock = clock
        self._entries: dict[QueryKey, CacheEntry] = {}
        self._subscriptions = SubscriptionRegistry()
        self._seq = itertools.count(1)
        self._closed = False

    @classmethod
    def from_config(cls, config: SyncConfig, **kwargs: Any) -> QueryCache:
        return cls(
            stale_time=config.stale_time,
            retry=config.retry,
            retry_delay=config.retry_delay,
            retry_max_delay=config.retry_max_delay,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _entry(self, key: QueryKey) -> CacheEntry:
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(key=key)
            self._entries[key] = entry
        return entry

    def _is_stale(self, entry: CacheEntry, stale_time: float | None = None) -> bool:
        return is_stale(
            has_data=entry.has_data,
            invalidated=entry.invalidated,
            updated_at=entry.updated_at,
            now=self._clock(),
            stale_time=self._stale_time if stale_time is None else stale_time,
        )

    def _snapshot(self, key: QueryKey, entry: CacheEntry | None) -> QuerySnapshot:
        if entry is None:
            return QuerySnapshot(key=key)
        fetching = entry.is_fetching
        return QuerySnapshot(
            key=key,
            data=entry.data,
            has_data=entry.has_data,
            is_loading=fetching and not entry.has_data,
            is_fetching=fetching,
            is_error=entry.error is not None,
            is_stale=self._is_stale(entry),
            error=entry.error,
            updated_at=entry.updated_at,
        )

    def _notify(self, entry: CacheEntry) -> None:
        if self._subscriptions.count(entry.key):
            self._subscriptions.notify(entry.key, self._snapshot(entry.key, entry))

    def _start_fetch(self, entry: CacheEntry) -> asyncio.Task[None]:
        """Start (or join) the fetch for *entry*."""
        if entry.task is not None and not entry.task.done():
            return entry.task
        if entry.query_fn is None:
            raise DebtSyncError(f"No query function registered for {entry.key}")
        if self._closed:
            raise DebtSyncError("QueryCache is closed")
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._run_fetch(entry), name=f"debtsync-fetch-{entry.key}")
        task.add_done_callback(_consume_task_exception)
        entry.task = task
        _logger.debug("Fetch started for %s", entry.key)
        self._notify(entry)
        return task

    async def _run_fetch(self, entry: CacheEntry) -> None:
        query_fn = entry.query_fn
        assert query_fn is not None  # noqa: S101
        attempt = 0
        superseded = False
        try:
            while True:
                sent_seq = next(self._seq)
                try:
                    data = await query_fn()
                except Exception as exc:
                    if should_retry(exc, attempt, self._retry):
                        delay = retry_delay(attempt, base=self._retry_delay, max_delay=self._retry_max_delay)
                        attempt += 1
                        _logger.debug(
                            "Fetch for %s failed (%s), retry %d/%d in %.2fs",
                            entry.key,
                            exc,
                            attempt,
                            self._retry,
                            delay,
                        )
                        await asyncio.sleep(delay)
                        continue
                    entry.error = exc
                    entry.error_at = self._clock()
                    _logger.warning("Fetch for %s failed after %d attempt(s): %s", entry.key, attempt + 1, exc)
                    raise
                break

            if entry.invalidated_seq > sent_seq:
                # Invalidated while the request was on the wire: the response may
                # predate the change that caused the invalidation.
                superseded = True
                _logger.debug("Discarding superseded fetch result for %s", entry.key)
                return

            entry.data = data
            entry.has_data = True
            entry.updated_at = self._clock()
            entry.invalidated = False
            entry.error = None
            entry.error_at = None
        finally:
            if entry.task is asyncio.current_task():
                entry.task = None
            # Removed entries stay silent; their subscribers already saw the removal.
            if self._entries.get(entry.key) is entry and not self._closed:
                if superseded:
                    self._start_fetch(entry)
                else:
                    self._notify(entry)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(
        self,
        key: Iterable[Hashable],
        query_fn: QueryFn | None = None,
        *,
        enabled: bool = True,
        stale_time: float | None = None,
    ) -> QuerySnapshot:
        """Return the current snapshot for *key*, revalidating in the background.

        If *enabled* and the data is absent, invalidated or older than the
        staleness window, a fetch is started (or the in-flight one joined).
        The returned snapshot always carries the data cached *before* that
        fetch, so callers can render stale data immediately.
        """
        normalized = normalize_key(key)
        entry = self._entries.get(normalized)
        if query_fn is not None:
            entry = self._entry(normalized)
            entry.query_fn = query_fn
        if entry is None:
            return self._snapshot(normalized, None)

        if enabled and entry.query_fn is not None:
            window = self._stale_time if stale_time is None else stale_time
            if should_fetch_on_read(
                stale=self._is_stale(entry, window),
                in_flight=entry.is_fetching,
                error_at=entry.error_at,
                invalidated=entry.invalidated,
                now=self._clock(),
                stale_time=window,
            ):
                self._start_fetch(entry)
        return self._snapshot(normalized, entry)

    def get_data(self, key: Iterable[Hashable], default: Any = None) -> Any:
        """Cached data for *key* without triggering a fetch."""
        entry = self._entries.get(normalize_key(key))
        if entry is None or not entry.has_data:
            return default
        return entry.data

    def has_data(self, key: Iterable[Hashable]) -> bool:
        entry = self._entries.get(normalize_key(key))
        return entry is not None and entry.has_data

    async def fetch(
        self,
        key: Iterable[Hashable],
        query_fn: QueryFn | None = None,
        *,
        force: bool = False,
    ) -> Any:
        """Return fresh data for *key*, fetching if needed.

        Joins the in-flight fetch when there is one. Raises the error of
        the fetch this call waited on, or :class:`DebtSyncError` when the
        key was removed (or the cache closed) before the fetch finished.
        """
        normalized = normalize_key(key)
        if self._closed:
            raise DebtSyncError("QueryCache is closed")
        if query_fn is None and normalized not in self._entries:
            raise DebtSyncError(f"No query function registered for {normalized}")
        entry = self._entry(normalized)
        if query_fn is not None:
            entry.query_fn = query_fn
        if not force and not entry.is_fetching and not self._is_stale(entry):
            return entry.data

        task = self._start_fetch(entry)
        while True:
            # Waiting does not cancel the shared task if this caller is cancelled.
            await asyncio.wait({task})
            if task.cancelled() or self._entries.get(normalized) is not entry:
                raise DebtSyncError(f"Query for {normalized} was removed before it completed")
            task.result()
            follow_up = entry.task
            if follow_up is None or follow_up is task:
                break
            task = follow_up
        return entry.data

    def keys(self) -> list[QueryKey]:
        return list(self._entries)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set(self, key: Iterable[Hashable], data: Any) -> None:
        """Overwrite the data for *key* and stamp it as just fetched."""
        entry = self._entry(normalize_key(key))
        entry.data = data
        entry.has_data = True
        entry.updated_at = self._clock()
        entry.invalidated = False
        entry.error = None
        entry.error_at = None
        self._notify(entry)

    def update_data(self, key: Iterable[Hashable], updater: Callable[[Any], Any]) -> bool:
        """Replace cached data with ``updater(data)``.

        Only applies when *key* already holds data; returns whether it did.
        """
        entry = self._entries.get(normalize_key(key))
        if entry is None or not entry.has_data:
            return False
        self.set(entry.key, updater(entry.data))
        return True

    def invalidate(self, key: Iterable[Hashable]) -> None:
        """Mark *key* stale regardless of its age.

        Keys with active subscribers are refetched immediately (joining any
        in-flight fetch); others refetch on their next read.
        """
        entry = self._entries.get(normalize_key(key))
        if entry is None:
            return
        entry.invalidated = True
        entry.invalidated_seq = next(self._seq)
        if (
            not self._closed
            and entry.query_fn is not None
            and not entry.is_fetching
            and self._subscriptions.count(entry.key)
        ):
            self._start_fetch(entry)
        else:
            self._notify(entry)

    def invalidate_matching(self, prefix: Iterable[Hashable]) -> None:
        for key in [k for k in self._entries if matches_prefix(k, prefix)]:
            self.invalidate(key)

    def remove(self, key: Iterable[Hashable]) -> None:
        """Drop the entry for *key*, cancelling its fetch. Subscribers stay."""
        normalized = normalize_key(key)
        entry = self._entries.pop(normalized, None)
        if entry is None:
            return
        if entry.task is not None and not entry.task.done():
            entry.task.cancel()
        if self._subscriptions.count(normalized):
            self._subscriptions.notify(normalized, self._snapshot(normalized, None))

    def remove_matching(self, prefix: Iterable[Hashable]) -> None:
        for key in [k for k in self._entries if matches_prefix(k, prefix)]:
            self.remove(key)

    def clear(self) -> None:
        for key in list(self._entries):
            self.remove(key)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, key: Iterable[Hashable], callback: Listener) -> Unsubscribe:
        """Call *callback* with a fresh snapshot whenever *key* changes.

        The returned function unsubscribes; it is idempotent and no
        callback fires after it returns.
        """
        return self._subscriptions.add(normalize_key(key), callback)

    def subscriber_count(self, key: Iterable[Hashable]) -> int:
        return self._subscriptions.count(normalize_key(key))

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Cancel in-flight fetches and drop all entries and subscribers."""
        self._closed = True
        self._subscriptions.clear()
        tasks = [entry.task for entry in self._entries.values() if entry.task is not None and not entry.task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._entries.clear()


def _consume_task_exception(task: asyncio.Task[None]) -> None:
    """Mark background fetch failures as retrieved; they live on the entry."""
    if not task.cancelled():
        task.exception()
