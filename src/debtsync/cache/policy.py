"""Freshness, retry and reconciliation policy.

Pure functions only; the query cache and the mutation coordinator decide
*when* to ask, these decide *what* the answer is.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from debtsync.exceptions import NetworkError


def is_stale(
    *,
    has_data: bool,
    invalidated: bool,
    updated_at: float | None,
    now: float,
    stale_time: float,
) -> bool:
    if not has_data or invalidated or updated_at is None:
        return True
    return (now - updated_at) >= stale_time


def should_fetch_on_read(
    *,
    stale: bool,
    in_flight: bool,
    error_at: float | None,
    invalidated: bool,
    now: float,
    stale_time: float,
) -> bool:
    """Whether a plain read should start a background fetch.

    A failed fetch is not repeated by reads until the staleness window has
    passed since the failure (or the key is invalidated), so subscribers
    re-reading on the error notification do not loop.
    """
    if not stale or in_flight:
        return False
    if error_at is not None and not invalidated:
        return (now - error_at) >= stale_time
    return True


def should_retry(exc: BaseException, attempt: int, retry: int) -> bool:
    """Only transport failures are retried, up to *retry* extra attempts."""
    return isinstance(exc, NetworkError) and attempt < retry


def retry_delay(attempt: int, *, base: float, max_delay: float) -> float:
    """Exponential backoff: ``base * 2**attempt`` capped at *max_delay*."""
    if base <= 0:
        return 0.0
    return float(min(base * (2**attempt), max_delay))


def should_replace(cached: Any, incoming: Any) -> bool:
    """Whether a server row may replace the cached copy of the same record.

    Server timestamps are monotonic per row, so a response carrying an
    older ``updated_at`` than the cached row lost a race and is dropped.
    Rows without timestamps always replace.
    """
    cached_ts: datetime | None = getattr(cached, "updated_at", None)
    incoming_ts: datetime | None = getattr(incoming, "updated_at", None)
    if cached_ts is None or incoming_ts is None:
        return True
    return incoming_ts >= cached_ts
