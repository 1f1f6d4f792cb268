"""Query keys.

A key is a tuple of hashable parts: the entity type first, then the
scoping parameters, e.g. ``("debts", "<user id>")``.
"""

from __future__ import annotations

from collections.abc import Hashable, Iterable

QueryKey = tuple[Hashable, ...]

DEBTS = "debts"


def normalize_key(key: Iterable[Hashable]) -> QueryKey:
    """Return *key* as a non-empty tuple."""
    if isinstance(key, str):
        normalized: QueryKey = (key,)
    else:
        normalized = tuple(key)
    if not normalized:
        raise ValueError("query key must be non-empty")
    return normalized


def debts_key(user_id: str) -> QueryKey:
    return (DEBTS, user_id)


def matches_prefix(key: QueryKey, prefix: Iterable[Hashable]) -> bool:
    """``("debts",)`` matches ``("debts", "u1")``; a key matches itself."""
    parts = normalize_key(prefix)
    return key[: len(parts)] == parts
