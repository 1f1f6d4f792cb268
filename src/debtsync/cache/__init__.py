"""Query cache layer.

This package is the single owner of cached query results: what is
cached per key, when it is considered stale, who gets told when it
changes.
"""

from debtsync.cache.entry import QueryFn, QuerySnapshot
from debtsync.cache.keys import QueryKey, debts_key, matches_prefix, normalize_key
from debtsync.cache.query_cache import QueryCache
from debtsync.cache.subscriptions import Listener, Unsubscribe

__all__ = [
    "Listener",
    "QueryCache",
    "QueryFn",
    "QueryKey",
    "QuerySnapshot",
    "Unsubscribe",
    "debts_key",
    "matches_prefix",
    "normalize_key",
]
