"""Per-key subscriber registry."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from debtsync.cache.entry import QuerySnapshot
from debtsync.cache.keys import QueryKey

_logger = logging.getLogger(__name__)

Listener = Callable[[QuerySnapshot], None]
Unsubscribe = Callable[[], None]


@dataclass(slots=True, eq=False)
class _Subscription:
    callback: Listener
    active: bool = True


class SubscriptionRegistry:
    """Callbacks keyed by query key.

    Notification iterates over a copy of the list and re-checks each
    subscription's ``active`` flag, so a callback that unsubscribes
    another (or itself) mid-notification is honoured immediately.
    """

    def __init__(self) -> None:
        self._subs: dict[QueryKey, list[_Subscription]] = {}

    def add(self, key: QueryKey, callback: Listener) -> Unsubscribe:
        sub = _Subscription(callback=callback)
        self._subs.setdefault(key, []).append(sub)

        def unsubscribe() -> None:
            if not sub.active:
                return
            sub.active = False
            subs = self._subs.get(key)
            if subs is None:
                return
            if sub in subs:
                subs.remove(sub)
            if not subs:
                del self._subs[key]

        return unsubscribe

    def count(self, key: QueryKey) -> int:
        return len(self._subs.get(key, ()))

    def keys(self) -> list[QueryKey]:
        return list(self._subs)

    def notify(self, key: QueryKey, snapshot: QuerySnapshot) -> None:
        for sub in list(self._subs.get(key, ())):
            if not sub.active:
                continue
            try:
                sub.callback(snapshot)
            except Exception:
                _logger.warning("Subscriber callback for %s failed", key, exc_info=True)

    def clear(self) -> None:
        for subs in self._subs.values():
            for sub in subs:
                sub.active = False
        self._subs.clear()
