"""Auth provider interface.

Token issuance and session refresh belong to the application's auth
layer. debtsync only needs to know who is signed in (to scope reads and
writes by owner id), whether the session is still being restored, and
when either changes.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

from debtsync.models.user import AuthUser

_logger = logging.getLogger(__name__)

AuthListener = Callable[[AuthUser | None], None]


class AuthProvider(Protocol):
    """Structural interface for the current-user source."""

    @property
    def current_user(self) -> AuthUser | None:
        ...

    @property
    def is_loading(self) -> bool:
        ...

    def add_listener(self, callback: AuthListener) -> Callable[[], None]:
        ...


class SessionAuthProvider:
    """In-memory auth provider fed by the application's sign-in flow.

    Starts in the loading state until :meth:`set_session` or
    :meth:`clear_session` is called (mirrors a session being restored on
    startup).
    """

    def __init__(self, user: AuthUser | None = None, *, loading: bool | None = None) -> None:
        self._user = user
        self._loading = (user is None) if loading is None else loading
        self._listeners: list[AuthListener] = []

    @property
    def current_user(self) -> AuthUser | None:
        return self._user

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def access_token(self) -> str | None:
        return self._user.access_token if self._user is not None else None

    def add_listener(self, callback: AuthListener) -> Callable[[], None]:
        self._listeners.append(callback)

        def remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return remove

    def set_session(self, user: AuthUser) -> None:
        """Record a signed-in user (sign-in, restore or token refresh)."""
        self._user = user
        self._loading = False
        self._emit()

    def clear_session(self) -> None:
        """Record sign-out (or a failed restore)."""
        self._user = None
        self._loading = False
        self._emit()

    def _emit(self) -> None:
        for callback in list(self._listeners):
            try:
                callback(self._user)
            except Exception:
                _logger.warning("Auth listener failed", exc_info=True)
