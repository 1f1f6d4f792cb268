"""High-level async client for a user's debts."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from typing import Any

import aiohttp

from debtsync._transport import RestTransport
from debtsync.auth import AuthProvider
from debtsync.cache.entry import QuerySnapshot
from debtsync.cache.keys import DEBTS, QueryKey, debts_key
from debtsync.cache.query_cache import QueryCache
from debtsync.cache.subscriptions import Listener, Unsubscribe
from debtsync.config import SyncConfig
from debtsync.exceptions import DebtSyncError, NotAuthenticatedError
from debtsync.models.debt import Debt, DebtPatch, NewDebt
from debtsync.models.user import AuthUser
from debtsync.mutations import MutationCoordinator
from debtsync.preferences import MemoryKeyValueStore, PreferencesStore
from debtsync.queries import debts_query
from debtsync.store.base import RemoteStore
from debtsync.store.rest import RestStore
from debtsync.summary import DebtSummary, format_amount, summarize

_logger = logging.getLogger(__name__)


class DebtSyncClient:
    """Async client for a signed-in user's debts.

    Reads go through a :class:`QueryCache` (stale-while-revalidate, one
    fetch per key), writes through a :class:`MutationCoordinator`. Queries
    are disabled while nobody is signed in; signing out or switching user
    drops the previous user's cached data.

    Usage::

        auth = SessionAuthProvider()
        async with DebtSyncClient(SyncConfig.from_env(), auth) as client:
            auth.set_session(AuthUser(id=user_id, access_token=token))
            unsubscribe = client.subscribe_debts(render)
            await client.add_debt({"creditor": "Bank A", "amount": "100.00"})
    """

    def __init__(
        self,
        config: SyncConfig,
        auth: AuthProvider,
        *,
        session: aiohttp.ClientSession | None = None,
        store: RemoteStore | None = None,
        cache: QueryCache | None = None,
        preferences: PreferencesStore | None = None,
    ) -> None:
        self._config = config
        self._auth = auth
        self._external_session = session is not None
        self._http_session = session
        self._store = store
        self._external_cache = cache is not None
        self._cache = cache
        self._coordinator: MutationCoordinator | None = None
        self._preferences = preferences or PreferencesStore(MemoryKeyValueStore())
        self._remove_auth_listener: Unsubscribe | None = None
        self._user_id: str | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> DebtSyncClient:
        if self._store is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            transport = RestTransport(self._config, self._http_session, token_getter=self._access_token)
            self._store = RestStore(transport)
        if self._cache is None:
            self._cache = QueryCache.from_config(self._config)
        self._coordinator = MutationCoordinator.from_config(self._config, self._store, self._cache, self._auth)
        user = self._auth.current_user
        self._user_id = user.id if user is not None else None
        self._remove_auth_listener = self._auth.add_listener(self._on_auth_change)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._remove_auth_listener is not None:
            self._remove_auth_listener()
            self._remove_auth_listener = None
        if not self._external_cache and self._cache is not None:
            await self._cache.close()
            self._cache = None
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._coordinator = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _access_token(self) -> str | None:
        user = self._auth.current_user
        return user.access_token if user is not None else None

    def _require_cache(self) -> QueryCache:
        if self._cache is None:
            raise DebtSyncError("Client not initialized. Use 'async with DebtSyncClient(...) as client:'")
        return self._cache

    def _require_coordinator(self) -> MutationCoordinator:
        if self._coordinator is None:
            raise DebtSyncError("Client not initialized. Use 'async with DebtSyncClient(...) as client:'")
        return self._coordinator

    def _require_user(self) -> AuthUser:
        user = self._auth.current_user
        if user is None:
            raise NotAuthenticatedError("No signed-in user", code="no_session", endpoint=self._config.table)
        return user

    def _query_fn(self, user_id: str) -> Any:
        assert self._store is not None  # noqa: S101
        return debts_query(self._store, user_id, table=self._config.table)

    def _on_auth_change(self, user: AuthUser | None) -> None:
        new_id = user.id if user is not None else None
        previous = self._user_id
        self._user_id = new_id
        if previous is not None and previous != new_id and self._cache is not None:
            _logger.debug("User changed, dropping cached debts of %s", previous)
            self._cache.remove(debts_key(previous))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def cache(self) -> QueryCache:
        return self._require_cache()

    @property
    def preferences(self) -> PreferencesStore:
        return self._preferences

    def debts_key(self) -> QueryKey | None:
        """Cache key of the signed-in user's debts (``None`` when signed out)."""
        user = self._auth.current_user
        return debts_key(user.id) if user is not None else None

    def debts(self) -> QuerySnapshot:
        """Current debts snapshot; starts a background fetch when stale.

        Signed out (or while the session is still loading) this returns an
        idle, empty snapshot and does not touch the network.
        """
        cache = self._require_cache()
        user = self._auth.current_user
        if user is None:
            return QuerySnapshot(key=(DEBTS,))
        return cache.get(
            debts_key(user.id),
            self._query_fn(user.id),
            enabled=not self._auth.is_loading,
        )

    async def fetch_debts(self, *, force: bool = False) -> tuple[Debt, ...]:
        """Fresh debts for the signed-in user, fetching if stale (or *force*)."""
        cache = self._require_cache()
        user = self._require_user()
        data: tuple[Debt, ...] = await cache.fetch(debts_key(user.id), self._query_fn(user.id), force=force)
        return data

    def subscribe_debts(self, callback: Listener) -> Unsubscribe:
        """Subscribe to the signed-in user's debts and start loading them."""
        cache = self._require_cache()
        user = self._require_user()
        unsubscribe = cache.subscribe(debts_key(user.id), callback)
        self.debts()
        return unsubscribe

    def summary(self) -> DebtSummary:
        """Totals over the cached debts (no fetch)."""
        key = self.debts_key()
        if key is None:
            return summarize(())
        return summarize(self._require_cache().get_data(key, ()))

    def format_amount(self, amount: Decimal | int | float | str) -> str:
        """Format *amount* in the user's preferred currency."""
        return format_amount(amount, self._preferences.current.currency_preference)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def add_debt(self, new_debt: NewDebt | Mapping[str, Any]) -> Debt:
        return await self._require_coordinator().create(new_debt)

    async def update_debt(
        self,
        debt_id: str,
        patch: DebtPatch | Mapping[str, Any],
        *,
        if_unmodified_since: datetime | None = None,
    ) -> Debt:
        return await self._require_coordinator().update(
            debt_id,
            patch,
            if_unmodified_since=if_unmodified_since,
        )

    async def delete_debt(self, debt_id: str) -> None:
        await self._require_coordinator().delete(debt_id)
