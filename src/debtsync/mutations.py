"""Create, update and delete debts while keeping the query cache consistent.

Every mutation follows the same shape:

1. validate the input (no network call on failure)
2. resolve the owner id from the auth provider
3. call the remote store (never retried here)
4. apply the server's answer to the cached collection right away
5. invalidate the key so a refetch reconciles with server truth

Failures leave the cache as it was before the call. In optimistic mode
updates and deletes are applied before step 3 and rolled back on failure.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from debtsync.auth import AuthProvider
from debtsync.cache.keys import QueryKey, debts_key
from debtsync.cache.policy import should_replace
from debtsync.cache.query_cache import QueryCache
from debtsync.config import SyncConfig
from debtsync.exceptions import NotAuthenticatedError, OwnershipError, StaleWriteError
from debtsync.models._base import ensure_utc
from debtsync.models.debt import Debt, DebtPatch, DebtStatus, NewDebt
from debtsync.models.user import AuthUser
from debtsync.queries import parse_debt, sort_debts
from debtsync.store.base import RemoteStore
from debtsync.validation import validate_new_debt, validate_patch

_logger = logging.getLogger(__name__)

NewDebtValidator = Callable[[NewDebt | Mapping[str, Any]], NewDebt]
PatchValidator = Callable[[DebtPatch | Mapping[str, Any]], DebtPatch]


def _find(debts: tuple[Debt, ...] | None, debt_id: str) -> Debt | None:
    for debt in debts or ():
        if debt.id == debt_id:
            return debt
    return None


def _with_record(debts: tuple[Debt, ...], record: Debt) -> tuple[Debt, ...]:
    others = [debt for debt in debts if debt.id != record.id]
    return sort_debts([*others, record])


def _merge_record(debts: tuple[Debt, ...], record: Debt) -> tuple[Debt, ...]:
    """Replace the cached copy of *record*; a record no longer cached stays gone."""
    merged: list[Debt] = []
    for debt in debts:
        if debt.id == record.id and should_replace(debt, record):
            merged.append(record)
        else:
            merged.append(debt)
    return sort_debts(merged)


def _without_record(debts: tuple[Debt, ...], debt_id: str) -> tuple[Debt, ...]:
    return tuple(debt for debt in debts if debt.id != debt_id)


class MutationCoordinator:
    """Owner-scoped writes against the remote store.

    There is no per-record lock: concurrent writes to the same id race and
    the last response to resolve wins, except that a response older (by
    ``updated_at``) than the cached row never replaces it.
    """

    def __init__(
        self,
        store: RemoteStore,
        cache: QueryCache,
        auth: AuthProvider,
        *,
        table: str = "debts",
        optimistic: bool = False,
        new_debt_validator: NewDebtValidator = validate_new_debt,
        patch_validator: PatchValidator = validate_patch,
    ) -> None:
        self._store = store
        self._cache = cache
        self._auth = auth
        self._table = table
        self._optimistic = optimistic
        self._validate_new = new_debt_validator
        self._validate_patch = patch_validator

    @classmethod
    def from_config(
        cls,
        config: SyncConfig,
        store: RemoteStore,
        cache: QueryCache,
        auth: AuthProvider,
        **kwargs: Any,
    ) -> MutationCoordinator:
        return cls(store, cache, auth, table=config.table, optimistic=config.optimistic_mutations, **kwargs)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_user(self) -> AuthUser:
        user = self._auth.current_user
        if user is None:
            raise NotAuthenticatedError("No signed-in user", code="no_session", endpoint=self._table)
        return user

    def _cached(self, key: QueryKey) -> tuple[Debt, ...] | None:
        data = self._cache.get_data(key)
        return data if isinstance(data, tuple) else None

    def _rollback_update(self, key: QueryKey, optimistic: Debt, previous: Debt) -> None:
        def _restore(debts: tuple[Debt, ...]) -> tuple[Debt, ...]:
            # Only undo our own change; a newer write or refetch stays.
            current = _find(debts, previous.id)
            if current is not optimistic:
                return debts
            return _merge_record(debts, previous)

        self._cache.update_data(key, _restore)
        _logger.debug("Rolled back optimistic update of %s", previous.id)

    def _rollback_delete(self, key: QueryKey, previous: Debt) -> None:
        def _restore(debts: tuple[Debt, ...]) -> tuple[Debt, ...]:
            if _find(debts, previous.id) is not None:
                return debts
            return _with_record(debts, previous)

        self._cache.update_data(key, _restore)
        _logger.debug("Rolled back optimistic delete of %s", previous.id)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, new_debt: NewDebt | Mapping[str, Any]) -> Debt:
        """Insert a debt owned by the current user; status starts as PENDING.

        The returned row is added to the cached collection immediately.
        """
        payload = self._validate_new(new_debt)
        user = self._require_user()
        row = {**payload.to_payload(), "user_id": user.id, "status": DebtStatus.PENDING.value}

        _logger.debug("Creating debt for user %s", user.id)
        created = parse_debt(await self._store.insert(self._table, row), endpoint=self._table)

        key = debts_key(user.id)
        self._cache.update_data(key, lambda debts: _with_record(debts, created))
        self._cache.invalidate(key)
        return created

    async def update(
        self,
        debt_id: str,
        patch: DebtPatch | Mapping[str, Any],
        *,
        if_unmodified_since: datetime | None = None,
    ) -> Debt:
        """Apply a partial update to one of the current user's debts.

        Parameters
        ----------
        debt_id
            Record to update.
        patch
            Fields to change.
        if_unmodified_since
            Optional ``updated_at`` the caller based its edit on. If the
            cached record is newer, :class:`StaleWriteError` is raised
            before any network call.

        Raises
        ------
        OwnershipError
            No record with *debt_id* belongs to the current user.
        """
        validated = self._validate_patch(patch)
        user = self._require_user()
        key = debts_key(user.id)
        previous = _find(self._cached(key), debt_id)

        if (
            if_unmodified_since is not None
            and previous is not None
            and previous.updated_at is not None
            and previous.updated_at > ensure_utc(if_unmodified_since)
        ):
            raise StaleWriteError(
                f"Debt {debt_id} changed at {previous.updated_at.isoformat()}",
                record_id=debt_id,
            )

        optimistic: Debt | None = None
        if self._optimistic and previous is not None:
            changes = {name: getattr(validated, name) for name in validated.model_fields_set}
            optimistic = previous.model_copy(update=changes)
            self._cache.update_data(key, lambda debts: _merge_record(debts, optimistic))

        _logger.debug("Updating debt %s for user %s", debt_id, user.id)
        try:
            row = await self._store.update(self._table, debt_id, user.id, validated.to_payload())
            if row is None:
                raise OwnershipError(f"Debt {debt_id} not found", record_id=debt_id)
            updated = parse_debt(row, endpoint=self._table)
        except Exception:
            if optimistic is not None and previous is not None:
                self._rollback_update(key, optimistic, previous)
            raise

        self._cache.update_data(key, lambda debts: _merge_record(debts, updated))
        self._cache.invalidate(key)
        return updated

    async def delete(self, debt_id: str) -> None:
        """Delete one of the current user's debts.

        Raises
        ------
        OwnershipError
            No record with *debt_id* belongs to the current user.
        """
        user = self._require_user()
        key = debts_key(user.id)
        previous = _find(self._cached(key), debt_id)

        removed_early = False
        if self._optimistic and previous is not None:
            removed_early = self._cache.update_data(key, lambda debts: _without_record(debts, debt_id))

        _logger.debug("Deleting debt %s for user %s", debt_id, user.id)
        try:
            deleted = await self._store.delete(self._table, debt_id, user.id)
            if not deleted:
                raise OwnershipError(f"Debt {debt_id} not found", record_id=debt_id)
        except Exception:
            if removed_early and previous is not None:
                self._rollback_delete(key, previous)
            raise

        self._cache.update_data(key, lambda debts: _without_record(debts, debt_id))
        self._cache.invalidate(key)
