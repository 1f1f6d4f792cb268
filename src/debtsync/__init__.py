"""debtsync - Async query/mutation cache for owner-scoped debt records."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("debtsync")
except PackageNotFoundError:
    __version__ = "0+local"
from debtsync.auth import AuthProvider, SessionAuthProvider
from debtsync.cache import QueryCache, QueryKey, QuerySnapshot, debts_key
from debtsync.client import DebtSyncClient
from debtsync.config import SyncConfig
from debtsync.exceptions import (
    ConfigError,
    DebtSyncError,
    NetworkError,
    NotAuthenticatedError,
    NotFoundError,
    OwnershipError,
    StaleWriteError,
    StoreError,
    ValidationError,
)
from debtsync.models import (
    AuthUser,
    Currency,
    Debt,
    DebtPatch,
    DebtPriority,
    DebtStatus,
    NewDebt,
    Preferences,
)
from debtsync.mutations import MutationCoordinator
from debtsync.preferences import JsonFileKeyValueStore, MemoryKeyValueStore, PreferencesStore
from debtsync.store import MemoryStore, OrderBy, RemoteStore, RestStore
from debtsync.summary import DebtSummary, currency_symbol, format_amount, summarize

__all__ = [
    "__version__",
    "AuthProvider",
    "AuthUser",
    "ConfigError",
    "Currency",
    "Debt",
    "DebtPatch",
    "DebtPriority",
    "DebtStatus",
    "DebtSummary",
    "DebtSyncClient",
    "DebtSyncError",
    "JsonFileKeyValueStore",
    "MemoryKeyValueStore",
    "MemoryStore",
    "MutationCoordinator",
    "NetworkError",
    "NewDebt",
    "NotAuthenticatedError",
    "NotFoundError",
    "OrderBy",
    "OwnershipError",
    "Preferences",
    "PreferencesStore",
    "QueryCache",
    "QueryKey",
    "QuerySnapshot",
    "RemoteStore",
    "RestStore",
    "SessionAuthProvider",
    "StaleWriteError",
    "StoreError",
    "SyncConfig",
    "ValidationError",
    "currency_symbol",
    "debts_key",
    "format_amount",
    "summarize",
]
