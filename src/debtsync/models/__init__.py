"""Data models for debt store rows, write payloads and preferences."""

from debtsync.models._base import SyncBaseModel, SyncEnum, UtcDatetime, ensure_utc
from debtsync.models.debt import Debt, DebtPatch, DebtPriority, DebtStatus, NewDebt
from debtsync.models.preferences import Currency, Preferences
from debtsync.models.user import AuthUser

__all__ = [
    "AuthUser",
    "Currency",
    "Debt",
    "DebtPatch",
    "DebtPriority",
    "DebtStatus",
    "NewDebt",
    "Preferences",
    "SyncBaseModel",
    "SyncEnum",
    "UtcDatetime",
    "ensure_utc",
]
