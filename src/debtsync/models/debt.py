"""Debt record models.

``Debt`` is the row as stored remotely. ``NewDebt`` and ``DebtPatch``
are the write payloads: they follow the "validate, normalize, execute"
flow and never carry the owner id or server-assigned fields.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from debtsync.models._base import SyncBaseModel, SyncEnum, UtcDatetime


class DebtStatus(SyncEnum):
    PENDING = "PENDING"
    PAID = "PAID"


class DebtPriority(SyncEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


def _creditor_non_empty(value: str) -> str:
    creditor = value.strip()
    if not creditor:
        raise ValueError("creditor must be non-empty")
    return creditor


class Debt(SyncBaseModel):
    """A debt record owned by one user.

    Fields are mapped from the ``debts`` table row.
    """

    id: str = Field(..., min_length=1)
    """Server-assigned identifier, immutable."""
    user_id: str = Field(..., min_length=1)
    """Owner id. Never changes after creation."""
    creditor: str
    """Who the money is owed to."""
    amount: Decimal = Field(..., gt=0)
    """Outstanding amount, currency-agnostic."""
    status: DebtStatus = DebtStatus.PENDING
    priority: DebtPriority = DebtPriority.MEDIUM
    description: str | None = None
    due_date: date | None = None
    created_at: UtcDatetime | None = None
    """Server-assigned creation time."""
    updated_at: UtcDatetime | None = None
    """Server-assigned last modification time (monotonic per row)."""

    @field_validator("creditor")
    @classmethod
    def _validate_creditor(cls, value: str) -> str:
        return _creditor_non_empty(value)

    @property
    def is_paid(self) -> bool:
        return self.status == DebtStatus.PAID


class _WritePayload(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_default=True,
        str_strip_whitespace=True,
    )

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict of the fields the caller actually set."""
        return self.model_dump(mode="json", exclude_unset=True)


class NewDebt(_WritePayload):
    """Fields a caller supplies to create a debt."""

    creditor: str
    amount: Decimal = Field(..., gt=0)
    priority: DebtPriority = DebtPriority.MEDIUM
    description: str | None = None
    due_date: date | None = None

    @field_validator("creditor")
    @classmethod
    def _validate_creditor(cls, value: str) -> str:
        return _creditor_non_empty(value)

    def to_payload(self) -> dict[str, Any]:
        # Defaults are part of the insert, unlike a patch.
        return self.model_dump(mode="json", exclude_none=True)


class DebtPatch(_WritePayload):
    """Partial update. Unset fields are left alone by the store."""

    creditor: str | None = None
    amount: Decimal | None = Field(default=None, gt=0)
    status: DebtStatus | None = None
    priority: DebtPriority | None = None
    description: str | None = None
    due_date: date | None = None

    @field_validator("creditor")
    @classmethod
    def _validate_creditor(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return _creditor_non_empty(value)

    @property
    def is_empty(self) -> bool:
        return not self.model_fields_set
