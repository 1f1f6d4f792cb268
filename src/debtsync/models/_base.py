"""Base model and enum for debt store rows.

Every row model inherits from :class:`SyncBaseModel` which provides:

* frozen instances, so cached collections can be shared between
  subscribers without defensive copies.
* A ``model_validator(mode="before")`` that drops ``None`` values so the
  field default is used (PostgREST returns explicit ``null`` for unset
  nullable columns).

Enums inherit from :class:`SyncEnum`, a ``StrEnum`` whose ``_missing_``
hook accepts the value in any letter case (``"paid"`` -> ``PAID``).
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, model_validator


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]
"""Annotated type for server timestamps, always timezone-aware UTC."""


class SyncEnum(enum.StrEnum):
    """Base for the enumerated row columns.

    Values are stored upper case. Lookups are case-insensitive; anything
    else raises ``ValueError`` (there is no ``UNKNOWN`` fallback, the
    enumerations are closed).
    """

    @classmethod
    def _missing_(cls, value: object) -> SyncEnum | None:
        if isinstance(value, str):
            normalized = value.strip().upper()
            for member in cls:
                if member.value == normalized:
                    return member
        return None


class SyncBaseModel(BaseModel):
    """Base for rows read from the remote store."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        return {key: value for key, value in values.items() if value is not None}
