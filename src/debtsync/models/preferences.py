"""User preference model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from debtsync.models._base import SyncEnum


class Currency(SyncEnum):
    INR = "INR"
    USD = "USD"


class Preferences(BaseModel):
    """Display preferences, persisted outside the debt store.

    Stored as camelCase JSON (``{"currencyPreference": "INR", ...}``).
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    currency_preference: Currency = Currency.INR
    notifications_enabled: bool = True
