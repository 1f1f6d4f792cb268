"""Authenticated user model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AuthUser(BaseModel):
    """Identity of the signed-in user.

    Parameters
    ----------
    id : str
        User id; used as owner id for every row the user reads or writes.
    email : str
        Account email.
    access_token : str or None
        Bearer token sent to the remote store, if the store needs one.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        str_strip_whitespace=True,
    )

    id: str
    email: str = ""
    access_token: str | None = Field(default=None, repr=False)

    @field_validator("id")
    @classmethod
    def _id_non_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("id must be non-empty")
        return value
