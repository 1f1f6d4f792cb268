"""Default input validation for debt writes.

The mutation coordinator accepts any callable with the same signature,
so applications can plug in stricter rules. These defaults enforce the
row invariants only: creditor non-empty, amount positive, enums valid.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pydantic

from debtsync.exceptions import ValidationError
from debtsync.models.debt import DebtPatch, NewDebt

_NON_NULLABLE = ("creditor", "amount", "status", "priority")


def _errors_from(exc: pydantic.ValidationError) -> dict[str, str]:
    errors: dict[str, str] = {}
    for item in exc.errors():
        loc = ".".join(str(part) for part in item.get("loc", ())) or "__root__"
        errors.setdefault(loc, str(item.get("msg", "invalid value")))
    return errors


def validate_new_debt(value: NewDebt | Mapping[str, Any]) -> NewDebt:
    """Return a validated :class:`NewDebt` or raise :class:`ValidationError`."""
    if isinstance(value, NewDebt):
        return value
    try:
        return NewDebt.model_validate(dict(value))
    except pydantic.ValidationError as exc:
        errors = _errors_from(exc)
        raise ValidationError(f"Invalid debt: {errors}", errors=errors) from exc


def validate_patch(value: DebtPatch | Mapping[str, Any]) -> DebtPatch:
    """Return a validated, non-empty :class:`DebtPatch` or raise :class:`ValidationError`."""
    if isinstance(value, DebtPatch):
        patch = value
    else:
        try:
            patch = DebtPatch.model_validate(dict(value))
        except pydantic.ValidationError as exc:
            errors = _errors_from(exc)
            raise ValidationError(f"Invalid debt update: {errors}", errors=errors) from exc

    if patch.is_empty:
        raise ValidationError("Debt update has no fields", errors={"__root__": "no fields to update"})

    cleared = {
        name: "may not be null"
        for name in _NON_NULLABLE
        if name in patch.model_fields_set and getattr(patch, name) is None
    }
    if cleared:
        raise ValidationError(f"Invalid debt update: {cleared}", errors=cleared)
    return patch
