"""Persisted user preferences.

Preferences live in a small key-value store next to the application
(browser storage, a settings file), not in the debt store. They are kept
as a typed :class:`Preferences` value rather than loose keys.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

import pydantic

from debtsync.exceptions import ValidationError
from debtsync.models.preferences import Preferences

_logger = logging.getLogger(__name__)

PREFERENCES_KEY = "user_preferences"


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class MemoryKeyValueStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value


class JsonFileKeyValueStore:
    """Key-value pairs kept in one JSON object file."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        content = json.loads(self._path.read_text(encoding="utf-8"))
        if not isinstance(content, dict):
            raise ValueError(f"{self._path} does not hold a JSON object")
        return {str(k): str(v) for k, v in content.items()}

    def get(self, key: str) -> str | None:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        content = self._read()
        content[key] = value
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(content, indent=2, sort_keys=True), encoding="utf-8")
        tmp.replace(self._path)


class PreferencesStore:
    """Load, update and persist :class:`Preferences`.

    Unreadable or invalid stored preferences fall back to defaults (logged,
    not raised), so a corrupt settings entry never blocks the app.
    """

    def __init__(self, kv: KeyValueStore, *, key: str = PREFERENCES_KEY) -> None:
        self._kv = kv
        self._key = key
        self._current: Preferences | None = None
        self._listeners: list[Callable[[Preferences], None]] = []

    def load(self) -> Preferences:
        try:
            raw = self._kv.get(self._key)
            prefs = Preferences() if raw is None else Preferences.model_validate_json(raw)
        except (OSError, ValueError) as exc:
            # pydantic.ValidationError and json errors are ValueErrors.
            _logger.error("Error loading preferences, using defaults: %s", exc)
            prefs = Preferences()
        self._current = prefs
        return prefs

    @property
    def current(self) -> Preferences:
        if self._current is None:
            return self.load()
        return self._current

    def save(self, prefs: Preferences) -> None:
        self._kv.set(self._key, prefs.model_dump_json(by_alias=True))
        self._current = prefs
        for callback in list(self._listeners):
            try:
                callback(prefs)
            except Exception:
                _logger.warning("Preferences listener failed", exc_info=True)

    def update(self, **changes: Any) -> Preferences:
        """Validate *changes* against the current preferences and persist them."""
        unknown = set(changes) - set(Preferences.model_fields)
        if unknown:
            raise ValidationError(f"Unknown preference(s): {', '.join(sorted(unknown))}")
        merged = {**self.current.model_dump(), **changes}
        try:
            prefs = Preferences.model_validate(merged)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Invalid preferences: {exc.error_count()} error(s)") from exc
        self.save(prefs)
        return prefs

    def add_listener(self, callback: Callable[[Preferences], None]) -> Callable[[], None]:
        self._listeners.append(callback)

        def remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return remove
