from __future__ import annotations

import json
from pathlib import Path

import pytest

from debtsync.exceptions import ValidationError
from debtsync.models.preferences import Currency, Preferences
from debtsync.preferences import PREFERENCES_KEY, JsonFileKeyValueStore, MemoryKeyValueStore, PreferencesStore


def test_defaults_when_nothing_stored() -> None:
    prefs = PreferencesStore(MemoryKeyValueStore()).load()

    assert prefs == Preferences()
    assert prefs.currency_preference is Currency.INR
    assert prefs.notifications_enabled is True


def test_stored_preferences_use_camel_case_keys() -> None:
    kv = MemoryKeyValueStore()
    store = PreferencesStore(kv)

    store.update(currency_preference="usd", notifications_enabled=False)

    assert json.loads(kv.get(PREFERENCES_KEY) or "") == {
        "currencyPreference": "USD",
        "notificationsEnabled": False,
    }
    assert PreferencesStore(kv).load().currency_preference is Currency.USD


def test_corrupt_entry_falls_back_to_defaults(caplog: pytest.LogCaptureFixture) -> None:
    kv = MemoryKeyValueStore({PREFERENCES_KEY: "{not json"})

    prefs = PreferencesStore(kv).load()

    assert prefs == Preferences()
    assert "Error loading preferences" in caplog.text


def test_invalid_or_unknown_updates_are_rejected() -> None:
    kv = MemoryKeyValueStore()
    store = PreferencesStore(kv)

    with pytest.raises(ValidationError):
        store.update(currency_preference="EUR")
    with pytest.raises(ValidationError):
        store.update(theme="dark")

    assert kv.get(PREFERENCES_KEY) is None
    assert store.current == Preferences()


def test_listeners_are_told_about_saves() -> None:
    store = PreferencesStore(MemoryKeyValueStore())
    seen: list[Preferences] = []
    remove = store.add_listener(seen.append)

    store.update(notifications_enabled=False)
    remove()
    store.update(notifications_enabled=True)

    assert [p.notifications_enabled for p in seen] == [False]


def test_json_file_store_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "settings" / "prefs.json"
    store = PreferencesStore(JsonFileKeyValueStore(path))

    store.update(currency_preference=Currency.USD)

    reloaded = PreferencesStore(JsonFileKeyValueStore(path)).load()
    assert reloaded.currency_preference is Currency.USD
    assert not path.with_suffix(".json.tmp").exists()


def test_json_file_with_wrong_shape_falls_back(tmp_path: Path) -> None:
    path = tmp_path / "prefs.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")

    assert PreferencesStore(JsonFileKeyValueStore(path)).load() == Preferences()
