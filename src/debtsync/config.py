"""Client configuration for debtsync."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from debtsync.exceptions import ConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env_key: str, value: str, cast: type[int] | type[float]) -> int | float:
    try:
        return cast(value)
    except ValueError as exc:
        raise ConfigError(f"{env_key} must be a number (got {value!r})") from exc


@dataclasses.dataclass(frozen=True)
class SyncConfig:
    """Client configuration.

    Parameters
    ----------
    base_url : str
        Base URL of the remote store (a PostgREST-style endpoint, e.g. a
        Supabase project URL). Only required by the REST store.
    api_key : str
        Anonymous API key sent as ``apikey`` header with every request.
    table : str
        Table holding the debt rows.
    stale_time : float
        Seconds after a successful fetch during which cached data is
        served without a background refetch.
    retry : int
        Extra attempts for a failed read before the error is surfaced.
        Writes are never retried.
    retry_delay : float
        Base delay in seconds between read retries. Doubles on each
        attempt.
    retry_max_delay : float
        Upper bound for a single retry delay.
    request_timeout : float
        Total timeout in seconds for a single HTTP request.
    optimistic_mutations : bool
        Apply updates and deletes to the cache before the server
        confirms them, rolling back on failure.
    api_trace_enabled : bool
        Log redacted request/response payloads at DEBUG level.
    """

    base_url: str = ""
    api_key: str = ""
    table: str = "debts"
    stale_time: float = 10.0
    retry: int = 2
    retry_delay: float = 0.5
    retry_max_delay: float = 4.0
    request_timeout: float = 15.0
    optimistic_mutations: bool = False
    api_trace_enabled: bool = False

    def __post_init__(self) -> None:
        if self.stale_time < 0:
            raise ConfigError("stale_time must be >= 0")
        if self.retry < 0:
            raise ConfigError("retry must be >= 0")
        if self.retry_delay < 0 or self.retry_max_delay < 0:
            raise ConfigError("retry delays must be >= 0")
        if self.request_timeout <= 0:
            raise ConfigError("request_timeout must be > 0")
        if not self.table.strip():
            raise ConfigError("table must be non-empty")

    @property
    def rest_url(self) -> str:
        """Base URL of the row API (``<base_url>/rest/v1``)."""
        if not self.base_url:
            raise ConfigError("base_url is required for the REST store")
        return f"{self.base_url.rstrip('/')}/rest/v1"

    @classmethod
    def from_env(cls, **overrides: Any) -> SyncConfig:
        """Create configuration from environment variables.

        Reads ``DEBTSYNC_BASE_URL``, ``DEBTSYNC_API_KEY`` and the optional
        ``DEBTSYNC_*`` tuning variables. Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        SyncConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "DEBTSYNC_BASE_URL": "base_url",
            "DEBTSYNC_API_KEY": "api_key",
            "DEBTSYNC_TABLE": "table",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_NUMERIC_MAP: dict[str, tuple[str, type[int] | type[float]]] = {
            "DEBTSYNC_STALE_TIME": ("stale_time", float),
            "DEBTSYNC_RETRY": ("retry", int),
            "DEBTSYNC_RETRY_DELAY": ("retry_delay", float),
            "DEBTSYNC_REQUEST_TIMEOUT": ("request_timeout", float),
        }
        for env_key, (field_name, cast) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_number(env_key, val, cast)

        if "optimistic_mutations" not in overrides:
            config_kwargs["optimistic_mutations"] = _env_bool(
                env.get("DEBTSYNC_OPTIMISTIC_MUTATIONS"),
                False,
            )

        if "api_trace_enabled" not in overrides:
            config_kwargs["api_trace_enabled"] = _env_bool(
                env.get("DEBTSYNC_API_TRACE_ENABLED"),
                False,
            )

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
