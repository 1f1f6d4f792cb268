"""Custom exception hierarchy for debtsync."""

from __future__ import annotations


class DebtSyncError(Exception):
    """Base exception for all debtsync errors."""


class ConfigError(DebtSyncError):
    """Invalid or missing configuration."""


class ValidationError(DebtSyncError):
    """Malformed input rejected before any network call.

    ``errors`` maps field names to human-readable messages.
    """

    def __init__(self, message: str, *, errors: dict[str, str] | None = None) -> None:
        self.errors = dict(errors or {})
        super().__init__(message)


class NetworkError(DebtSyncError):
    """Transport-level failure (connection, timeout, 5xx, invalid JSON).

    Reads are retried on this error; writes never are.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class StoreError(DebtSyncError):
    """The remote store rejected the request (application-level error)."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "",
        endpoint: str = "",
    ) -> None:
        self.code = code
        self.endpoint = endpoint
        super().__init__(message)


class NotAuthenticatedError(StoreError):
    """No signed-in user, or the store rejected the session token."""


class NotFoundError(DebtSyncError):
    """A scoped write matched no rows."""

    def __init__(self, message: str, *, record_id: str = "") -> None:
        self.record_id = record_id
        super().__init__(message)


class OwnershipError(NotFoundError):
    """Mutation targeted a record outside the caller's ownership scope.

    The store cannot tell "does not exist" apart from "belongs to someone
    else", so both surface as this error.
    """


class StaleWriteError(DebtSyncError):
    """A write was based on a record older than the one already cached.

    Only raised when the caller opts in by passing ``if_unmodified_since``;
    otherwise the last write to resolve wins.
    """

    def __init__(self, message: str, *, record_id: str = "") -> None:
        self.record_id = record_id
        super().__init__(message)
