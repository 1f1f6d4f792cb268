"""HTTP transport for PostgREST-style row APIs."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Mapping
from typing import Any, Protocol

import aiohttp

from debtsync._redact import redact_for_log
from debtsync.config import SyncConfig
from debtsync.exceptions import NetworkError, NotAuthenticatedError, StoreError

_logger = logging.getLogger(__name__)

USER_AGENT = "debtsync (aiohttp)"


class Transport(Protocol):
    """Structural transport interface used by :class:`debtsync.store.RestStore`.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`RestTransport`) concrete.
    """

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        body: Any = None,
        prefer: str | None = None,
    ) -> Any:
        ...


def _error_fields(text: str) -> tuple[str, str]:
    """Extract ``(code, message)`` from a PostgREST error body, if any."""
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return "", text[:200]
    if not isinstance(parsed, dict):
        return "", text[:200]
    code = str(parsed.get("code") or "")
    message = str(parsed.get("message") or parsed.get("msg") or parsed.get("error") or text[:200])
    return code, message


class RestTransport:
    """HTTP transport that adds store credentials and maps failures to exceptions."""

    def __init__(
        self,
        config: SyncConfig,
        http_session: aiohttp.ClientSession,
        *,
        token_getter: Callable[[], str | None] | None = None,
    ) -> None:
        self._config = config
        self._http = http_session
        self._token_getter = token_getter
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    def _build_headers(self, prefer: str | None) -> dict[str, str]:
        headers: dict[str, str] = {
            "accept": "application/json",
            "content-type": "application/json",
            "user-agent": USER_AGENT,
        }
        if self._config.api_key:
            headers["apikey"] = self._config.api_key
        token = self._token_getter() if self._token_getter is not None else None
        bearer = token or self._config.api_key
        if bearer:
            headers["authorization"] = f"Bearer {bearer}"
        if prefer:
            headers["prefer"] = prefer
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        body: Any = None,
        prefer: str | None = None,
    ) -> Any:
        """Send one request and return the decoded JSON body (``None`` if empty).

        Raises
        ------
        NetworkError
            Connection failure, timeout, 5xx or undecodable body.
        NotAuthenticatedError
            The store rejected the credentials (401).
        StoreError
            Any other 4xx.
        """
        url = f"{self._config.rest_url}/{path.lstrip('/')}"
        headers = self._build_headers(prefer)
        data = json.dumps(body, separators=(",", ":")) if body is not None else None

        _logger.debug("%s %s params=%s", method, url, dict(params or {}))
        if self._config.api_trace_enabled:
            _logger.debug(
                "request trace headers=%s body=%s",
                redact_for_log(headers),
                redact_for_log(body),
            )

        try:
            async with self._http.request(
                method,
                url,
                params=params,
                data=data,
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                status = resp.status
                text = await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise NetworkError(
                f"{method} {path} failed: {exc!r}",
                endpoint=path,
            ) from exc

        if status >= 500:
            raise NetworkError(
                f"HTTP {status} from {path}: {text[:200]}",
                status_code=status,
                endpoint=path,
            )
        if status >= 400:
            code, message = _error_fields(text)
            error_cls = NotAuthenticatedError if status == 401 else StoreError
            raise error_cls(
                f"{method} {path} rejected (HTTP {status}): {message}",
                code=code or str(status),
                endpoint=path,
            )

        if not text.strip():
            return None

        try:
            result = json.loads(text)
        except json.JSONDecodeError as exc:
            raise NetworkError(
                f"Invalid JSON from {path}: {text[:200]}",
                status_code=status,
                endpoint=path,
            ) from exc

        if self._config.api_trace_enabled:
            _logger.debug("response trace %s: %s", path, redact_for_log(result))
        return result
