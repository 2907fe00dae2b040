"""Shared HTTP plumbing for provider clients.

Every upstream call goes through :meth:`HttpClient._request`, which maps
transport failures and status codes onto the error taxonomy in
:mod:`plsort.errors` and retries the transient ones with tenacity.

| upstream result                  | raised                                 |
|----------------------------------|----------------------------------------|
| 401                              | AuthExpired (hook fired, no retry)     |
| 410 or a declared categorical    | ProviderUnavailable (no retry)         |
| 429, 5xx, connection, timeout    | TransientFetchError (bounded retries)  |
| other 4xx                        | ProviderError                          |
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Collection, Dict, Generic, List, TypeVar

import requests
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_random_exponential

from ..errors import AuthExpired, ProviderError, ProviderUnavailable, TransientFetchError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """One page of a cursor-paginated listing."""
    items: List[T] = field(default_factory=list)
    next_cursor: str | None = None


def chunked(seq, size: int):
    for i in range(0, len(seq), size):
        yield seq[i : i + size]


class HttpClient:
    """Base class: timeouts, status mapping and retry policy.

    Args:
        timeout: Per-request timeout in seconds
        max_attempts: Attempts for transient failures (1 disables retries)
        backoff_multiplier: Exponential backoff multiplier in seconds (0 in tests)
        backoff_max: Upper bound for one backoff sleep
        on_auth_rejected: Called once when the upstream answers 401
        http: Object with a ``requests.Session``-compatible ``request`` method
    """

    provider_name = "http"
    # False for API-key services, where 401 means a bad key rather than an expired session
    bearer_auth = True

    def __init__(
        self,
        timeout: float = 30.0,
        max_attempts: int = 4,
        backoff_multiplier: float = 1.0,
        backoff_max: float = 30.0,
        on_auth_rejected: Callable[[], None] | None = None,
        http: Any = None,
    ):
        self.timeout = timeout
        self.max_attempts = max(1, int(max_attempts))
        self.backoff_multiplier = backoff_multiplier
        self.backoff_max = backoff_max
        self.on_auth_rejected = on_auth_rejected
        self.http = http if http is not None else requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {}

    def _wait(self, retry_state) -> float:
        """Honour Retry-After when the upstream sends it, else jittered exponential."""
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, TransientFetchError) and exc.retry_after is not None:
            return min(exc.retry_after, self.backoff_max)
        return wait_random_exponential(multiplier=self.backoff_multiplier, max=self.backoff_max)(retry_state)

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            retry=retry_if_exception_type(TransientFetchError),
            reraise=True,
        )

    def _request(
        self,
        method: str,
        url: str,
        params: Dict[str, Any] | None = None,
        json: Dict[str, Any] | None = None,
        categorical: Collection[int] = (),
        retry: bool = True,
    ) -> Dict[str, Any]:
        """Execute a request with retry logic and status mapping.

        Args:
            method: HTTP verb
            url: Absolute URL
            params: Optional query parameters
            json: Optional JSON body
            categorical: Extra status codes meaning "this data source is gone"
            retry: False for writes that must not be replayed

        Returns:
            JSON response as dict (empty when the body is empty)
        """
        if not retry:
            return self._send_once(method, url, params, json, categorical)
        for attempt in self._retrying():
            with attempt:
                return self._send_once(method, url, params, json, categorical)
        return {}  # pragma: no cover - Retrying either returns or re-raises

    def _send_once(self, method, url, params, json, categorical) -> Dict[str, Any]:
        name = self.provider_name
        try:
            r = self.http.request(method, url, headers=self._headers(), params=params, json=json, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.debug(f"{name}: {method} {url} transport failure: {e}")
            raise TransientFetchError(f"{name} request failed: {e}", provider=name) from e

        status = r.status_code
        if status == 401 and self.bearer_auth:
            if self.on_auth_rejected is not None:
                self.on_auth_rejected()
            raise AuthExpired(f"{name} rejected the access token")
        if status == 429:
            retry_after = _parse_retry_after(r.headers.get("Retry-After"))
            logger.debug(f"{name}: rate limited on {url} (retry_after={retry_after})")
            raise TransientFetchError(f"{name} rate limit", provider=name, status=status, retry_after=retry_after)
        if status >= 500:
            raise TransientFetchError(f"{name} server error {status}", provider=name, status=status)
        if status in (401, 410) or status in categorical:
            raise ProviderUnavailable(f"{name} endpoint unavailable (HTTP {status})", provider=name, status=status)
        if status >= 400:
            raise ProviderError(f"{name} request failed (HTTP {status}): {_error_message(r)}", provider=name, status=status)
        if not r.content:
            return {}
        try:
            return r.json()
        except ValueError as e:
            raise ProviderError(f"{name} returned invalid JSON", provider=name, status=status) from e


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _error_message(r) -> str:
    try:
        body = r.json()
    except ValueError:
        return (r.text or '')[:200]
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict):
            return str(err.get("message") or err)
        if err:
            return str(err)
    return str(body)[:200]


__all__ = ["HttpClient", "Page", "chunked"]
