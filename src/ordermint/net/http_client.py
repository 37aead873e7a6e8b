"""Sync HTTP client used by the ledger adapters.

Components:
- ``HttpClient``: Protocol every adapter depends on (injectable for tests).
- ``HttpResponse``: status code + decoded JSON body.
- ``HttpxClient``: real transport over ``httpx.Client``; maps transport
  failures to ``TransportError``/``TransientTransportError``.
- ``RetryingHttpClient``: wraps any HttpClient with per-op deadlines and
  bounded retries for read ops.
- ``raise_for_status()``: converts a non-2xx response into ``TransportError``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from ordermint.errors import TransientTransportError, TransportError
from ordermint.net.retry_policy import (
    READ_OPS,
    REASON_CONNECT,
    REASON_DECODE,
    REASON_TIMEOUT,
    DeadlinePolicy,
    HttpRetryPolicy,
    classify_http_error,
    is_http_retryable,
)

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpResponse:
    """HTTP response data."""

    status_code: int
    json_data: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class HttpClient(Protocol):
    """Protocol for HTTP client operations."""

    def request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        timeout_ms: int = 5000,
        op: str = "",
    ) -> HttpResponse:
        """Execute one HTTP request.

        Raises:
            TransientTransportError: timeout or connection failure
            TransportError: any other transport or decode failure
        """
        ...


def raise_for_status(op: str, response: HttpResponse) -> None:
    """Raise TransportError for a non-2xx response.

    429 and 5xx are raised as TransientTransportError.
    """
    if response.ok:
        return
    reason = classify_http_error(status_code=response.status_code)
    message = f"{op} failed: HTTP {response.status_code}: {response.json_data!r}"
    if response.status_code == 429 or response.status_code >= 500:
        raise TransientTransportError(op, reason, response.status_code, message)
    raise TransportError(op, reason, response.status_code, message)


@dataclass
class HttpxClient:
    """HttpClient backed by ``httpx.Client``."""

    _client: httpx.Client = field(default_factory=httpx.Client, repr=False)

    def request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        timeout_ms: int = 5000,
        op: str = "",
    ) -> HttpResponse:
        """Execute HTTP request via httpx."""
        try:
            resp = self._client.request(
                method,
                url,
                params=params,
                json=json_body,
                timeout=timeout_ms / 1000.0,
            )
        except httpx.TimeoutException as e:
            raise TransientTransportError(op, REASON_TIMEOUT, message=f"{op} timeout: {e}") from e
        except httpx.ConnectError as e:
            raise TransientTransportError(
                op, REASON_CONNECT, message=f"{op} connection error: {e}"
            ) from e
        except httpx.HTTPError as e:
            reason = classify_http_error(error=e)
            raise TransportError(op, reason, message=f"{op} error: {e}") from e

        try:
            body = resp.json() if resp.content else {}
        except ValueError as e:
            raise TransportError(
                op,
                REASON_DECODE,
                resp.status_code,
                f"{op} returned non-JSON body (HTTP {resp.status_code})",
            ) from e
        return HttpResponse(status_code=resp.status_code, json_data=body)

    def close(self) -> None:
        self._client.close()


class RetryingHttpClient:
    """HttpClient wrapper with per-op deadlines and read retries.

    Requests whose ``op`` is not a read op are passed through once with the
    caller's ``timeout_ms``. Read ops use the DeadlinePolicy budget and are
    retried while the failure reason is retryable under the policy.
    Retryable non-2xx responses are retried; the final response (2xx or not)
    is returned to the caller unchanged.
    """

    def __init__(
        self,
        *,
        inner: HttpClient,
        deadline_policy: DeadlinePolicy | None = None,
        retry_policy: HttpRetryPolicy | None = None,
        sleep_func: Callable[[float], None] | None = None,
    ) -> None:
        self._inner = inner
        self._deadline = deadline_policy or DeadlinePolicy()
        self._retry = retry_policy or HttpRetryPolicy()
        self._sleep = sleep_func or time.sleep

    def request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        timeout_ms: int = 5000,
        op: str = "",
    ) -> HttpResponse:
        if op not in READ_OPS:
            return self._inner.request(
                method, url, params=params, json_body=json_body, timeout_ms=timeout_ms, op=op
            )

        deadline_ms = self._deadline.get_deadline_ms(op, fallback_ms=timeout_ms)
        max_attempts = self._retry.max_attempts

        for attempt in range(max_attempts):
            last_attempt = attempt + 1 >= max_attempts
            try:
                response = self._inner.request(
                    method, url, params=params, json_body=json_body, timeout_ms=deadline_ms, op=op
                )
            except TransportError as exc:
                if last_attempt or not is_http_retryable(exc.reason, self._retry):
                    raise
                self._backoff(op, attempt, max_attempts, exc.reason)
                continue

            if response.ok or last_attempt:
                return response
            reason = classify_http_error(status_code=response.status_code)
            if not is_http_retryable(reason, self._retry):
                return response
            self._backoff(op, attempt, max_attempts, reason)

        raise RuntimeError(f"HTTP {op} exhausted all {max_attempts} attempts")  # pragma: no cover

    def _backoff(self, op: str, attempt: int, max_attempts: int, reason: str) -> None:
        delay_ms = self._retry.compute_delay_ms(attempt)
        logger.debug(
            "HTTP %s failed (attempt %d/%d, reason=%s), retrying in %dms",
            op,
            attempt + 1,
            max_attempts,
            reason,
            delay_ms,
        )
        self._sleep(delay_ms / 1000.0)

    def close(self) -> None:
        close = getattr(self._inner, "close", None)
        if close is not None:
            close()
