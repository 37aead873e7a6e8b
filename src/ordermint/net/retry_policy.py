"""HTTP retry policy, per-op deadlines, and error classification.

Provides:
- ``HttpRetryPolicy``: frozen config for read-request retries.
- ``DeadlinePolicy``: per-op timeout budgets.
- ``classify_http_error()``: maps HTTP/transport failures to stable reason strings.
- ``is_http_retryable()``: whether a failure reason is retried under a policy.

Only read ops are ever retried. Ledger submissions go through the
transaction submitter and are attempted exactly once per cycle.

This module has NO side-effects (no metrics, no I/O).
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Stable reason strings (appear in logs and errors; do NOT rename)
# ---------------------------------------------------------------------------

REASON_TIMEOUT = "timeout"
REASON_CONNECT = "connect"
REASON_TLS = "tls"
REASON_429 = "429"
REASON_5XX = "5xx"
REASON_4XX = "4xx"
REASON_DECODE = "decode"
REASON_UNKNOWN = "unknown"

_RETRYABLE_READ: frozenset[str] = frozenset(
    {
        REASON_TIMEOUT,
        REASON_CONNECT,
        REASON_5XX,
        REASON_429,
    }
)

# ---------------------------------------------------------------------------
# Ops taxonomy
# ---------------------------------------------------------------------------

OP_FETCH_EVENTS = "fetch_events"
OP_VIEW_VERIFIED = "view_verified"
OP_LEDGER_INFO = "ledger_info"

READ_OPS: frozenset[str] = frozenset({OP_FETCH_EVENTS, OP_VIEW_VERIFIED, OP_LEDGER_INFO})


@dataclass(frozen=True)
class HttpRetryPolicy:
    """Configuration for read-request retries.

    Attributes:
        max_attempts: Maximum number of attempts (1 = no retries).
        base_delay_ms: Initial delay between retries in milliseconds.
        max_delay_ms: Maximum delay cap in milliseconds.
        backoff_multiplier: Multiplier for exponential backoff.
        jitter: Add random jitter to delays (off by default for deterministic tests).
        retryable_reasons: Reasons that trigger a retry.
    """

    max_attempts: int = 1
    base_delay_ms: int = 200
    max_delay_ms: int = 2000
    backoff_multiplier: float = 2.0
    jitter: bool = False
    retryable_reasons: frozenset[str] = field(default_factory=lambda: _RETRYABLE_READ)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            msg = "max_attempts must be >= 1"
            raise ValueError(msg)
        if self.base_delay_ms < 0:
            msg = "base_delay_ms must be >= 0"
            raise ValueError(msg)
        if self.max_delay_ms < self.base_delay_ms:
            msg = "max_delay_ms must be >= base_delay_ms"
            raise ValueError(msg)

    def compute_delay_ms(self, attempt: int) -> int:
        """Delay before the retry following ``attempt`` (0-indexed)."""
        delay = self.base_delay_ms * (self.backoff_multiplier**attempt)
        delay = min(delay, self.max_delay_ms)
        if self.jitter:
            delay = delay * (0.5 + random.random() * 0.5)
        return int(delay)


# Fullnode event queries page through storage and are slower than view calls.
_DEFAULT_DEADLINES: dict[str, int] = {
    OP_FETCH_EVENTS: 5000,
    OP_VIEW_VERIFIED: 3000,
    OP_LEDGER_INFO: 2000,
}


@dataclass(frozen=True)
class DeadlinePolicy:
    """Per-operation timeout budgets in milliseconds."""

    deadlines: dict[str, int] = field(default_factory=lambda: dict(_DEFAULT_DEADLINES))

    def get_deadline_ms(self, op: str, fallback_ms: int = 5000) -> int:
        return self.deadlines.get(op, fallback_ms)

    @staticmethod
    def uniform(timeout_ms: int) -> DeadlinePolicy:
        """Same budget for every known op."""
        return DeadlinePolicy(deadlines={op: timeout_ms for op in READ_OPS})


def _classify_exception(error: Exception) -> str:
    error_type = type(error).__name__.lower()
    error_str = str(error).lower()

    if "timeout" in error_type or "timeout" in error_str:
        return REASON_TIMEOUT
    if "connect" in error_type or "connect" in error_str:
        return REASON_CONNECT
    if "ssl" in error_str or "tls" in error_str or "certificate" in error_str:
        return REASON_TLS
    if "decode" in error_type or "decode" in error_str or "json" in error_str:
        return REASON_DECODE
    return REASON_UNKNOWN


def classify_http_error(
    *,
    status_code: int | None = None,
    error: Exception | None = None,
) -> str:
    """Classify an HTTP failure into one of the REASON_* constants.

    A status code takes precedence over an exception when both are given.
    """
    if status_code is not None:
        if status_code == 429:
            return REASON_429
        if 500 <= status_code < 600:
            return REASON_5XX
        if 400 <= status_code < 500:
            return REASON_4XX

    if error is not None:
        return _classify_exception(error)

    return REASON_UNKNOWN


def is_http_retryable(reason: str, policy: HttpRetryPolicy) -> bool:
    return reason in policy.retryable_reasons
