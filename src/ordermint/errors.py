"""ORDERMINT exception hierarchy.

Each class maps to one failure mode of a polling cycle and to the policy
applied when it happens:

- OrderMintError (base)
  - ConfigError (invalid startup configuration)
  - TransportError (ledger unreachable or non-2xx; aborts the cycle)
    - TransientTransportError (timeouts, connect errors, 5xx, 429)
  - DedupCheckError (store membership query failed; event treated as new)
  - VerificationCheckError (KYC query failed; identity treated as unverified)
  - AutoVerifyError (clearance request failed; event abandoned this cycle)
  - UnsupportedTokenError (ticker outside the TokenClass set; terminal)
  - PersistenceError (record insert failed; sibling records unaffected)
  - EventFormatError (raw payload unusable; event skipped, batch continues)
  - RecordNotFoundError (replay requested for an event never recorded)
"""

from __future__ import annotations


class OrderMintError(Exception):
    """Base exception for all ordermint errors."""


class ConfigError(OrderMintError):
    """Raised when configuration (env, file, flags) has an invalid value."""


class TransportError(OrderMintError):
    """Ledger node unreachable or answered with a non-success status.

    Attributes:
        op: Operation name from the ops taxonomy (e.g. "fetch_events")
        status_code: HTTP status (0 if no response was received)
        reason: Classified reason string (see net.retry_policy)
    """

    def __init__(
        self,
        op: str,
        reason: str,
        status_code: int = 0,
        message: str | None = None,
    ) -> None:
        self.op = op
        self.reason = reason
        self.status_code = status_code
        msg = message or f"{op} failed: reason={reason} status={status_code}"
        super().__init__(msg)


class TransientTransportError(TransportError):
    """Transport error that is safe to retry for read operations."""


class DedupCheckError(OrderMintError):
    """Idempotency store could not answer a membership query."""


class VerificationCheckError(OrderMintError):
    """Verification gate could not answer whether an identity is cleared."""

    def __init__(self, identity: str, cause: str) -> None:
        self.identity = identity
        super().__init__(f"verification check failed for {identity}: {cause}")


class AutoVerifyError(OrderMintError):
    """Clearance request for an unverified identity did not succeed."""

    def __init__(self, identity: str, error_message: str | None) -> None:
        self.identity = identity
        self.error_message = error_message or "set_verified returned success=false"
        super().__init__(f"auto-verify failed for {identity}: {self.error_message}")


class UnsupportedTokenError(OrderMintError):
    """Normalized ticker does not map to any TokenClass."""

    def __init__(self, ticker: str) -> None:
        self.ticker = ticker
        super().__init__(f"unsupported ticker: {ticker!r}")


class PersistenceError(OrderMintError):
    """Processed record could not be written."""


class EventFormatError(OrderMintError):
    """Raw event payload is missing a field or carries an unparseable amount."""


class RecordNotFoundError(OrderMintError):
    """No processed record exists for the requested key."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"no processed record for {key}")
