"""Verification gate: per-identity clearance (KYC) on the token module.

Reads go through the node view endpoint; writes are entry-function calls
handed to a TransactionSubmitter:

    POST {node}/view  {"function": "<token>::<module>::is_user_verified", ...}  -> [bool]
    <token>::<module>::set_user_verification(user: address, verified: bool)

The policy of *when* to clear an identity lives in the dispatcher, not here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from ordermint.errors import TransportError, VerificationCheckError
from ordermint.ledger.types import EntryFunctionCall, MutationOutcome
from ordermint.net.http_client import raise_for_status
from ordermint.net.retry_policy import OP_VIEW_VERIFIED

if TYPE_CHECKING:
    from ordermint.ledger.submitter import TransactionSubmitter
    from ordermint.net.http_client import HttpClient

logger = logging.getLogger(__name__)


class VerificationGate(Protocol):
    """Answers and sets whether an identity is cleared to transact."""

    def is_verified(self, identity: str) -> bool:
        """Return the identity's clearance.

        Raises:
            VerificationCheckError: the query could not be answered
        """
        ...

    def set_verified(self, identity: str, verified: bool) -> MutationOutcome:
        """Set clearance; the outcome reports whether the ledger accepted it."""
        ...


@dataclass
class LedgerVerificationGate:
    """VerificationGate backed by the token module's KYC functions.

    Attributes:
        http_client: HttpClient for view calls
        submitter: TransactionSubmitter for clearance writes
        node_url: REST base URL
        module_id: ``{token_module_address}::{token_module_name}``
        timeout_ms: Per-request timeout for view calls
    """

    http_client: HttpClient
    submitter: TransactionSubmitter
    node_url: str
    module_id: str
    timeout_ms: int = 5000

    def is_verified(self, identity: str) -> bool:
        body = {
            "function": f"{self.module_id}::is_user_verified",
            "type_arguments": [],
            "arguments": [identity],
        }
        try:
            response = self.http_client.request(
                "POST",
                self.node_url.rstrip("/") + "/view",
                json_body=body,
                timeout_ms=self.timeout_ms,
                op=OP_VIEW_VERIFIED,
            )
            raise_for_status(OP_VIEW_VERIFIED, response)
        except TransportError as e:
            raise VerificationCheckError(identity, str(e)) from e

        result = response.json_data
        if not isinstance(result, list) or not result or not isinstance(result[0], bool):
            raise VerificationCheckError(identity, f"unexpected view result: {result!r}")
        return result[0]

    def set_verified(self, identity: str, verified: bool) -> MutationOutcome:
        call = EntryFunctionCall(
            function=f"{self.module_id}::set_user_verification",
            arguments=(identity, verified),
        )
        try:
            outcome = self.submitter.submit(call)
        except Exception as e:
            logger.warning(
                "SET_VERIFIED_ERROR",
                extra={"identity": identity, "verified": verified, "error": str(e)},
            )
            return MutationOutcome.failed(f"{type(e).__name__}: {e}")

        logger.info(
            "SET_VERIFIED",
            extra={
                "identity": identity,
                "verified": verified,
                "tx_hash": outcome.tx_hash,
                "success": outcome.success,
            },
        )
        return outcome
