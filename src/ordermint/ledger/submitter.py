"""Transaction submitters.

A submitter turns an EntryFunctionCall into a committed transaction and
reports a MutationOutcome. Signing and key handling live entirely behind
this protocol.

Implementations:
- DryRunSubmitter: 0 network calls, synthetic success, records every call
- AptosSdkSubmitter (ordermint.ledger.aptos_submitter): real submission,
  requires the ``aptos`` extra
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from ordermint.ledger.types import MutationOutcome

if TYPE_CHECKING:
    from ordermint.ledger.types import EntryFunctionCall

logger = logging.getLogger(__name__)


class TransactionSubmitter(Protocol):
    """Signs, submits, and waits for one entry-function transaction."""

    def submit(self, call: EntryFunctionCall) -> MutationOutcome:
        """Submit ``call`` and wait for execution.

        Implementations may raise on transport failure; callers convert
        exceptions into failed outcomes.
        """
        ...


@dataclass
class DryRunSubmitter:
    """Submitter that never touches the network.

    Returns a deterministic synthetic hash per call so logs and audit lines
    stay traceable. ``fail_functions`` makes calls to the named functions
    return success=False, for rehearsing failure paths.
    """

    fail_functions: frozenset[str] = frozenset()
    calls: list[EntryFunctionCall] = field(default_factory=list)

    def submit(self, call: EntryFunctionCall) -> MutationOutcome:
        self.calls.append(call)
        digest = hashlib.sha256(
            f"{len(self.calls)}:{call.function}:{call.arguments}".encode()
        ).hexdigest()
        tx_hash = f"0xdryrun{digest[:56]}"

        logger.info(
            "DRY_RUN_SUBMIT",
            extra={"function": call.function, "arguments": call.to_dict()["arguments"]},
        )
        if call.function_name in self.fail_functions:
            return MutationOutcome.failed("dry-run configured failure", tx_hash=tx_hash)
        return MutationOutcome(tx_hash=tx_hash, success=True, gas_used="0")
