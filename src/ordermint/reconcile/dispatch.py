"""Verification-gated mint/burn dispatch.

Per event, in order:

1. Verified? A failing check counts as "not verified" (fail-closed).
2. Not verified: exactly one set_verified(identity, True). A failure
   (success=false or raised) abandons the event: AUTO_VERIFY_FAILED.
3. Ticker → TokenClass. No match: UNSUPPORTED_TICKER, no mint or burn.
4. BUY → mint, SELL → burn, with the unscaled asset amount.
   MINTED / BURNED on success, MUTATION_FAILED otherwise.

Identities confirmed or cleared during a batch are remembered for the rest
of that batch, so one identity costs at most one clearance transaction per
cycle. Every branch ends in a DispatchResult; nothing raises out of
dispatch().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ordermint.core import DispatchStatus, EventKind, TokenClass, token_class_for_ticker
from ordermint.errors import AutoVerifyError, UnsupportedTokenError
from ordermint.events.normalize import display_amounts
from ordermint.ledger.types import MutationOutcome

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ordermint.events.types import TradeEvent
    from ordermint.ledger.gate import VerificationGate
    from ordermint.ledger.mutator import LedgerMutator

logger = logging.getLogger(__name__)

_SUCCESS_STATUS = {
    EventKind.BUY: DispatchStatus.MINTED,
    EventKind.SELL: DispatchStatus.BURNED,
}


@dataclass(frozen=True)
class DispatchResult:
    """Terminal outcome of one event in one cycle.

    Attributes:
        event: The dispatched event
        status: Terminal status
        token: Resolved token class (None if unsupported or not reached)
        outcome: Mint/burn outcome (None if no mutation was submitted)
        auto_verified: True if a clearance transaction succeeded for it
        error: Failure description for non-success statuses
    """

    event: TradeEvent
    status: DispatchStatus
    token: TokenClass | None = None
    outcome: MutationOutcome | None = None
    auto_verified: bool = False
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status in (DispatchStatus.MINTED, DispatchStatus.BURNED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "dedup_key": str(self.event.dedup_key),
            "identity": self.event.identity,
            "kind": self.event.kind.value,
            "sequence_number": self.event.sequence_number,
            "ticker": self.event.ticker,
            "asset_amount": str(self.event.asset_amount),
            "status": self.status.value,
            "token_class": self.token.value if self.token else None,
            "auto_verified": self.auto_verified,
            "tx_hash": self.outcome.tx_hash if self.outcome else None,
            "error": self.error,
        }


@dataclass
class MintBurnDispatcher:
    """Drives the verify-then-mutate sequence for persisted events.

    Attributes:
        gate: VerificationGate for clearance checks and auto-verification
        mutator: LedgerMutator for mint/burn
    """

    gate: VerificationGate
    mutator: LedgerMutator

    def dispatch_batch(self, events: Iterable[TradeEvent]) -> list[DispatchResult]:
        """Dispatch events sequentially with one shared verified-identity cache."""
        verified: set[str] = set()
        return [self.dispatch(event, verified) for event in events]

    def dispatch(self, event: TradeEvent, verified: set[str] | None = None) -> DispatchResult:
        if verified is None:
            verified = set()

        identity_key = event.identity.lower()
        auto_verified = False
        if identity_key not in verified:
            if not self._check_verified(event.identity):
                try:
                    self._auto_verify(event.identity)
                except AutoVerifyError as e:
                    return self._finish(
                        DispatchResult(
                            event,
                            DispatchStatus.AUTO_VERIFY_FAILED,
                            error=e.error_message,
                        )
                    )
                auto_verified = True
            verified.add(identity_key)

        try:
            token = token_class_for_ticker(event.ticker)
        except UnsupportedTokenError as e:
            return self._finish(
                DispatchResult(
                    event,
                    DispatchStatus.UNSUPPORTED_TICKER,
                    auto_verified=auto_verified,
                    error=str(e),
                )
            )

        outcome = self._mutate(event, token)
        if outcome.success:
            status = _SUCCESS_STATUS[event.kind]
        else:
            status = DispatchStatus.MUTATION_FAILED
        return self._finish(
            DispatchResult(
                event,
                status,
                token=token,
                outcome=outcome,
                auto_verified=auto_verified,
                error=outcome.error_message if not outcome.success else None,
            )
        )

    def _check_verified(self, identity: str) -> bool:
        try:
            return self.gate.is_verified(identity)
        except Exception as e:
            logger.warning(
                "VERIFICATION_CHECK_FAILED",
                extra={"identity": identity, "error": str(e), "treated_as": "unverified"},
            )
            return False

    def _auto_verify(self, identity: str) -> None:
        """One clearance attempt; raises AutoVerifyError on any failure."""
        try:
            outcome = self.gate.set_verified(identity, True)
        except Exception as e:
            raise AutoVerifyError(identity, f"{type(e).__name__}: {e}") from e

        logger.info(
            "AUTO_VERIFY",
            extra={"identity": identity, "success": outcome.success, "tx_hash": outcome.tx_hash},
        )
        if not outcome.success:
            raise AutoVerifyError(identity, outcome.error_message)

    def _mutate(self, event: TradeEvent, token: TokenClass) -> MutationOutcome:
        op = self.mutator.mint if event.kind is EventKind.BUY else self.mutator.burn
        try:
            return op(event.identity, token, event.asset_amount)
        except Exception as e:
            return MutationOutcome.failed(f"{type(e).__name__}: {e}")

    def _finish(self, result: DispatchResult) -> DispatchResult:
        extra = result.to_dict()
        extra["amounts"] = display_amounts(result.event)
        if result.succeeded:
            logger.info("DISPATCH_RESULT", extra=extra)
        else:
            logger.warning("DISPATCH_RESULT", extra=extra)
        return result
