"""Ledger mutator: token-supply mint/burn.

    mint:  <token>::<module>::mint<<token>::<module>::<TOKEN>>(recipient, amount)
    burn:  <token>::<module>::admin_burn_from<<token>::<module>::<TOKEN>>(owner, amount)

Amounts are unscaled integers passed through unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from ordermint.ledger.types import EntryFunctionCall

if TYPE_CHECKING:
    from ordermint.core import TokenClass
    from ordermint.ledger.submitter import TransactionSubmitter
    from ordermint.ledger.types import MutationOutcome

logger = logging.getLogger(__name__)

FN_MINT = "mint"
FN_BURN = "admin_burn_from"


class LedgerMutator(Protocol):
    """Submits supply changes for (identity, token, amount)."""

    def mint(self, identity: str, token: TokenClass, amount: int) -> MutationOutcome: ...

    def burn(self, identity: str, token: TokenClass, amount: int) -> MutationOutcome: ...


@dataclass
class TokenMutator:
    """LedgerMutator over the token module's admin entry functions.

    Submitter exceptions propagate; the dispatcher converts them.
    """

    submitter: TransactionSubmitter
    module_id: str

    def type_argument(self, token: TokenClass) -> str:
        return f"{self.module_id}::{token.value}"

    def build_call(
        self, function_name: str, identity: str, token: TokenClass, amount: int
    ) -> EntryFunctionCall:
        if amount < 0:
            raise ValueError(f"amount must be >= 0, got {amount}")
        return EntryFunctionCall(
            function=f"{self.module_id}::{function_name}",
            type_arguments=(self.type_argument(token),),
            arguments=(identity, amount),
        )

    def mint(self, identity: str, token: TokenClass, amount: int) -> MutationOutcome:
        return self._submit(FN_MINT, identity, token, amount)

    def burn(self, identity: str, token: TokenClass, amount: int) -> MutationOutcome:
        return self._submit(FN_BURN, identity, token, amount)

    def _submit(
        self, function_name: str, identity: str, token: TokenClass, amount: int
    ) -> MutationOutcome:
        call = self.build_call(function_name, identity, token, amount)
        outcome = self.submitter.submit(call)
        logger.debug(
            "MUTATION_SUBMITTED",
            extra={
                "function": function_name,
                "identity": identity,
                "token": token.value,
                "amount": str(amount),
                "tx_hash": outcome.tx_hash,
                "success": outcome.success,
            },
        )
        return outcome
