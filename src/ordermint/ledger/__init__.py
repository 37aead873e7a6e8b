"""Ledger write side: verification gate, token mutator, transaction submitters.

Components:
- EntryFunctionCall / MutationOutcome: call description and its result
- TransactionSubmitter: signs and submits calls (DryRunSubmitter by default)
- LedgerVerificationGate: KYC query (view call) and clearance (entry call)
- TokenMutator: mint / admin_burn_from for a TokenClass
"""

from ordermint.ledger.gate import LedgerVerificationGate, VerificationGate
from ordermint.ledger.mutator import LedgerMutator, TokenMutator
from ordermint.ledger.submitter import DryRunSubmitter, TransactionSubmitter
from ordermint.ledger.types import EntryFunctionCall, MutationOutcome

__all__ = [
    "DryRunSubmitter",
    "EntryFunctionCall",
    "LedgerMutator",
    "LedgerVerificationGate",
    "MutationOutcome",
    "TokenMutator",
    "TransactionSubmitter",
    "VerificationGate",
]
