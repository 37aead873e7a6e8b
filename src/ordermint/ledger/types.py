"""Ledger-side value types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class MutationOutcome:
    """Result of one submitted ledger transaction.

    Attributes:
        tx_hash: Transaction hash ("" if nothing was submitted)
        success: True if the transaction executed successfully
        gas_used: Gas used, as reported by the node
        error_message: Failure description (vm_status or transport error)
    """

    tx_hash: str
    success: bool
    gas_used: str | None = None
    error_message: str | None = None

    @classmethod
    def failed(cls, error_message: str, tx_hash: str = "") -> MutationOutcome:
        return cls(tx_hash=tx_hash, success=False, error_message=error_message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tx_hash": self.tx_hash,
            "success": self.success,
            "gas_used": self.gas_used,
            "error_message": self.error_message,
        }


@dataclass(frozen=True)
class EntryFunctionCall:
    """An entry-function invocation, ready to be signed and submitted.

    Attributes:
        function: Fully qualified function id (``0xaddr::module::name``)
        type_arguments: Fully qualified type tags
        arguments: Positional arguments; ints are u64, bools are bool,
            strings are addresses
    """

    function: str
    type_arguments: tuple[str, ...] = ()
    arguments: tuple[Any, ...] = field(default_factory=tuple)

    @property
    def module_id(self) -> str:
        return self.function.rsplit("::", 1)[0]

    @property
    def function_name(self) -> str:
        return self.function.rsplit("::", 1)[1]

    def to_dict(self) -> dict[str, Any]:
        return {
            "function": self.function,
            "type_arguments": list(self.type_arguments),
            # u64 values travel as decimal strings in the REST JSON encoding
            "arguments": [
                str(a) if isinstance(a, int) and not isinstance(a, bool) else a
                for a in self.arguments
            ],
        }
