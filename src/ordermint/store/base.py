"""Idempotency store protocol.

The store is the persisted set of processed events, keyed by DedupKey
(identity, event kind, sequence number). Membership answers "already
processed?"; insert records an event exactly once.

Key properties:
- Keys are canonical (lower-cased identity, decimal sequence string)
- Insert is the race arbiter: a uniqueness violation is DUPLICATE, never an error
- Records are never updated or deleted
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ordermint.core import EventKind
    from ordermint.events.types import DedupKey, ProcessedRecord


class InsertResult(Enum):
    """Outcome of one record insert."""

    INSERTED = "inserted"
    DUPLICATE = "duplicate"  # Key already present (another writer won)
    FAILED = "failed"  # Not written; will be seen as new next cycle


class OrderStore(Protocol):
    """Protocol for processed-event storage.

    Implementations must be safe to call from the poll thread and the CLI
    thread.
    """

    def exists(self, identity: str, kind: EventKind, sequence_number: str) -> bool:
        """Return True if the event was already recorded.

        Raises:
            DedupCheckError: the store could not answer
        """
        ...

    def insert(self, record: ProcessedRecord) -> InsertResult:
        """Record an event. Never raises for a duplicate key."""
        ...

    def get(self, key: DedupKey) -> ProcessedRecord | None:
        """Fetch a stored record, or None."""
        ...

    def count(self) -> int:
        """Number of stored records."""
        ...

    def ping(self) -> None:
        """Raise if the backing storage is unreachable."""
        ...
