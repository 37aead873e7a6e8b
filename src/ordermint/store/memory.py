"""In-memory OrderStore."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ordermint.events.types import DedupKey
from ordermint.store.base import InsertResult

if TYPE_CHECKING:
    from ordermint.core import EventKind
    from ordermint.events.types import ProcessedRecord

logger = logging.getLogger(__name__)


@dataclass
class InMemoryOrderStore:
    """Dict-backed OrderStore.

    Thread-safe via lock. Suitable for:
    - Tests
    - Dry-run rehearsals where nothing should touch disk

    Records are lost on restart; use SqliteOrderStore for real deployments.
    """

    _records: dict[DedupKey, ProcessedRecord] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def exists(self, identity: str, kind: EventKind, sequence_number: str) -> bool:
        key = DedupKey.of(identity, kind, sequence_number)
        with self._lock:
            return key in self._records

    def insert(self, record: ProcessedRecord) -> InsertResult:
        key = record.dedup_key
        with self._lock:
            if key in self._records:
                return InsertResult.DUPLICATE
            self._records[key] = record
            return InsertResult.INSERTED

    def get(self, key: DedupKey) -> ProcessedRecord | None:
        with self._lock:
            return self._records.get(key)

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def ping(self) -> None:
        return None

    def records(self) -> list[ProcessedRecord]:
        """Snapshot of stored records in insertion order."""
        with self._lock:
            return list(self._records.values())

    def reset(self) -> None:
        """Reset store to initial state (for testing)."""
        with self._lock:
            self._records.clear()
