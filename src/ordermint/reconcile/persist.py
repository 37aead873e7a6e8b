"""Persist-new step: record each new event exactly once.

Every insert is attempted independently. Only INSERTED events continue to
dispatch: a DUPLICATE means another writer already owns the event, and a
FAILED insert leaves the event unrecorded so the next cycle sees it again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ordermint.events.types import ProcessedRecord
from ordermint.store.base import InsertResult

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ordermint.events.types import TradeEvent
    from ordermint.store.base import OrderStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PersistResult:
    """Output of persist_new.

    Attributes:
        inserted: Events recorded by this call, in input order
        duplicates: Inserts rejected by the uniqueness constraint
        failed: Inserts that did not complete
    """

    inserted: tuple[TradeEvent, ...]
    duplicates: int
    failed: int


def persist_new(
    events: Iterable[TradeEvent],
    store: OrderStore,
    processed_at_ms: int,
) -> PersistResult:
    inserted: list[TradeEvent] = []
    duplicates = 0
    failed = 0

    for event in events:
        record = ProcessedRecord.from_event(event, processed_at_ms)
        try:
            result = store.insert(record)
        except Exception as e:
            logger.warning(
                "RECORD_INSERT_FAILED",
                extra={"dedup_key": str(record.dedup_key), "error": str(e)},
            )
            result = InsertResult.FAILED

        if result is InsertResult.INSERTED:
            inserted.append(event)
        elif result is InsertResult.DUPLICATE:
            duplicates += 1
            logger.info("RECORD_DUPLICATE", extra={"dedup_key": str(record.dedup_key)})
        else:
            failed += 1

    return PersistResult(inserted=tuple(inserted), duplicates=duplicates, failed=failed)
