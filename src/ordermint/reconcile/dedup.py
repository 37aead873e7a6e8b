"""Filter-new step: drop events the store already recorded.

Membership failures are fail-open: an event whose lookup raised is kept as
new. The insert step's uniqueness constraint is the backstop that stops a
wrongly-kept event from being recorded (and dispatched) twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ordermint.events.types import TradeEvent
    from ordermint.store.base import OrderStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilterResult:
    """Output of filter_new.

    Attributes:
        new: Events not yet recorded, in input order
        already_processed: Events the store answered "exists" for
        check_errors: Lookups that raised (their events are in ``new``)
    """

    new: tuple[TradeEvent, ...]
    already_processed: int
    check_errors: int


def filter_new(events: Iterable[TradeEvent], store: OrderStore) -> FilterResult:
    new: list[TradeEvent] = []
    already_processed = 0
    check_errors = 0

    for event in events:
        key = event.dedup_key
        try:
            seen = store.exists(key.identity, key.kind, key.sequence_number)
        except Exception as e:
            check_errors += 1
            logger.warning(
                "DEDUP_CHECK_FAILED",
                extra={"dedup_key": str(key), "error": str(e), "treated_as": "new"},
            )
            seen = False

        if seen:
            already_processed += 1
        else:
            new.append(event)

    return FilterResult(
        new=tuple(new),
        already_processed=already_processed,
        check_errors=check_errors,
    )
