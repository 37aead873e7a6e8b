"""Reconciliation engine: one polling cycle end to end.

    fetch BUY + SELL → filter-new → persist-new → dispatch inserted events

A fetch failure aborts the cycle before anything is recorded; it is logged
and reported, never raised to the caller. Every other per-event failure
becomes a counter on the CycleReport. Nothing here keeps global tallies:
cumulative metrics are fed from the returned report.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from ordermint.core import DispatchStatus, EventKind
from ordermint.errors import RecordNotFoundError
from ordermint.reconcile.dedup import filter_new
from ordermint.reconcile.persist import persist_new

if TYPE_CHECKING:
    from collections.abc import Callable

    from ordermint.events.source import EventSource
    from ordermint.events.types import DedupKey, TradeEvent
    from ordermint.reconcile.audit import AuditWriter
    from ordermint.reconcile.dispatch import DispatchResult, MintBurnDispatcher
    from ordermint.reconcile.metrics import PollMetrics
    from ordermint.store.base import OrderStore

logger = logging.getLogger(__name__)


class CycleStatus(Enum):
    """How a cycle ended."""

    OK = "ok"
    ABORTED = "aborted"  # Fetch failed; nothing recorded or dispatched
    SKIPPED = "skipped"  # Previous cycle still running (guard held)


@dataclass(frozen=True)
class CycleReport:
    """Result of a single polling cycle.

    Attributes:
        cycle_id: Identifier shared by the cycle's log and audit lines
        status: How the cycle ended
        ts_start: Cycle start timestamp (ms)
        ts_end: Cycle end timestamp (ms)
        fetched: Valid events returned by the source (both kinds)
        new: Events not yet recorded
        already_processed: Events filtered out as recorded
        dedup_check_errors: Lookups that failed (their events counted as new)
        inserted: Records written this cycle
        duplicates: Inserts rejected by the uniqueness constraint
        insert_failed: Inserts that did not complete
        results: Dispatch outcome per inserted event, in dispatch order
        error: Abort reason (ABORTED only)
    """

    cycle_id: str
    status: CycleStatus
    ts_start: int
    ts_end: int
    fetched: int = 0
    new: int = 0
    already_processed: int = 0
    dedup_check_errors: int = 0
    inserted: int = 0
    duplicates: int = 0
    insert_failed: int = 0
    results: tuple[DispatchResult, ...] = ()
    error: str | None = None

    @classmethod
    def skipped(cls, cycle_id: str, ts: int) -> CycleReport:
        return cls(cycle_id=cycle_id, status=CycleStatus.SKIPPED, ts_start=ts, ts_end=ts)

    @property
    def duration_ms(self) -> int:
        return self.ts_end - self.ts_start

    def count(self, status: DispatchStatus) -> int:
        return sum(1 for r in self.results if r.status is status)

    @property
    def stranded(self) -> int:
        """Events abandoned after a failed auto-verify."""
        return self.count(DispatchStatus.AUTO_VERIFY_FAILED)

    def to_log_extra(self) -> dict[str, Any]:
        """Generate extra dict for structured logging."""
        extra: dict[str, Any] = {
            "cycle_id": self.cycle_id,
            "cycle_status": self.status.value,
            "duration_ms": self.duration_ms,
            "fetched": self.fetched,
            "new": self.new,
            "already_processed": self.already_processed,
            "dedup_check_errors": self.dedup_check_errors,
            "inserted": self.inserted,
            "duplicates": self.duplicates,
            "insert_failed": self.insert_failed,
        }
        for status in DispatchStatus:
            extra[status.value] = self.count(status)
        if self.error is not None:
            extra["error"] = self.error
        return extra

    def to_dict(self) -> dict[str, Any]:
        d = self.to_log_extra()
        d["ts_start"] = self.ts_start
        d["ts_end"] = self.ts_end
        d["results"] = [r.to_dict() for r in self.results]
        return d


@dataclass
class ReconcileEngine:
    """Runs polling cycles against injected collaborators.

    Thread-safety: No. The poll loop's cycle guard serializes calls.

    Attributes:
        source: EventSource for both event kinds
        store: OrderStore (dedup + persistence)
        dispatcher: MintBurnDispatcher for inserted events
        page_size: Events requested per kind per cycle
        metrics: Optional cumulative PollMetrics fed from each report
        audit_writer: Optional JSONL audit trail
        mode: "dry_run" or "live", recorded in audit lines
    """

    source: EventSource
    store: OrderStore
    dispatcher: MintBurnDispatcher
    page_size: int = 5
    metrics: PollMetrics | None = None
    audit_writer: AuditWriter | None = None
    mode: str = "dry_run"

    _clock: Callable[[], int] = field(default=lambda: int(time.time() * 1000))
    _cycle_seq: int = field(default=0, init=False)

    def next_cycle_id(self, ts: int) -> str:
        self._cycle_seq += 1
        return f"{ts}_{self._cycle_seq}"

    def run_cycle(self) -> CycleReport:
        """Execute one polling cycle. Never raises."""
        ts_start = self._clock()
        cycle_id = self.next_cycle_id(ts_start)

        try:
            fetched = self._fetch_all()
        except Exception as e:
            report = CycleReport(
                cycle_id=cycle_id,
                status=CycleStatus.ABORTED,
                ts_start=ts_start,
                ts_end=self._clock(),
                error=f"{type(e).__name__}: {e}",
            )
            logger.error("CYCLE_ABORTED", extra=report.to_log_extra())
            self._publish(report)
            return report

        filtered = filter_new(fetched, self.store)
        persisted = persist_new(filtered.new, self.store, processed_at_ms=self._clock())
        results = self.dispatcher.dispatch_batch(persisted.inserted)

        report = CycleReport(
            cycle_id=cycle_id,
            status=CycleStatus.OK,
            ts_start=ts_start,
            ts_end=self._clock(),
            fetched=len(fetched),
            new=len(filtered.new),
            already_processed=filtered.already_processed,
            dedup_check_errors=filtered.check_errors,
            inserted=len(persisted.inserted),
            duplicates=persisted.duplicates,
            insert_failed=persisted.failed,
            results=tuple(results),
        )
        logger.info("CYCLE_RUN", extra=report.to_log_extra())
        self._publish(report)
        return report

    def _fetch_all(self) -> list[TradeEvent]:
        events: list[TradeEvent] = []
        for kind in (EventKind.BUY, EventKind.SELL):
            events.extend(self.source.fetch(kind, self.page_size))
        return events

    def _publish(self, report: CycleReport) -> None:
        if self.metrics is not None:
            self.metrics.record_cycle(report)
        if self.audit_writer is not None:
            self.audit_writer.write_cycle(report, mode=self.mode)

    def replay(self, key: DedupKey) -> DispatchResult:
        """Re-dispatch an already recorded event (operator remediation).

        Does not insert anything; the record must already exist.

        Raises:
            RecordNotFoundError: no record for ``key``
        """
        record = self.store.get(key)
        if record is None:
            raise RecordNotFoundError(str(key))

        result = self.dispatcher.dispatch(record.to_event())
        logger.info("REPLAY", extra={"dedup_key": str(key), "status": result.status.value})
        if self.metrics is not None:
            self.metrics.record_dispatch(result.status)
        if self.audit_writer is not None:
            self.audit_writer.write_dispatch(f"replay-{self._clock()}", result, mode=self.mode)
        return result
