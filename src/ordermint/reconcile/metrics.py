"""Cumulative poll metrics, fed from CycleReports.

Each cycle returns its own CycleReport; this registry only accumulates
across cycles for Prometheus export.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ordermint.core import DispatchStatus

if TYPE_CHECKING:
    from ordermint.reconcile.engine import CycleReport

# Metric names (stable contract)
METRIC_CYCLES = "ordermint_poll_cycles_total"
METRIC_EVENTS_FETCHED = "ordermint_events_fetched_total"
METRIC_EVENTS_NEW = "ordermint_events_new_total"
METRIC_DEDUP_CHECK_ERRORS = "ordermint_dedup_check_errors_total"
METRIC_RECORDS = "ordermint_records_total"
METRIC_DISPATCH = "ordermint_dispatch_total"
METRIC_STRANDED = "ordermint_stranded_events_total"
METRIC_LAST_CYCLE_DURATION = "ordermint_last_cycle_duration_seconds"

# Label keys
LABEL_STATUS = "status"
LABEL_RESULT = "result"

_CYCLE_STATUSES = ("ok", "aborted", "skipped")
_RECORD_RESULTS = ("inserted", "duplicate", "failed")


@dataclass
class PollMetrics:
    """Counters for the polling service.

    Thread-safe via simple dict operations (GIL protection).

    cycle_counts: {cycle status: count}
    dispatch_counts: {DispatchStatus.value: count}
    record_counts: {inserted|duplicate|failed: count}
    stranded: events abandoned after a failed auto-verify (need operator replay)
    """

    cycle_counts: dict[str, int] = field(default_factory=dict)
    events_fetched: int = 0
    events_new: int = 0
    dedup_check_errors: int = 0
    record_counts: dict[str, int] = field(default_factory=dict)
    dispatch_counts: dict[str, int] = field(default_factory=dict)
    stranded: int = 0
    last_cycle_duration_ms: int = 0

    def record_cycle(self, report: CycleReport) -> None:
        """Fold one cycle's report into the cumulative counters."""
        status = report.status.value
        self.cycle_counts[status] = self.cycle_counts.get(status, 0) + 1
        self.events_fetched += report.fetched
        self.events_new += report.new
        self.dedup_check_errors += report.dedup_check_errors
        for result, count in (
            ("inserted", report.inserted),
            ("duplicate", report.duplicates),
            ("failed", report.insert_failed),
        ):
            self.record_counts[result] = self.record_counts.get(result, 0) + count
        for r in report.results:
            self.record_dispatch(r.status)
        self.last_cycle_duration_ms = report.duration_ms

    def record_dispatch(self, status: DispatchStatus) -> None:
        self.dispatch_counts[status.value] = self.dispatch_counts.get(status.value, 0) + 1
        if status is DispatchStatus.AUTO_VERIFY_FAILED:
            self.stranded += 1

    def to_prometheus_lines(self) -> list[str]:
        """Generate Prometheus text format lines."""
        lines: list[str] = [
            f"# HELP {METRIC_CYCLES} Total poll cycles by status",
            f"# TYPE {METRIC_CYCLES} counter",
        ]
        for status in _CYCLE_STATUSES:
            count = self.cycle_counts.get(status, 0)
            lines.append(f'{METRIC_CYCLES}{{{LABEL_STATUS}="{status}"}} {count}')

        for name, help_text, value in (
            (METRIC_EVENTS_FETCHED, "Total events fetched from the ledger", self.events_fetched),
            (METRIC_EVENTS_NEW, "Total events not yet recorded", self.events_new),
            (METRIC_DEDUP_CHECK_ERRORS, "Total failed dedup lookups", self.dedup_check_errors),
            (METRIC_STRANDED, "Total events abandoned after auto-verify failure", self.stranded),
        ):
            lines.extend(
                [
                    f"# HELP {name} {help_text}",
                    f"# TYPE {name} counter",
                    f"{name} {value}",
                ]
            )

        lines.extend(
            [
                f"# HELP {METRIC_RECORDS} Total record inserts by result",
                f"# TYPE {METRIC_RECORDS} counter",
            ]
        )
        for result in _RECORD_RESULTS:
            count = self.record_counts.get(result, 0)
            lines.append(f'{METRIC_RECORDS}{{{LABEL_RESULT}="{result}"}} {count}')

        # Initialize all statuses to 0 for visibility
        lines.extend(
            [
                f"# HELP {METRIC_DISPATCH} Total dispatch outcomes by status",
                f"# TYPE {METRIC_DISPATCH} counter",
            ]
        )
        for dstatus in DispatchStatus:
            count = self.dispatch_counts.get(dstatus.value, 0)
            lines.append(f'{METRIC_DISPATCH}{{{LABEL_STATUS}="{dstatus.value}"}} {count}')

        lines.extend(
            [
                f"# HELP {METRIC_LAST_CYCLE_DURATION} Duration of the last cycle in seconds",
                f"# TYPE {METRIC_LAST_CYCLE_DURATION} gauge",
                f"{METRIC_LAST_CYCLE_DURATION} {self.last_cycle_duration_ms / 1000.0:.3f}",
            ]
        )
        return lines

    def reset(self) -> None:
        """Reset all metrics."""
        self.cycle_counts.clear()
        self.events_fetched = 0
        self.events_new = 0
        self.dedup_check_errors = 0
        self.record_counts.clear()
        self.dispatch_counts.clear()
        self.stranded = 0
        self.last_cycle_duration_ms = 0


# Global singleton
_metrics: PollMetrics | None = None


def get_poll_metrics() -> PollMetrics:
    """Get or create global poll metrics."""
    global _metrics  # noqa: PLW0603
    if _metrics is None:
        _metrics = PollMetrics()
    return _metrics


def reset_poll_metrics() -> None:
    """Reset poll metrics (for testing)."""
    global _metrics  # noqa: PLW0603
    _metrics = None
