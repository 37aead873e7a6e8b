"""Periodic polling loop.

Fires ReconcileEngine.run_cycle at a fixed rate: tick k starts at
``start + k * poll_interval_s`` regardless of how long earlier cycles took.
Each tick runs on its own short-lived daemon thread so the schedule never
waits on a cycle.

Safety guarantees:
- Non-overlap: each tick takes a CycleGuard non-blocking; a tick that
  fires while a cycle overruns finds the guard held and is SKIPPED
- Graceful shutdown via stop()
- Fail-safe: exceptions logged, loop continues
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ordermint.live.cycle_guard import LocalCycleGuard
from ordermint.reconcile.engine import CycleReport, CycleStatus

if TYPE_CHECKING:
    from collections.abc import Callable

    from ordermint.live.cycle_guard import CycleGuard
    from ordermint.reconcile.engine import ReconcileEngine

logger = logging.getLogger(__name__)


@dataclass
class PollLoopStats:
    """Statistics for the poll loop.

    Attributes:
        ticks_total: Ticks that attempted a cycle
        cycles_ok: Cycles that completed
        cycles_aborted: Cycles aborted by a fetch failure
        cycles_skipped: Ticks skipped because the guard was held
        ticks_with_error: Ticks that raised unexpectedly
        last_run_ts_ms: Timestamp of last completed tick (0 if never)
        last_report: Last CycleReport (None if never)
    """

    ticks_total: int = 0
    cycles_ok: int = 0
    cycles_aborted: int = 0
    cycles_skipped: int = 0
    ticks_with_error: int = 0
    last_run_ts_ms: int = 0
    last_report: CycleReport | None = None


class PollLoop:
    """Fixed-period cycle runner.

    Usage:
        loop = PollLoop(engine, poll_interval_s=10)
        loop.start()  # Starts background thread
        ...
        loop.stop()   # Graceful shutdown

    Thread-safety: Safe to call start()/stop()/tick() from any thread.
    """

    def __init__(
        self,
        engine: ReconcileEngine,
        poll_interval_s: float = 10.0,
        *,
        guard: CycleGuard | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        """Initialize poll loop.

        Args:
            engine: ReconcileEngine to run each tick
            poll_interval_s: Seconds between tick starts (fixed rate)
            guard: Non-overlap guard (default: LocalCycleGuard)
            clock: Function returning current time in ms (for testing)
        """
        if poll_interval_s <= 0:
            msg = f"poll_interval_s ({poll_interval_s}) must be > 0"
            raise ValueError(msg)
        self._engine = engine
        self._interval_s = poll_interval_s
        self._guard = guard or LocalCycleGuard()
        self._clock = clock or (lambda: int(time.time() * 1000))

        self._stop_event = threading.Event()
        self._loop_thread: threading.Thread | None = None
        self._workers: list[threading.Thread] = []
        self._workers_lock = threading.Lock()
        self._is_running = False
        self._stats = PollLoopStats()
        self._stats_lock = threading.Lock()

    @property
    def stats(self) -> PollLoopStats:
        """Get current statistics (thread-safe copy)."""
        with self._stats_lock:
            return PollLoopStats(
                ticks_total=self._stats.ticks_total,
                cycles_ok=self._stats.cycles_ok,
                cycles_aborted=self._stats.cycles_aborted,
                cycles_skipped=self._stats.cycles_skipped,
                ticks_with_error=self._stats.ticks_with_error,
                last_run_ts_ms=self._stats.last_run_ts_ms,
                last_report=self._stats.last_report,
            )

    @property
    def is_running(self) -> bool:
        return self._is_running

    def start(self) -> None:
        """Start the loop thread. Idempotent."""
        if self._is_running:
            logger.debug("PollLoop already running")
            return

        self._stop_event.clear()
        self._loop_thread = threading.Thread(
            target=self._poll_loop,
            name="poll-loop",
            daemon=True,
        )
        self._loop_thread.start()
        self._is_running = True
        logger.info("PollLoop started", extra={"poll_interval_s": self._interval_s})

    def stop(self, timeout_s: float = 30.0) -> None:
        """Signal the loop to stop and wait for the in-flight cycle.

        Idempotent: safe to call multiple times.
        """
        if not self._is_running:
            return

        self._stop_event.set()
        deadline = time.monotonic() + timeout_s
        if self._loop_thread:
            self._loop_thread.join(timeout=timeout_s)
            if self._loop_thread.is_alive():
                logger.warning("PollLoop thread did not stop within timeout")

        with self._workers_lock:
            workers = list(self._workers)
            self._workers.clear()
        for worker in workers:
            worker.join(timeout=max(0.0, deadline - time.monotonic()))
            if worker.is_alive():
                logger.warning("In-flight cycle did not finish within timeout")

        self._is_running = False
        logger.info("PollLoop stopped")

    def wait(self, timeout_s: float | None = None) -> bool:
        """Block until stop() is requested; True if it was."""
        return self._stop_event.wait(timeout=timeout_s)

    def request_stop(self) -> None:
        """Ask the loop to exit after the current cycle (signal-handler safe)."""
        self._stop_event.set()

    def _poll_loop(self) -> None:
        logger.debug("Poll loop thread started", extra={"poll_interval_s": self._interval_s})

        next_tick = time.monotonic()
        while not self._stop_event.is_set():
            self._launch_tick()
            next_tick += self._interval_s
            self._stop_event.wait(timeout=max(0.0, next_tick - time.monotonic()))

        logger.debug("Poll loop thread exiting")

    def _launch_tick(self) -> None:
        worker = threading.Thread(target=self._run_tick, name="poll-tick", daemon=True)
        with self._workers_lock:
            self._workers = [w for w in self._workers if w.is_alive()]
            self._workers.append(worker)
            worker.start()

    def _run_tick(self) -> None:
        try:
            self.tick()
        except Exception:
            logger.exception("Error in poll loop")
            with self._stats_lock:
                self._stats.ticks_with_error += 1

    def tick(self) -> CycleReport:
        """Run one guarded cycle, or report SKIPPED if one is in progress."""
        with self._stats_lock:
            self._stats.ticks_total += 1

        if not self._guard.try_acquire():
            ts = self._clock()
            report = CycleReport.skipped(cycle_id=f"{ts}_skipped", ts=ts)
            logger.info("CYCLE_SKIPPED", extra={"reason": "cycle_in_progress"})
            if self._engine.metrics is not None:
                self._engine.metrics.record_cycle(report)
            self._record(report)
            return report

        try:
            report = self._engine.run_cycle()
        finally:
            self._guard.release()

        self._record(report)
        return report

    def _record(self, report: CycleReport) -> None:
        with self._stats_lock:
            self._stats.last_run_ts_ms = self._clock()
            self._stats.last_report = report
            if report.status is CycleStatus.OK:
                self._stats.cycles_ok += 1
            elif report.status is CycleStatus.ABORTED:
                self._stats.cycles_aborted += 1
            else:
                self._stats.cycles_skipped += 1
