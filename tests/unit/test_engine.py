"""Tests for ordermint.reconcile.engine.ReconcileEngine."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from ordermint.core import DispatchStatus, EventKind, TokenClass
from ordermint.errors import DedupCheckError, RecordNotFoundError, TransportError
from ordermint.events.types import DedupKey, ProcessedRecord
from ordermint.reconcile.audit import AuditConfig, AuditWriter
from ordermint.reconcile.dispatch import MintBurnDispatcher
from ordermint.reconcile.engine import CycleReport, CycleStatus, ReconcileEngine
from ordermint.reconcile.metrics import PollMetrics
from ordermint.store import InMemoryOrderStore, InsertResult

EventFactory = Callable[..., Any]


class Ticker:
    """Clock advancing 10ms per call."""

    def __init__(self, start: int = 1_000) -> None:
        self.now = start

    def __call__(self) -> int:
        self.now += 10
        return self.now


@pytest.fixture
def store() -> InMemoryOrderStore:
    return InMemoryOrderStore()


@pytest.fixture
def engine(
    fake_source: Any, store: InMemoryOrderStore, fake_gate: Any, fake_mutator: Any
) -> ReconcileEngine:
    return ReconcileEngine(
        source=fake_source,
        store=store,
        dispatcher=MintBurnDispatcher(gate=fake_gate, mutator=fake_mutator),
        page_size=3,
        metrics=PollMetrics(),
        _clock=Ticker(),
    )


class TestRunCycle:
    def test_fetches_both_kinds_with_page_size(
        self, engine: ReconcileEngine, fake_source: Any
    ) -> None:
        engine.run_cycle()
        assert fake_source.calls == [(EventKind.BUY, 3), (EventKind.SELL, 3)]

    def test_full_cycle(
        self,
        engine: ReconcileEngine,
        fake_source: Any,
        store: InMemoryOrderStore,
        fake_mutator: Any,
        make_event: EventFactory,
    ) -> None:
        fake_source.pages[EventKind.BUY] = [make_event(1), make_event(2)]
        fake_source.pages[EventKind.SELL] = [make_event(1, kind=EventKind.SELL, ticker="GOLD")]

        report = engine.run_cycle()

        assert report.status is CycleStatus.OK
        assert report.fetched == 3
        assert report.new == 3
        assert report.inserted == 3
        assert report.count(DispatchStatus.MINTED) == 2
        assert report.count(DispatchStatus.UNSUPPORTED_TICKER) == 1
        assert store.count() == 3
        assert len(fake_mutator.mints) == 2
        assert fake_mutator.burns == []

    def test_second_cycle_is_idempotent(
        self,
        engine: ReconcileEngine,
        fake_source: Any,
        fake_gate: Any,
        fake_mutator: Any,
        make_event: EventFactory,
    ) -> None:
        fake_source.pages[EventKind.BUY] = [make_event(1)]
        engine.run_cycle()
        report = engine.run_cycle()

        assert report.new == 0
        assert report.already_processed == 1
        assert report.inserted == 0
        assert report.results == ()
        assert len(fake_mutator.mints) == 1
        assert len(fake_gate.set_verified_calls) == 1

    def test_fetch_failure_aborts(
        self,
        engine: ReconcileEngine,
        fake_source: Any,
        store: InMemoryOrderStore,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        fake_source.error = TransportError("fetch_events", "5xx", 503)

        with caplog.at_level(logging.ERROR):
            report = engine.run_cycle()

        assert report.status is CycleStatus.ABORTED
        assert report.error is not None
        assert report.error.startswith("TransportError:")
        assert store.count() == 0
        assert "CYCLE_ABORTED" in caplog.messages
        assert engine.metrics is not None
        assert engine.metrics.cycle_counts == {"aborted": 1}

    def test_dedup_failure_backstopped_by_insert(
        self,
        fake_source: Any,
        fake_gate: Any,
        fake_mutator: Any,
        make_event: EventFactory,
    ) -> None:
        class BlindStore(InMemoryOrderStore):
            def exists(self, identity: str, kind: EventKind, sequence_number: str) -> bool:
                raise DedupCheckError("db locked")

        engine = ReconcileEngine(
            source=fake_source,
            store=BlindStore(),
            dispatcher=MintBurnDispatcher(gate=fake_gate, mutator=fake_mutator),
        )
        fake_source.pages[EventKind.BUY] = [make_event(1)]
        engine.run_cycle()
        report = engine.run_cycle()

        assert report.dedup_check_errors == 1
        assert report.new == 1
        assert report.duplicates == 1
        assert report.inserted == 0
        assert len(fake_mutator.mints) == 1

    def test_failed_insert_not_dispatched_and_retried_next_cycle(
        self,
        fake_source: Any,
        fake_gate: Any,
        fake_mutator: Any,
        make_event: EventFactory,
    ) -> None:
        class FlakyStore(InMemoryOrderStore):
            failures_left = 1

            def insert(self, record: ProcessedRecord) -> InsertResult:
                if self.failures_left:
                    self.failures_left -= 1
                    return InsertResult.FAILED
                return super().insert(record)

        store = FlakyStore()
        engine = ReconcileEngine(
            source=fake_source,
            store=store,
            dispatcher=MintBurnDispatcher(gate=fake_gate, mutator=fake_mutator),
        )
        fake_source.pages[EventKind.BUY] = [make_event(1)]

        first = engine.run_cycle()
        assert first.insert_failed == 1
        assert first.results == ()
        assert fake_mutator.mints == []
        assert store.count() == 0

        second = engine.run_cycle()
        assert second.new == 1
        assert second.inserted == 1
        assert [r.status for r in second.results] == [DispatchStatus.MINTED]
        assert len(fake_mutator.mints) == 1

    def test_cycle_ids_are_unique(self, engine: ReconcileEngine) -> None:
        ids = {engine.run_cycle().cycle_id for _ in range(3)}
        assert len(ids) == 3

    def test_metrics_fed_from_report(
        self, engine: ReconcileEngine, fake_source: Any, make_event: EventFactory
    ) -> None:
        fake_source.pages[EventKind.SELL] = [make_event(5, kind=EventKind.SELL)]
        engine.run_cycle()

        assert engine.metrics is not None
        assert engine.metrics.dispatch_counts == {"burned": 1}
        assert engine.metrics.record_counts["inserted"] == 1

    def test_audit_written(
        self,
        fake_source: Any,
        store: InMemoryOrderStore,
        fake_gate: Any,
        fake_mutator: Any,
        make_event: EventFactory,
        tmp_path: Path,
    ) -> None:
        path = tmp_path / "audit.jsonl"
        writer = AuditWriter(AuditConfig(enabled=True, path=str(path)))
        engine = ReconcileEngine(
            source=fake_source,
            store=store,
            dispatcher=MintBurnDispatcher(gate=fake_gate, mutator=fake_mutator),
            audit_writer=writer,
            mode="live",
        )
        fake_source.pages[EventKind.BUY] = [make_event(1)]
        engine.run_cycle()
        writer.close()

        lines = [json.loads(line) for line in path.read_text().splitlines()]
        assert [line["event_type"] for line in lines] == ["CYCLE_RUN", "DISPATCH_RESULT"]
        assert all(line["mode"] == "live" for line in lines)


class TestCycleReport:
    def test_skipped(self) -> None:
        report = CycleReport.skipped("5_skipped", 5)
        assert report.status is CycleStatus.SKIPPED
        assert report.duration_ms == 0
        assert report.to_log_extra()["cycle_status"] == "skipped"

    def test_to_dict(
        self, engine: ReconcileEngine, fake_source: Any, make_event: EventFactory
    ) -> None:
        fake_source.pages[EventKind.BUY] = [make_event(1)]
        d = engine.run_cycle().to_dict()

        assert d["cycle_status"] == "ok"
        assert d["minted"] == 1
        assert d["auto_verify_failed"] == 0
        assert d["results"][0]["status"] == "minted"
        assert d["ts_end"] > d["ts_start"]
        assert "error" not in d

    def test_stranded(
        self,
        engine: ReconcileEngine,
        fake_source: Any,
        fake_gate: Any,
        make_event: EventFactory,
    ) -> None:
        fake_gate.set_verified_success = False
        fake_source.pages[EventKind.BUY] = [make_event(1), make_event(2)]
        assert engine.run_cycle().stranded == 2


class TestReplay:
    def test_redispatches_recorded_event(
        self,
        engine: ReconcileEngine,
        fake_source: Any,
        fake_gate: Any,
        fake_mutator: Any,
        store: InMemoryOrderStore,
        make_event: EventFactory,
    ) -> None:
        fake_gate.set_verified_success = False
        fake_source.pages[EventKind.BUY] = [make_event(1)]
        first = engine.run_cycle()
        assert first.stranded == 1

        fake_gate.set_verified_success = True
        result = engine.replay(DedupKey.of("0xA11CE", EventKind.BUY, "1"))

        assert result.status is DispatchStatus.MINTED
        assert fake_mutator.mints == [("0xa11ce", TokenClass.AAPL, 10**16)]
        assert store.count() == 1
        assert engine.metrics is not None
        assert engine.metrics.dispatch_counts["minted"] == 1

    def test_unknown_key(self, engine: ReconcileEngine) -> None:
        with pytest.raises(RecordNotFoundError) as exc_info:
            engine.replay(DedupKey.of("0xa11ce", EventKind.SELL, 9))
        assert exc_info.value.key == "0xa11ce:SellOrderCreated:9"
