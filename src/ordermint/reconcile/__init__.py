"""Reconciliation: one polling cycle from fetch to mint/burn.

Flow: fetch → filter_new → persist_new → MintBurnDispatcher, summarized in
a CycleReport. PollMetrics and AuditWriter consume reports.
"""

from ordermint.reconcile.audit import AuditConfig, AuditEvent, AuditEventType, AuditWriter
from ordermint.reconcile.dedup import FilterResult, filter_new
from ordermint.reconcile.dispatch import DispatchResult, MintBurnDispatcher
from ordermint.reconcile.engine import CycleReport, CycleStatus, ReconcileEngine
from ordermint.reconcile.metrics import PollMetrics, get_poll_metrics, reset_poll_metrics
from ordermint.reconcile.persist import PersistResult, persist_new

__all__ = [
    "AuditConfig",
    "AuditEvent",
    "AuditEventType",
    "AuditWriter",
    "CycleReport",
    "CycleStatus",
    "DispatchResult",
    "FilterResult",
    "MintBurnDispatcher",
    "PersistResult",
    "PollMetrics",
    "ReconcileEngine",
    "filter_new",
    "get_poll_metrics",
    "persist_new",
    "reset_poll_metrics",
]
