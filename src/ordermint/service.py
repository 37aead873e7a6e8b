"""Component wiring: ServiceConfig → ready-to-run collaborators.

Every collaborator can be passed in pre-built (tests, scripts); anything
omitted is constructed from the config.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ordermint.events.source import LedgerEventSource
from ordermint.ledger.gate import LedgerVerificationGate
from ordermint.ledger.mutator import TokenMutator
from ordermint.ledger.submitter import DryRunSubmitter
from ordermint.live.cycle_guard import LocalCycleGuard, RedisCycleGuard
from ordermint.live.poll_loop import PollLoop
from ordermint.net.http_client import HttpxClient, RetryingHttpClient
from ordermint.net.retry_policy import DeadlinePolicy, HttpRetryPolicy
from ordermint.reconcile.audit import AuditConfig, AuditWriter
from ordermint.reconcile.dispatch import MintBurnDispatcher
from ordermint.reconcile.engine import ReconcileEngine
from ordermint.reconcile.metrics import get_poll_metrics
from ordermint.store.sqlite import SqliteOrderStore

if TYPE_CHECKING:
    from ordermint.config import ServiceConfig
    from ordermint.ledger.gate import VerificationGate
    from ordermint.ledger.submitter import TransactionSubmitter
    from ordermint.live.cycle_guard import CycleGuard
    from ordermint.net.http_client import HttpClient
    from ordermint.reconcile.metrics import PollMetrics
    from ordermint.store.base import OrderStore

logger = logging.getLogger(__name__)


@dataclass
class Service:
    """Wired collaborators for one process."""

    config: ServiceConfig
    http_client: HttpClient
    source: LedgerEventSource
    store: OrderStore
    gate: VerificationGate
    engine: ReconcileEngine
    guard: CycleGuard
    audit_writer: AuditWriter | None = None

    def poll_loop(self) -> PollLoop:
        return PollLoop(self.engine, float(self.config.poll_interval_s), guard=self.guard)

    def close(self) -> None:
        if self.audit_writer is not None:
            self.audit_writer.close()
        for resource in (self.store, self.http_client, self.guard):
            close = getattr(resource, "close", None)
            if close is not None:
                close()


def build_submitter(config: ServiceConfig) -> TransactionSubmitter:
    if config.dry_run:
        return DryRunSubmitter()
    from ordermint.ledger.aptos_submitter import AptosSdkSubmitter  # noqa: PLC0415

    return AptosSdkSubmitter(config.node_url)


def build_http_client(config: ServiceConfig) -> HttpClient:
    return RetryingHttpClient(
        inner=HttpxClient(),
        deadline_policy=DeadlinePolicy.uniform(config.http_timeout_ms),
        retry_policy=HttpRetryPolicy(max_attempts=config.http_max_attempts),
    )


def build_service(
    config: ServiceConfig,
    *,
    http_client: HttpClient | None = None,
    submitter: TransactionSubmitter | None = None,
    store: OrderStore | None = None,
    guard: CycleGuard | None = None,
    metrics: PollMetrics | None = None,
) -> Service:
    """Assemble a Service.

    Raises:
        ConfigError: live mode without a usable signing key, or a malformed redis_url
        PersistenceError: the SQLite store cannot be opened at db_path
    """
    http = http_client or build_http_client(config)
    sub = submitter or build_submitter(config)

    source = LedgerEventSource(
        http_client=http,
        node_url=config.node_url,
        events_account=config.events_account,
        orders_module_address=config.orders_module_address,
        timeout_ms=config.http_timeout_ms,
    )
    gate = LedgerVerificationGate(
        http_client=http,
        submitter=sub,
        node_url=config.node_url,
        module_id=config.token_module_id,
        timeout_ms=config.http_timeout_ms,
    )
    mutator = TokenMutator(submitter=sub, module_id=config.token_module_id)

    audit_writer = None
    if config.audit_path:
        audit_writer = AuditWriter(AuditConfig(enabled=True, path=config.audit_path))

    if guard is None:
        if config.redis_url:
            guard = RedisCycleGuard.from_url(config.redis_url)
        else:
            guard = LocalCycleGuard()

    order_store = store if store is not None else SqliteOrderStore(config.db_path)
    engine = ReconcileEngine(
        source=source,
        store=order_store,
        dispatcher=MintBurnDispatcher(gate=gate, mutator=mutator),
        page_size=config.page_size,
        metrics=metrics if metrics is not None else get_poll_metrics(),
        audit_writer=audit_writer,
        mode="dry_run" if config.dry_run else "live",
    )

    logger.info("SERVICE_CONFIGURED", extra=config.to_log_extra())
    return Service(
        config=config,
        http_client=http,
        source=source,
        store=order_store,
        gate=gate,
        engine=engine,
        guard=guard,
        audit_writer=audit_writer,
    )
