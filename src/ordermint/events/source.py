"""Event source: pages of order-creation events from the ledger REST API.

Endpoint:
    GET {node}/accounts/{events_account}/events/{orders_module}::orders::OrderEvents/{field}?limit=N

Without a ``start`` parameter the node returns the most recent ``limit``
events of the handle. The page is a trailing window, not a cursor, so
consecutive cycles overlap and the dedup filter drops what was already
recorded. Returned events are pinned to chronological order (ascending
sequence number) by ``normalize_page``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from ordermint.errors import TransportError
from ordermint.events.normalize import normalize_page
from ordermint.net.http_client import raise_for_status
from ordermint.net.retry_policy import OP_FETCH_EVENTS, OP_LEDGER_INFO, REASON_DECODE

if TYPE_CHECKING:
    from ordermint.core import EventKind
    from ordermint.events.types import TradeEvent
    from ordermint.net.http_client import HttpClient

logger = logging.getLogger(__name__)


class EventSource(Protocol):
    """Anything that can return a page of TradeEvents for one kind."""

    def fetch(self, kind: EventKind, limit: int) -> list[TradeEvent]:
        """Return up to ``limit`` recent events, chronological.

        Raises:
            TransportError: node unreachable or non-2xx response
        """
        ...


@dataclass
class LedgerEventSource:
    """EventSource backed by the fullnode events-by-handle endpoint.

    Attributes:
        http_client: Injectable HttpClient
        node_url: REST base URL (e.g. https://fullnode.testnet.aptoslabs.com/v1)
        events_account: Account that holds the OrderEvents resource
        orders_module_address: Address that published the ``orders`` module
        timeout_ms: Per-request timeout
    """

    http_client: HttpClient
    node_url: str
    events_account: str
    orders_module_address: str
    timeout_ms: int = 5000

    def events_url(self, kind: EventKind) -> str:
        handle = f"{self.orders_module_address}::orders::OrderEvents"
        base = self.node_url.rstrip("/")
        return f"{base}/accounts/{self.events_account}/events/{handle}/{kind.handle_field}"

    def fetch(self, kind: EventKind, limit: int) -> list[TradeEvent]:
        response = self.http_client.request(
            "GET",
            self.events_url(kind),
            params={"limit": limit},
            timeout_ms=self.timeout_ms,
            op=OP_FETCH_EVENTS,
        )
        raise_for_status(OP_FETCH_EVENTS, response)

        if not isinstance(response.json_data, list):
            raise TransportError(
                OP_FETCH_EVENTS,
                REASON_DECODE,
                response.status_code,
                f"expected a JSON list of events, got {type(response.json_data).__name__}",
            )

        events = normalize_page(response.json_data, kind)
        logger.debug(
            "EVENTS_FETCHED",
            extra={"kind": kind.value, "received": len(response.json_data), "valid": len(events)},
        )
        return events

    def ping(self) -> int:
        """Fetch ledger info; returns the current ledger version.

        Raises:
            TransportError: node unreachable or non-2xx response
        """
        response = self.http_client.request(
            "GET",
            self.node_url.rstrip("/") + "/",
            timeout_ms=self.timeout_ms,
            op=OP_LEDGER_INFO,
        )
        raise_for_status(OP_LEDGER_INFO, response)
        body = response.json_data if isinstance(response.json_data, dict) else {}
        try:
            return int(body.get("ledger_version", 0))
        except (TypeError, ValueError):
            return 0
