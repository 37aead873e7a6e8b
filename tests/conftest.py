"""Pytest configuration and fixtures.

Fakes are exposed through fixtures so test modules never import this file.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import pytest

from ordermint.core import EventKind, TokenClass
from ordermint.events.types import TradeEvent
from ordermint.ledger.types import MutationOutcome
from ordermint.net.http_client import HttpResponse
from ordermint.reconcile.metrics import reset_poll_metrics

# Ticker payloads as the ledger emits them (hex-encoded vector<u8>)
TICKER_HEX = {
    "AAPL": "0x4141504c",
    "TSLA": "0x54534c41",
    "LQD": "0x4c5144",
    "GOLD": "0x474f4c44",
}


@dataclass
class FakeGate:
    """VerificationGate double with call recording."""

    verified: set[str] = field(default_factory=set)
    set_verified_success: bool = True
    set_verified_error: str = "E_NOT_ADMIN"
    check_error: Exception | None = None
    set_error: Exception | None = None
    is_verified_calls: list[str] = field(default_factory=list)
    set_verified_calls: list[tuple[str, bool]] = field(default_factory=list)

    def is_verified(self, identity: str) -> bool:
        self.is_verified_calls.append(identity)
        if self.check_error is not None:
            raise self.check_error
        return identity.lower() in self.verified

    def set_verified(self, identity: str, verified: bool) -> MutationOutcome:
        self.set_verified_calls.append((identity, verified))
        if self.set_error is not None:
            raise self.set_error
        if not self.set_verified_success:
            return MutationOutcome.failed(self.set_verified_error, tx_hash="0xverifyfail")
        if verified:
            self.verified.add(identity.lower())
        return MutationOutcome(tx_hash="0xverify", success=True, gas_used="7")


@dataclass
class FakeMutator:
    """LedgerMutator double with call recording."""

    success: bool = True
    error: Exception | None = None
    mints: list[tuple[str, TokenClass, int]] = field(default_factory=list)
    burns: list[tuple[str, TokenClass, int]] = field(default_factory=list)

    def _outcome(self, op: str) -> MutationOutcome:
        if self.error is not None:
            raise self.error
        if not self.success:
            return MutationOutcome.failed("E_INSUFFICIENT_BALANCE", tx_hash=f"0x{op}fail")
        return MutationOutcome(tx_hash=f"0x{op}", success=True, gas_used="11")

    def mint(self, identity: str, token: TokenClass, amount: int) -> MutationOutcome:
        self.mints.append((identity, token, amount))
        return self._outcome("mint")

    def burn(self, identity: str, token: TokenClass, amount: int) -> MutationOutcome:
        self.burns.append((identity, token, amount))
        return self._outcome("burn")


@dataclass
class StaticEventSource:
    """EventSource double returning fixed pages per kind."""

    pages: dict[EventKind, list[TradeEvent]] = field(default_factory=dict)
    error: Exception | None = None
    calls: list[tuple[EventKind, int]] = field(default_factory=list)

    def fetch(self, kind: EventKind, limit: int) -> list[TradeEvent]:
        self.calls.append((kind, limit))
        if self.error is not None:
            raise self.error
        return list(self.pages.get(kind, []))[:limit]


Route = HttpResponse | Exception | Callable[[dict[str, Any]], HttpResponse]


@dataclass
class FakeHttpClient:
    """HttpClient double: routes keyed by (method, url)."""

    routes: dict[tuple[str, str], Route] = field(default_factory=dict)
    requests: list[dict[str, Any]] = field(default_factory=list)

    def request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        timeout_ms: int = 5000,
        op: str = "",
    ) -> HttpResponse:
        req = {
            "method": method,
            "url": url,
            "params": params,
            "json_body": json_body,
            "timeout_ms": timeout_ms,
            "op": op,
        }
        self.requests.append(req)
        route = self.routes.get((method, url))
        if route is None:
            return HttpResponse(status_code=404, json_data={"message": "not found"})
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(req)
        return route


@pytest.fixture(autouse=True)
def _reset_poll_metrics() -> None:
    reset_poll_metrics()


@pytest.fixture
def fake_gate() -> FakeGate:
    return FakeGate()


@pytest.fixture
def fake_mutator() -> FakeMutator:
    return FakeMutator()


@pytest.fixture
def fake_source() -> StaticEventSource:
    return StaticEventSource()


@pytest.fixture
def fake_http() -> FakeHttpClient:
    return FakeHttpClient()


@pytest.fixture
def make_raw_event() -> Callable[..., dict[str, Any]]:
    """Build one events-API entry the way the node returns it."""

    def _make(
        seq: int | str,
        user: str = "0xA11CE",
        ticker: str = "AAPL",
        usdc_amount: str = "1500000",
        asset_amount: str = "10000000000000000",
        price: str = "150000000000000000000",
        version: str = "5001",
        oracle_ts: str = "1700000000",
    ) -> dict[str, Any]:
        return {
            "version": version,
            "guid": {"creation_number": "4", "account_address": "0xc50c"},
            "sequence_number": str(seq),
            "type": "0xf21c::orders::BuyOrderCreated",
            "data": {
                "asset_amount": asset_amount,
                "oracle_ts": oracle_ts,
                "price": price,
                "ticker": TICKER_HEX.get(ticker, ticker),
                "usdc_amount": usdc_amount,
                "user": user,
            },
        }

    return _make


@pytest.fixture
def make_event() -> Callable[..., TradeEvent]:
    """Build a normalized TradeEvent."""

    def _make(
        seq: int | str,
        kind: EventKind = EventKind.BUY,
        identity: str = "0xA11CE",
        ticker: str = "AAPL",
        asset_amount: int = 10_000_000_000_000_000,
    ) -> TradeEvent:
        return TradeEvent(
            sequence_number=str(seq),
            kind=kind,
            identity=identity,
            ticker=ticker,
            raw_ticker=TICKER_HEX.get(ticker, ticker),
            usdc_amount=1_500_000,
            asset_amount=asset_amount,
            price=150 * 10**18,
            ledger_version="5001",
            occurred_at=1_700_000_000,
        )

    return _make
