"""Event and record types.

TradeEvent is the normalized, immutable form of one order-creation event.
ProcessedRecord is the row persisted once per DedupKey; amounts are stored
as their original unscaled integer strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ordermint.core import EventKind


@dataclass(frozen=True)
class DedupKey:
    """Idempotency boundary for one logical event.

    Attributes:
        identity: Trader address, lower-cased
        kind: Event kind
        sequence_number: Canonical decimal string of the per-handle sequence
    """

    identity: str
    kind: EventKind
    sequence_number: str

    @classmethod
    def of(cls, identity: str, kind: EventKind, sequence_number: str | int) -> DedupKey:
        """Build a key in canonical form (two fetches of one event compare equal)."""
        return cls(
            identity=identity.strip().lower(),
            kind=kind,
            sequence_number=str(int(str(sequence_number).strip())),
        )

    def __str__(self) -> str:
        return f"{self.identity}:{self.kind.value}:{self.sequence_number}"


@dataclass(frozen=True)
class TradeEvent:
    """One buy/sell order-creation event.

    Attributes:
        sequence_number: Per-handle sequence number (string, unbounded width)
        kind: BUY or SELL
        identity: Trader address as emitted
        ticker: Decoded symbol (falls back to raw_ticker when undecodable)
        raw_ticker: Ticker exactly as delivered by the ledger
        usdc_amount: Quote amount, unscaled (6 decimals)
        asset_amount: Asset amount, unscaled (18 decimals)
        price: Oracle price, unscaled (18 decimals)
        ledger_version: Ledger version of the emitting transaction
        occurred_at: Oracle timestamp in seconds, if present
    """

    sequence_number: str
    kind: EventKind
    identity: str
    ticker: str
    raw_ticker: str
    usdc_amount: int
    asset_amount: int
    price: int
    ledger_version: str
    occurred_at: int | None = None

    @property
    def dedup_key(self) -> DedupKey:
        return DedupKey.of(self.identity, self.kind, self.sequence_number)

    def to_log_extra(self) -> dict[str, Any]:
        return {
            "identity": self.identity,
            "kind": self.kind.value,
            "sequence_number": self.sequence_number,
            "ticker": self.ticker,
        }


@dataclass(frozen=True)
class ProcessedRecord:
    """Persisted mirror of a TradeEvent plus processing metadata.

    Never mutated or deleted once written.
    """

    identity: str
    event_type: str
    sequence_number: str
    ledger_version: str
    ticker: str
    usdc_amount: str
    asset_amount: str
    price: str
    occurred_at: int | None
    processed_at_ms: int

    @classmethod
    def from_event(cls, event: TradeEvent, processed_at_ms: int) -> ProcessedRecord:
        key = event.dedup_key
        return cls(
            identity=key.identity,
            event_type=key.kind.value,
            sequence_number=key.sequence_number,
            ledger_version=event.ledger_version,
            ticker=event.ticker,
            usdc_amount=str(event.usdc_amount),
            asset_amount=str(event.asset_amount),
            price=str(event.price),
            occurred_at=event.occurred_at,
            processed_at_ms=processed_at_ms,
        )

    @property
    def dedup_key(self) -> DedupKey:
        return DedupKey.of(self.identity, EventKind(self.event_type), self.sequence_number)

    def to_event(self) -> TradeEvent:
        """Rebuild the TradeEvent this record was written from."""
        return TradeEvent(
            sequence_number=self.sequence_number,
            kind=EventKind(self.event_type),
            identity=self.identity,
            ticker=self.ticker,
            raw_ticker=self.ticker,
            usdc_amount=int(self.usdc_amount),
            asset_amount=int(self.asset_amount),
            price=int(self.price),
            ledger_version=self.ledger_version,
            occurred_at=self.occurred_at,
        )
