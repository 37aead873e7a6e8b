"""Ledger event ingestion: raw event pages → normalized TradeEvents."""

from ordermint.events.normalize import decode_ticker, format_fixed_point, normalize_event
from ordermint.events.source import EventSource, LedgerEventSource
from ordermint.events.types import DedupKey, ProcessedRecord, TradeEvent

__all__ = [
    "DedupKey",
    "EventSource",
    "LedgerEventSource",
    "ProcessedRecord",
    "TradeEvent",
    "decode_ticker",
    "format_fixed_point",
    "normalize_event",
]
