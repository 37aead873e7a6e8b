"""Raw ledger event → TradeEvent normalization.

Ticker decoding:
- ``0x``-prefixed hex string → bytes → text, trailing NUL bytes stripped
- bytes / bytearray / list of byte values (Move ``vector<u8>``) → text
- any other string is taken as already decoded
- anything undecodable (odd-length or invalid hex, non-UTF-8, non-printable,
  empty after stripping) falls back to the raw representation; a bad ticker
  never fails the event

Fixed-point amounts are arbitrary-precision integers. ``format_fixed_point``
renders them for logs with integer divmod only. Persisted amounts stay in
their unscaled form.
"""

from __future__ import annotations

import logging
from typing import Any

from ordermint.core import EventKind
from ordermint.errors import EventFormatError
from ordermint.events.types import TradeEvent

logger = logging.getLogger(__name__)

USDC_DECIMALS = 6
ASSET_DECIMALS = 18
PRICE_DECIMALS = 18


def _raw_repr(raw: Any) -> str:
    if isinstance(raw, (bytes, bytearray)):
        return "0x" + bytes(raw).hex()
    if isinstance(raw, list):
        try:
            return "0x" + bytes(raw).hex()
        except (TypeError, ValueError):
            return str(raw)
    return str(raw)


def _to_bytes(raw: Any) -> bytes | None:
    """Byte form of a ticker payload, or None when it is plain text."""
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw)
    if isinstance(raw, list):
        return bytes(raw)
    if isinstance(raw, str) and raw[:2].lower() == "0x":
        return bytes.fromhex(raw[2:])
    return None


def decode_ticker(raw: Any) -> str:
    """Decode a ledger ticker into a printable symbol.

    Falls back to the raw representation instead of raising.
    """
    fallback = _raw_repr(raw)
    try:
        data = _to_bytes(raw)
        text = str(raw) if data is None else data.rstrip(b"\x00").decode("utf-8")
    except (TypeError, ValueError) as e:
        logger.warning("TICKER_DECODE_FALLBACK", extra={"raw_ticker": fallback, "error": str(e)})
        return fallback

    text = text.rstrip("\x00")
    if not text or not text.isprintable():
        logger.warning(
            "TICKER_DECODE_FALLBACK",
            extra={"raw_ticker": fallback, "error": "empty or non-printable"},
        )
        return fallback
    return text


def format_fixed_point(value: int, decimals: int) -> str:
    """Render an unscaled integer as a decimal string (logs only).

    >>> format_fixed_point(1_500_000, 6)
    '1.5'
    >>> format_fixed_point(-25, 2)
    '-0.25'
    """
    if decimals < 0:
        raise ValueError("decimals must be >= 0")
    sign = "-" if value < 0 else ""
    whole, frac = divmod(abs(value), 10**decimals)
    if decimals == 0 or frac == 0:
        return f"{sign}{whole}"
    frac_str = str(frac).rjust(decimals, "0").rstrip("0")
    return f"{sign}{whole}.{frac_str}"


def _parse_uint(data: dict[str, Any], name: str) -> int:
    value = data.get(name)
    if value is None:
        raise EventFormatError(f"missing field {name!r}")
    if isinstance(value, bool):
        raise EventFormatError(f"field {name!r} is not an integer: {value!r}")
    try:
        result = int(str(value).strip())
    except ValueError as e:
        raise EventFormatError(f"field {name!r} is not an integer: {value!r}") from e
    if result < 0:
        raise EventFormatError(f"field {name!r} is negative: {value!r}")
    return result


def normalize_event(raw: dict[str, Any], kind: EventKind) -> TradeEvent:
    """Convert one raw events-API entry into a TradeEvent.

    Raises:
        EventFormatError: required field missing or amount unparseable.
    """
    data = raw.get("data")
    if not isinstance(data, dict):
        raise EventFormatError("event has no data object")

    user = data.get("user")
    if not isinstance(user, str) or not user.strip():
        raise EventFormatError("missing field 'user'")

    sequence_number = str(_parse_uint(raw, "sequence_number"))
    raw_ticker = data.get("ticker", "")
    occurred_at = _parse_uint(data, "oracle_ts") if data.get("oracle_ts") is not None else None

    return TradeEvent(
        sequence_number=sequence_number,
        kind=kind,
        identity=user.strip(),
        ticker=decode_ticker(raw_ticker),
        raw_ticker=_raw_repr(raw_ticker),
        usdc_amount=_parse_uint(data, "usdc_amount"),
        asset_amount=_parse_uint(data, "asset_amount"),
        price=_parse_uint(data, "price"),
        ledger_version=str(raw.get("version", "")),
        occurred_at=occurred_at,
    )


def normalize_page(raw_events: list[Any], kind: EventKind) -> list[TradeEvent]:
    """Normalize a page of raw events, skipping malformed entries.

    Output is chronological: ascending by sequence number regardless of the
    order the node returned.
    """
    events: list[TradeEvent] = []
    for raw in raw_events:
        if not isinstance(raw, dict):
            logger.warning("EVENT_MALFORMED", extra={"kind": kind.value, "error": "not an object"})
            continue
        try:
            events.append(normalize_event(raw, kind))
        except EventFormatError as e:
            logger.warning(
                "EVENT_MALFORMED",
                extra={
                    "kind": kind.value,
                    "sequence_number": raw.get("sequence_number"),
                    "error": str(e),
                },
            )
    events.sort(key=lambda e: int(e.sequence_number))
    return events


def display_amounts(event: TradeEvent) -> dict[str, str]:
    """Human-scale amounts for log lines."""
    return {
        "usdc": format_fixed_point(event.usdc_amount, USDC_DECIMALS),
        "asset": format_fixed_point(event.asset_amount, ASSET_DECIMALS),
        "price": format_fixed_point(event.price, PRICE_DECIMALS),
    }
