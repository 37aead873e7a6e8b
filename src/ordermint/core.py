"""Core types and enums for ORDERMINT."""

from __future__ import annotations

from enum import Enum

from ordermint.errors import UnsupportedTokenError


class EventKind(Enum):
    """Order-creation event kinds emitted by the orders contract.

    Values are the event type names persisted with every record.
    DO NOT rename: they are part of the dedup key.
    """

    BUY = "BuyOrderCreated"
    SELL = "SellOrderCreated"

    @property
    def handle_field(self) -> str:
        """Field name of the event handle on the OrderEvents resource."""
        if self is EventKind.BUY:
            return "buy_order_events"
        return "sell_order_events"

    @classmethod
    def parse(cls, raw: str) -> EventKind:
        """Parse "buy"/"sell" or a persisted event type name."""
        v = raw.strip()
        for kind in cls:
            if v == kind.value or v.upper() == kind.name:
                return kind
        raise ValueError(f"unknown event kind: {raw!r}")


class TokenClass(Enum):
    """Closed set of mintable/burnable tokens.

    The value is the Move struct name used as the type argument.
    """

    USD = "USD"
    USDC = "USDC"
    LQD = "LQD"
    TSLA = "TSLA"
    AAPL = "AAPL"


class DispatchStatus(Enum):
    """Terminal outcome of dispatching one event in one cycle."""

    MINTED = "minted"
    BURNED = "burned"
    MUTATION_FAILED = "mutation_failed"
    AUTO_VERIFY_FAILED = "auto_verify_failed"
    UNSUPPORTED_TICKER = "unsupported_ticker"


# Exhaustive lookup. Adding a TokenClass member requires adding it here;
# test_core asserts both sides stay in sync.
_TICKER_TO_TOKEN: dict[str, TokenClass] = {
    "USD": TokenClass.USD,
    "USDC": TokenClass.USDC,
    "LQD": TokenClass.LQD,
    "TSLA": TokenClass.TSLA,
    "AAPL": TokenClass.AAPL,
}


def token_class_for_ticker(ticker: str) -> TokenClass:
    """Map a normalized ticker to its TokenClass (exact, case-insensitive).

    Raises:
        UnsupportedTokenError: ticker is outside the supported set.
    """
    token = _TICKER_TO_TOKEN.get(ticker.upper())
    if token is None:
        raise UnsupportedTokenError(ticker)
    return token


def supported_tickers() -> frozenset[str]:
    """Tickers accepted by token_class_for_ticker (canonical casing)."""
    return frozenset(_TICKER_TO_TOKEN)
