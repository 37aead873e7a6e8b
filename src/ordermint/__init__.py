"""ORDERMINT - exactly-once ledger order ingestion driving token mint/burn.

Polls buy/sell order-creation events from an on-chain orders contract,
records each event exactly once, and mints (buy) or burns (sell) the
matching token after the trader's KYC clearance has been confirmed.

Note: version is sourced from package metadata (pyproject.toml).
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from ordermint.core import EventKind, TokenClass


def _pkg_version() -> str:
    try:
        return version("ordermint")
    except PackageNotFoundError:
        return "0.0.0"


__version__ = _pkg_version()

__all__ = ["EventKind", "TokenClass", "__version__"]
