"""Idempotency store: the persisted set of processed events."""

from ordermint.store.base import InsertResult, OrderStore
from ordermint.store.memory import InMemoryOrderStore
from ordermint.store.sqlite import SqliteOrderStore

__all__ = [
    "InMemoryOrderStore",
    "InsertResult",
    "OrderStore",
    "SqliteOrderStore",
]
