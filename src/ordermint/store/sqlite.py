"""SQLite-backed OrderStore.

Schema (one table, append-only):

    processed_orders(
        identity, event_type, sequence_number,   -- UNIQUE together (the DedupKey)
        ledger_version, ticker,
        usdc_amount, asset_amount, price,        -- unscaled integer strings
        occurred_at, processed_at_ms
    )

The UNIQUE constraint is what makes concurrent writers safe: the loser of
an insert race gets IntegrityError, reported as InsertResult.DUPLICATE.
Schema migration is out of scope; the table is created if missing.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from ordermint.errors import DedupCheckError, PersistenceError
from ordermint.events.types import DedupKey, ProcessedRecord
from ordermint.store.base import InsertResult

if TYPE_CHECKING:
    from ordermint.core import EventKind

logger = logging.getLogger(__name__)

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS processed_orders (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        identity TEXT NOT NULL,
        event_type TEXT NOT NULL,
        sequence_number TEXT NOT NULL,
        ledger_version TEXT NOT NULL,
        ticker TEXT NOT NULL,
        usdc_amount TEXT NOT NULL,
        asset_amount TEXT NOT NULL,
        price TEXT NOT NULL,
        occurred_at INTEGER,
        processed_at_ms INTEGER NOT NULL,
        UNIQUE (identity, event_type, sequence_number)
    )
"""

_COLUMNS = (
    "identity",
    "event_type",
    "sequence_number",
    "ledger_version",
    "ticker",
    "usdc_amount",
    "asset_amount",
    "price",
    "occurred_at",
    "processed_at_ms",
)


class SqliteOrderStore:
    """OrderStore over a single SQLite file (WAL mode).

    One shared connection guarded by a lock; the service issues at most a
    handful of statements per event.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._lock = threading.Lock()
        try:
            if str(db_path) != ":memory:":
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(db_path), timeout=30.0, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._init_db()
        except (OSError, sqlite3.Error) as e:
            raise PersistenceError(f"cannot open store at {db_path}: {e}") from e

    def _init_db(self) -> None:
        with self._lock, self._conn:
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA busy_timeout=30000")
            self._conn.execute("PRAGMA synchronous=NORMAL")
            self._conn.execute(_SCHEMA)

    def exists(self, identity: str, kind: EventKind, sequence_number: str) -> bool:
        key = DedupKey.of(identity, kind, sequence_number)
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT 1 FROM processed_orders"
                    " WHERE identity = ? AND event_type = ? AND sequence_number = ?",
                    (key.identity, key.kind.value, key.sequence_number),
                ).fetchone()
        except sqlite3.Error as e:
            raise DedupCheckError(f"exists({key}) failed: {e}") from e
        return row is not None

    def insert(self, record: ProcessedRecord) -> InsertResult:
        placeholders = ", ".join("?" for _ in _COLUMNS)
        values = tuple(getattr(record, c) for c in _COLUMNS)
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    f"INSERT INTO processed_orders ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                    values,
                )
        except sqlite3.IntegrityError:
            return InsertResult.DUPLICATE
        except sqlite3.Error as e:
            logger.warning(
                "RECORD_INSERT_FAILED",
                extra={"dedup_key": str(record.dedup_key), "error": str(e)},
            )
            return InsertResult.FAILED
        return InsertResult.INSERTED

    def get(self, key: DedupKey) -> ProcessedRecord | None:
        try:
            with self._lock:
                row = self._conn.execute(
                    f"SELECT {', '.join(_COLUMNS)} FROM processed_orders"
                    " WHERE identity = ? AND event_type = ? AND sequence_number = ?",
                    (key.identity, key.kind.value, key.sequence_number),
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"get({key}) failed: {e}") from e
        if row is None:
            return None
        return ProcessedRecord(**{c: row[c] for c in _COLUMNS})

    def count(self) -> int:
        with self._lock:
            return int(self._conn.execute("SELECT COUNT(*) FROM processed_orders").fetchone()[0])

    def ping(self) -> None:
        try:
            with self._lock:
                self._conn.execute("SELECT 1").fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"store unreachable: {e}") from e

    def close(self) -> None:
        with self._lock:
            self._conn.close()
