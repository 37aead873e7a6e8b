"""Audit trail for poll cycles and dispatch outcomes.

- AuditEventType: CYCLE_RUN, DISPATCH_RESULT
- AuditEvent: frozen, JSON-serializable record
- AuditWriter: append-only JSONL writer

Key guarantees:
- Append-only writes (no overwrite)
- No secrets in output (redaction enabled by default)
- Deterministic serialization (sorted keys, compact separators)
- Fail-open: a write error is logged and counted, never raised into a cycle
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from ordermint.reconcile.dispatch import DispatchResult
    from ordermint.reconcile.engine import CycleReport

logger = logging.getLogger(__name__)

# Fields that should never appear in audit output
REDACTED_FIELDS = frozenset(
    {
        "private_key",
        "secret",
        "password",
        "signature",
        "authorization",
        "api_key",
    }
)


class AuditEventType(Enum):
    """Audit event types.

    These values are STABLE and used in audit files.
    """

    CYCLE_RUN = "CYCLE_RUN"
    DISPATCH_RESULT = "DISPATCH_RESULT"


@dataclass(frozen=True)
class AuditEvent:
    """One audit line.

    Attributes:
        ts_ms: Event timestamp in milliseconds
        event_type: Type of event
        run_id: Cycle identifier (or "replay-..." for operator replays)
        schema_version: Schema version for forward compatibility
        mode: "dry_run" or "live"
        status: Cycle status or dispatch status
        details: Event-specific payload
    """

    ts_ms: int
    event_type: AuditEventType
    run_id: str
    schema_version: int = 1
    mode: str = "dry_run"
    status: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_json_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["event_type"] = self.event_type.value
        return d


@dataclass
class AuditConfig:
    """Configuration for audit logging.

    Attributes:
        enabled: Whether audit is enabled (opt-in)
        path: Path to audit JSONL file
        fsync: Call fsync after each write
        redact: Enable redaction of sensitive fields
        fail_open: Continue if a write fails
    """

    enabled: bool = False
    path: str = "audit/ordermint.jsonl"
    fsync: bool = False
    redact: bool = True
    fail_open: bool = True


class AuditWriteError(Exception):
    """Error writing to audit file (only raised with fail_open=False)."""


@dataclass
class AuditWriter:
    """Append-only JSONL writer for audit events.

    Thread-safety: No. The poll loop is the only writer.

    Usage:
        with AuditWriter(AuditConfig(enabled=True, path="audit.jsonl")) as writer:
            writer.write_cycle(report, mode="dry_run")
    """

    config: AuditConfig
    _clock: Callable[[], int] = field(default=lambda: int(time.time() * 1000))

    _file: Any = field(default=None, init=False, repr=False)
    _event_count: int = field(default=0, init=False)
    _write_errors: int = field(default=0, init=False)

    def __enter__(self) -> AuditWriter:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _ensure_open(self) -> bool:
        if not self.config.enabled:
            return False
        if self._file is not None:
            return True
        try:
            path = Path(self.config.path)
            path.parent.mkdir(parents=True, exist_ok=True)
            self._file = path.open("a", encoding="utf-8")
            return True
        except OSError as e:
            self._write_errors += 1
            logger.warning("AUDIT_OPEN_FAILED", extra={"error": str(e), "path": self.config.path})
            if not self.config.fail_open:
                raise AuditWriteError(f"Failed to open audit file: {e}") from e
            return False

    def _redact_dict(self, d: dict[str, Any]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for k, v in d.items():
            k_lower = k.lower()
            if any(rf in k_lower for rf in REDACTED_FIELDS):
                result[k] = "[REDACTED]"
            elif isinstance(v, dict):
                result[k] = self._redact_dict(v)
            else:
                result[k] = v
        return result

    def write(self, event: AuditEvent) -> bool:
        """Append one event. Returns False if disabled or the write failed."""
        if not self._ensure_open():
            return False

        try:
            event_dict = event.to_json_dict()
            if self.config.redact:
                event_dict["details"] = self._redact_dict(event_dict["details"])

            line = json.dumps(event_dict, sort_keys=True, separators=(",", ":"))
            self._file.write(line + "\n")
            self._file.flush()
            if self.config.fsync:
                os.fsync(self._file.fileno())
            self._event_count += 1
            return True

        except (OSError, TypeError, ValueError) as e:
            self._write_errors += 1
            logger.warning("AUDIT_WRITE_FAILED", extra={"error": str(e)})
            if not self.config.fail_open:
                raise AuditWriteError(f"Failed to write audit event: {e}") from e
            return False

    def write_cycle(self, report: CycleReport, mode: str) -> None:
        """Write one CYCLE_RUN line plus one DISPATCH_RESULT line per event."""
        self.write(
            AuditEvent(
                ts_ms=report.ts_end,
                event_type=AuditEventType.CYCLE_RUN,
                run_id=report.cycle_id,
                mode=mode,
                status=report.status.value,
                details=report.to_log_extra(),
            )
        )
        for result in report.results:
            self.write_dispatch(report.cycle_id, result, mode)

    def write_dispatch(self, run_id: str, result: DispatchResult, mode: str) -> None:
        self.write(
            AuditEvent(
                ts_ms=self._clock(),
                event_type=AuditEventType.DISPATCH_RESULT,
                run_id=run_id,
                mode=mode,
                status=result.status.value,
                details=result.to_dict(),
            )
        )

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    @property
    def event_count(self) -> int:
        """Total events written since open."""
        return self._event_count

    @property
    def write_errors(self) -> int:
        return self._write_errors
