"""Service configuration.

Sources, lowest to highest precedence:
1. dataclass defaults
2. optional YAML file (``--config``), keys are ServiceConfig field names
3. environment variables (table below)
4. explicit overrides passed by the CLI

Environment Variables:
    ORDERMINT_NODE_URL                 Ledger REST base URL
    ORDERMINT_EVENTS_ACCOUNT           Account holding the OrderEvents resource
    ORDERMINT_ORDERS_MODULE            Address that published the orders module
    MODULE_PUBLISHER_ACCOUNT_ADDRESS   Address that published the token module
    ORDERMINT_TOKEN_MODULE             Token module name (default: SpoutToken)
    ORDERMINT_PAGE_SIZE                Events fetched per kind per cycle (1..100)
    ORDERMINT_POLL_INTERVAL_S          Seconds between cycle starts
    ORDERMINT_DB_PATH                  SQLite file for processed records
    ORDERMINT_DRY_RUN                  "0" to submit real transactions
    ORDERMINT_HTTP_TIMEOUT_MS          Per-request timeout
    ORDERMINT_HTTP_MAX_ATTEMPTS        Attempts for read requests (1 = no retry)
    ORDERMINT_REDIS_URL                Enables the cross-process cycle guard
    ORDERMINT_AUDIT_PATH               Enables the JSONL audit trail
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from ordermint.env_parse import parse_bool, parse_int, parse_str
from ordermint.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_NODE_URL = "https://fullnode.testnet.aptoslabs.com/v1"
DEFAULT_EVENTS_ACCOUNT = "0xc50c45c8cf451cf262827f258bba2254c94487311c326fa097ce30c39beda4ea"
DEFAULT_ORDERS_MODULE = "0xf21ca0578f286a0ce5e9f43eab0387a9b7ee1b9ffd1f4634a772d415561fa0fd"
DEFAULT_TOKEN_MODULE_NAME = "SpoutToken"

MAX_PAGE_SIZE = 100

# (field, env var, kind)
_ENV_FIELDS: tuple[tuple[str, str, str], ...] = (
    ("node_url", "ORDERMINT_NODE_URL", "str"),
    ("events_account", "ORDERMINT_EVENTS_ACCOUNT", "str"),
    ("orders_module_address", "ORDERMINT_ORDERS_MODULE", "str"),
    ("token_module_address", "MODULE_PUBLISHER_ACCOUNT_ADDRESS", "str"),
    ("token_module_name", "ORDERMINT_TOKEN_MODULE", "str"),
    ("page_size", "ORDERMINT_PAGE_SIZE", "int"),
    ("poll_interval_s", "ORDERMINT_POLL_INTERVAL_S", "int"),
    ("db_path", "ORDERMINT_DB_PATH", "str"),
    ("dry_run", "ORDERMINT_DRY_RUN", "bool"),
    ("http_timeout_ms", "ORDERMINT_HTTP_TIMEOUT_MS", "int"),
    ("http_max_attempts", "ORDERMINT_HTTP_MAX_ATTEMPTS", "int"),
    ("redis_url", "ORDERMINT_REDIS_URL", "str"),
    ("audit_path", "ORDERMINT_AUDIT_PATH", "str"),
)


@dataclass(frozen=True)
class ServiceConfig:
    """Process configuration, read once at startup.

    Attributes:
        node_url: Ledger REST base URL
        events_account: Account whose OrderEvents handles are polled
        orders_module_address: Address that published ``orders::OrderEvents``
        token_module_address: Address that published the token module
            (required when dry_run is False)
        token_module_name: Token module name
        page_size: Events fetched per kind per cycle
        poll_interval_s: Seconds between cycle starts
        db_path: SQLite file holding processed records
        dry_run: Build transactions but never submit them
        http_timeout_ms: Per-request timeout for ledger calls
        http_max_attempts: Attempts for read requests (writes are never retried)
        redis_url: If set, cycles are guarded by a Redis lease lock
        audit_path: If set, cycle and dispatch results are appended as JSONL
    """

    node_url: str = DEFAULT_NODE_URL
    events_account: str = DEFAULT_EVENTS_ACCOUNT
    orders_module_address: str = DEFAULT_ORDERS_MODULE
    token_module_address: str = ""
    token_module_name: str = DEFAULT_TOKEN_MODULE_NAME
    page_size: int = 5
    poll_interval_s: int = 10
    db_path: str = "ordermint.db"
    dry_run: bool = True
    http_timeout_ms: int = 5000
    http_max_attempts: int = 1
    redis_url: str | None = None
    audit_path: str | None = None

    def __post_init__(self) -> None:
        if not self.node_url:
            raise ConfigError("node_url must not be empty")
        if not 1 <= self.page_size <= MAX_PAGE_SIZE:
            raise ConfigError(f"page_size ({self.page_size}) must be within 1..{MAX_PAGE_SIZE}")
        if self.poll_interval_s < 1:
            raise ConfigError(f"poll_interval_s ({self.poll_interval_s}) must be >= 1")
        if self.http_timeout_ms <= 0:
            raise ConfigError(f"http_timeout_ms ({self.http_timeout_ms}) must be > 0")
        if self.http_max_attempts < 1:
            raise ConfigError(f"http_max_attempts ({self.http_max_attempts}) must be >= 1")
        if not self.dry_run and not self.token_module_address:
            raise ConfigError(
                "token_module_address (MODULE_PUBLISHER_ACCOUNT_ADDRESS) is required "
                "when dry_run is disabled"
            )

    @property
    def token_module_id(self) -> str:
        """Fully qualified token module, e.g. ``0xabc::SpoutToken``."""
        address = self.token_module_address or self.orders_module_address
        return f"{address}::{self.token_module_name}"

    def to_log_extra(self) -> dict[str, Any]:
        """Non-secret fields for the startup log line."""
        return {
            "node_url": self.node_url,
            "events_account": self.events_account,
            "page_size": self.page_size,
            "poll_interval_s": self.poll_interval_s,
            "dry_run": self.dry_run,
            "db_path": self.db_path,
            "redis_guard": self.redis_url is not None,
            "audit": self.audit_path is not None,
        }


_FIELD_KINDS: dict[str, str] = {name: kind for name, _env, kind in _ENV_FIELDS}


def _coerce(name: str, value: Any) -> Any:
    """Validate the type of a value read from the YAML file."""
    kind = _FIELD_KINDS[name]
    if value is None:
        if name in ("redis_url", "audit_path"):
            return None
        raise ConfigError(f"{name} must not be null")
    if kind == "int":
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"{name} must be an integer, got {value!r}")
        return value
    if kind == "bool":
        if not isinstance(value, bool):
            raise ConfigError(f"{name} must be a boolean, got {value!r}")
        return value
    return str(value)


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Load a YAML config file into validated ServiceConfig kwargs."""
    p = Path(path)
    try:
        with p.open() as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"cannot read config file {p}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {p}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {p} must contain a mapping")

    unknown = sorted(set(data) - set(_FIELD_KINDS))
    if unknown:
        raise ConfigError(f"unknown config keys in {p}: {unknown}")
    return {name: _coerce(name, value) for name, value in data.items()}


def env_overrides() -> dict[str, Any]:
    """ServiceConfig kwargs for every variable set in the environment."""
    values: dict[str, Any] = {}
    for name, env_name, kind in _ENV_FIELDS:
        if parse_str(env_name) is None:
            continue
        if kind == "int":
            values[name] = parse_int(env_name)
        elif kind == "bool":
            values[name] = parse_bool(env_name)
        else:
            values[name] = parse_str(env_name)
    return values


def load_config(
    path: str | Path | None = None,
    **overrides: Any,
) -> ServiceConfig:
    """Build ServiceConfig from file, environment, and explicit overrides.

    Overrides whose value is None are ignored so CLI flags can be passed
    through unconditionally.

    Raises:
        ConfigError: on any invalid source value or failed validation.
    """
    values: dict[str, Any] = {}
    if path is not None:
        values.update(load_config_file(path))
    values.update(env_overrides())

    known = {f.name for f in dataclasses.fields(ServiceConfig)}
    for key, value in overrides.items():
        if key not in known:
            raise ConfigError(f"unknown config override: {key}")
        if value is not None:
            values[key] = value

    return ServiceConfig(**values)
