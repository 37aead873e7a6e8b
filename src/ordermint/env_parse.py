"""Environment variable parsing helpers.

Every ORDERMINT setting read from the environment goes through these
helpers so that 0/1, true/false, yes/no, on/off and blank values behave the
same everywhere.

Rules:
- unset or blank → default (never "on")
- strict=True (default): unparseable values raise ``ConfigError``
- strict=False: unparseable values log a warning and return the default
"""

from __future__ import annotations

import logging
import os

from ordermint.errors import ConfigError

logger = logging.getLogger(__name__)

TRUTHY: frozenset[str] = frozenset({"1", "true", "yes", "on"})
FALSEY: frozenset[str] = frozenset({"0", "false", "no", "off"})


def _raw(name: str) -> str | None:
    """Return the stripped value of ``name``, or None when unset/blank."""
    raw = os.environ.get(name)
    if raw is None:
        return None
    v = raw.strip()
    return v or None


def _reject(name: str, raw: str, default: object, strict: bool, what: str) -> None:
    if strict:
        raise ConfigError(f"invalid {what} for {name}: {raw!r}")
    logger.warning("Invalid %s for %s: %r, using default %s", what, name, raw, default)


def parse_bool(name: str, default: bool = False, *, strict: bool = True) -> bool:
    """Parse a boolean environment variable (``1 true yes on`` / ``0 false no off``)."""
    v = _raw(name)
    if v is None:
        return default
    lowered = v.lower()
    if lowered in TRUTHY:
        return True
    if lowered in FALSEY:
        return False
    _reject(name, v, default, strict, "boolean value")
    return default


def parse_int(
    name: str,
    default: int | None = None,
    *,
    min_value: int | None = None,
    max_value: int | None = None,
    strict: bool = True,
) -> int | None:
    """Parse an integer environment variable with optional inclusive bounds.

    Out-of-range values raise in strict mode and are clamped otherwise.
    """
    v = _raw(name)
    if v is None:
        return default
    try:
        result = int(v)
    except ValueError:
        _reject(name, v, default, strict, "integer value")
        return default
    if min_value is not None and result < min_value:
        if strict:
            raise ConfigError(f"{name}={result} is below minimum {min_value}")
        logger.warning("%s=%d is below minimum %d, clamping", name, result, min_value)
        return min_value
    if max_value is not None and result > max_value:
        if strict:
            raise ConfigError(f"{name}={result} is above maximum {max_value}")
        logger.warning("%s=%d is above maximum %d, clamping", name, result, max_value)
        return max_value
    return result


def parse_str(name: str, default: str | None = None) -> str | None:
    """Return the stripped string value, or ``default`` when unset/blank."""
    v = _raw(name)
    return default if v is None else v


def parse_enum(
    name: str,
    allowed: set[str],
    default: str | None = None,
    *,
    strict: bool = True,
) -> str | None:
    """Parse a case-insensitive enum value, returning its canonical spelling."""
    v = _raw(name)
    if v is None:
        return default
    match = {a.lower(): a for a in allowed}.get(v.lower())
    if match is not None:
        return match
    if strict:
        raise ConfigError(f"invalid value for {name}: {v!r} (allowed: {sorted(allowed)})")
    logger.warning(
        "Invalid value for %s: %r (allowed: %s), using default %s",
        name,
        v,
        sorted(allowed),
        default,
    )
    return default
