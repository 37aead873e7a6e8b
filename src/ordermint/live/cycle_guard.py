"""Non-overlap guards for polling cycles.

A guard is taken non-blocking before a cycle starts; if it is already held
the tick is skipped rather than queued.

- LocalCycleGuard: in-process, threading.Lock
- RedisCycleGuard: cross-process lease (SET NX PX) with token-checked release

Lease safety:
- The lease TTL must exceed the longest expected cycle; an expired lease
  lets a second process start while the first is still dispatching
- Release only deletes the key if this guard's token still holds it
- Redis errors make try_acquire() return False (skip, never run unguarded)
"""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Any, Protocol

import redis

from ordermint.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_LOCK_KEY = "ordermint:cycle:lock"
DEFAULT_LEASE_TTL_MS = 60_000

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class CycleGuard(Protocol):
    """Re-entrancy guard around one polling cycle."""

    def try_acquire(self) -> bool:
        """Take the guard without blocking; False if it is held."""
        ...

    def release(self) -> None: ...


class LocalCycleGuard:
    """In-process guard."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        self._lock.release()

    @property
    def held(self) -> bool:
        return self._lock.locked()


class RedisCycleGuard:
    """Cross-process guard over a Redis lease key.

    Also holds a LocalCycleGuard so threads of one process never race each
    other to the Redis key.

    Usage:
        guard = RedisCycleGuard.from_url("redis://localhost:6379/0")
        if guard.try_acquire():
            try:
                engine.run_cycle()
            finally:
                guard.release()
    """

    def __init__(
        self,
        client: Any,
        lock_key: str = DEFAULT_LOCK_KEY,
        lease_ttl_ms: int = DEFAULT_LEASE_TTL_MS,
        token: str | None = None,
    ) -> None:
        if lease_ttl_ms < 1000:
            msg = f"lease_ttl_ms ({lease_ttl_ms}) should be >= 1000ms for safety"
            raise ValueError(msg)
        self._redis = client
        self._lock_key = lock_key
        self._ttl_ms = lease_ttl_ms
        self._token = token or f"ordermint-{uuid.uuid4().hex[:8]}"
        self._local = LocalCycleGuard()

    @classmethod
    def from_url(cls, redis_url: str, **kwargs: Any) -> RedisCycleGuard:
        """Build a guard from a redis:// URL; a malformed URL is a ConfigError."""
        try:
            client = redis.Redis.from_url(
                redis_url,
                decode_responses=False,
                socket_timeout=5.0,
                socket_connect_timeout=5.0,
            )
        except ValueError as e:
            raise ConfigError(f"invalid redis_url: {e}") from e
        return cls(client, **kwargs)

    @property
    def token(self) -> str:
        return self._token

    def try_acquire(self) -> bool:
        if not self._local.try_acquire():
            return False
        try:
            acquired = bool(
                self._redis.set(self._lock_key, self._token.encode(), nx=True, px=self._ttl_ms)
            )
        except redis.RedisError as e:
            logger.warning(
                "CYCLE_GUARD_UNAVAILABLE",
                extra={"lock_key": self._lock_key, "error": str(e)},
            )
            acquired = False

        if not acquired:
            self._local.release()
        return acquired

    def release(self) -> None:
        try:
            self._redis.eval(_RELEASE_SCRIPT, 1, self._lock_key, self._token)
        except redis.RedisError as e:
            # Lease expires on its own after the TTL.
            logger.warning(
                "CYCLE_GUARD_RELEASE_FAILED",
                extra={"lock_key": self._lock_key, "error": str(e)},
            )
        finally:
            self._local.release()

    def ping(self) -> None:
        """Raise redis.RedisError if the server is unreachable."""
        self._redis.ping()

    def close(self) -> None:
        self._redis.close()
