"""Thread-safe TTL store backing one semantic cache partition."""

from __future__ import annotations

import asyncio
import copy
import logging
import threading
import time
from typing import Any

logger = logging.getLogger("sahhageo.cache")

# Expiry timestamp for entries stored with a non-positive TTL.
_NEVER = float("inf")


class TypedCache:
    """Key/value store with per-entry TTL and a periodic expiry sweep.

    Expired entries are evicted lazily on read and eagerly by ``sweep()``,
    which ``run_sweeper()`` calls every ``check_period`` seconds.
    """

    def __init__(
        self,
        name: str,
        default_ttl: int = 1800,
        check_period: int = 300,
        use_clones: bool = False,
    ):
        self.name = name
        self._default_ttl = default_ttl
        self._check_period = check_period
        self._use_clones = use_clones
        self._data: dict[str, tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._expired = 0

    @property
    def default_ttl(self) -> int:
        return self._default_ttl

    @property
    def check_period(self) -> int:
        return self._check_period

    def _clone(self, value: Any) -> Any:
        return copy.deepcopy(value) if self._use_clones else value

    def _live_unlocked(self, key: str, now: float) -> bool:
        """Evict *key* if expired; caller must hold ``_lock``."""
        item = self._data.get(key)
        if item is None:
            return False
        if now > item[1]:
            del self._data[key]
            self._expired += 1
            return False
        return True

    def get(self, key: str) -> Any | None:
        with self._lock:
            if not self._live_unlocked(key, time.monotonic()):
                self._misses += 1
                return None
            self._hits += 1
            return self._clone(self._data[key][0])

    def has(self, key: str) -> bool:
        with self._lock:
            return self._live_unlocked(key, time.monotonic())

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool:
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        expires_at = time.monotonic() + ttl if ttl > 0 else _NEVER
        stored = self._clone(value)
        with self._lock:
            self._data[key] = (stored, expires_at)
        return True

    def delete(self, key: str) -> bool:
        """True only when a live entry was removed."""
        with self._lock:
            if not self._live_unlocked(key, time.monotonic()):
                return False
            del self._data[key]
            return True

    def keys(self, substring: str | None = None) -> list[str]:
        now = time.monotonic()
        with self._lock:
            live = [k for k in list(self._data) if self._live_unlocked(k, now)]
        if substring:
            return [k for k in live if substring in k]
        return live

    def ttl_remaining(self, key: str) -> float | None:
        """Seconds until *key* expires, ``inf`` for non-expiring, None if absent."""
        now = time.monotonic()
        with self._lock:
            if not self._live_unlocked(key, now):
                return None
            return self._data[key][1] - now

    def sweep(self) -> int:
        now = time.monotonic()
        with self._lock:
            expired = [k for k, (_, exp) in self._data.items() if now > exp]
            for k in expired:
                del self._data[k]
            self._expired += len(expired)
        if expired:
            logger.debug("Swept %d expired keys from %s cache", len(expired), self.name)
        return len(expired)

    def flush_all(self) -> None:
        with self._lock:
            self._data.clear()
            self._hits = 0
            self._misses = 0
            self._expired = 0

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._data)

    def stats(self) -> dict:
        with self._lock:
            return {
                "keys": len(self._data),
                "hits": self._hits,
                "misses": self._misses,
                "expired": self._expired,
                "default_ttl": self._default_ttl,
                "check_period": self._check_period,
            }

    async def run_sweeper(self) -> None:
        """Sweep forever on the running loop; stop by cancelling the task."""
        while True:
            await asyncio.sleep(self._check_period)
            try:
                self.sweep()
            except Exception:
                logger.exception("Expiry sweep failed for %s cache", self.name)
