"""Multi-store cache with key-routed partitions, adaptive TTL and smart refresh.

``CacheManager`` is built once by the host process (API lifespan or MCP
lifespan) and injected wherever tool calls are served.  Its public methods
never raise: internal helpers report failures as ``CacheResult`` values and
the public boundary logs them and returns a safe default, so a broken cache
degrades to "always miss".
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Generic, Iterable, Mapping, TypeVar

from sahhageo.services.key_policy import (
    STORE_NAMES,
    KeyClassifier,
    RefreshStrategy,
    StoreName,
    TTLPolicy,
)
from sahhageo.services.metrics import CacheCounters
from sahhageo.services.typed_cache import TypedCache

logger = logging.getLogger("sahhageo.cache")

T = TypeVar("T")

# Continuous-refresh entries are flagged once this fraction of the TTL has elapsed.
SMART_REFRESH_THRESHOLD = 0.8

WARM_PATTERNS = (
    "morning_health_check",
    "workout_readiness",
    "daily_wellness",
    "health_score_calculation",
)

BIOMARKER_METADATA_KEY = "biomarkers:metadata"


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


@dataclass(frozen=True)
class CacheEntry:
    """Envelope stored for every cached value."""

    key: str
    value: Any
    cached_at: float
    refresh_strategy: RefreshStrategy
    ttl_seconds: int
    store: StoreName

    def age(self, now: float | None = None) -> float:
        return (time.time() if now is None else now) - self.cached_at

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "value": self.value,
            "cached_at": _iso(self.cached_at),
            "refresh_strategy": self.refresh_strategy.to_dict(),
            "ttl_seconds": self.ttl_seconds,
            "store": self.store,
        }


@dataclass(frozen=True)
class CacheResult(Generic[T]):
    """Outcome of an internal cache operation."""

    ok: bool
    value: T | None = None
    error: Exception | None = None

    @classmethod
    def success(cls, value: T | None = None) -> CacheResult[T]:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: Exception) -> CacheResult[T]:
        return cls(ok=False, error=error)


@dataclass
class _RefreshFlag:
    key: str
    flagged_at: float = field(default_factory=time.time)
    age_seconds: float = 0.0


class CacheManager:
    """Routes keys to typed stores and wraps values in ``CacheEntry`` envelopes."""

    def __init__(
        self,
        stores: Mapping[StoreName, TypedCache] | None = None,
        *,
        classifier: KeyClassifier | None = None,
        ttl_policy: TTLPolicy | None = None,
    ) -> None:
        if stores is None:
            stores = {
                "biomarker": TypedCache("biomarker", default_ttl=1800, check_period=300),
                "pattern": TypedCache("pattern", default_ttl=3600, check_period=600),
                "resource": TypedCache("resource", default_ttl=900, check_period=180),
                "insight": TypedCache("insight", default_ttl=2700, check_period=300),
            }
        missing = [name for name in STORE_NAMES if name not in stores]
        if missing:
            raise ValueError(f"Missing cache stores: {', '.join(missing)}")
        self._stores: dict[StoreName, TypedCache] = dict(stores)
        self.classifier = classifier or KeyClassifier()
        self.ttl_policy = ttl_policy or TTLPolicy()
        self.counters = CacheCounters()
        self._refresh_flags: dict[str, _RefreshFlag] = {}
        self._sweepers: list[asyncio.Task] = []
        logger.info("Cache manager initialised with stores: %s", ", ".join(self._stores))

    @classmethod
    def from_settings(cls, settings: Any) -> CacheManager:
        """Build stores from a ``Settings`` instance."""
        stores = {
            name: TypedCache(
                name,
                default_ttl=getattr(settings, f"{name}_cache_ttl"),
                check_period=getattr(settings, f"{name}_cache_check_period"),
                use_clones=settings.cache_use_clones,
            )
            for name in STORE_NAMES
        }
        return cls(stores)

    # -- routing -------------------------------------------------------------

    def store_for(self, key: str) -> TypedCache:
        return self._stores[self.classifier.classify(key)]

    @property
    def stores(self) -> dict[StoreName, TypedCache]:
        return dict(self._stores)

    # -- internal ------------------------------------------------------------

    @staticmethod
    def _attempt(fn: Callable[..., T], *args: Any) -> CacheResult[T]:
        try:
            return CacheResult.success(fn(*args))
        except Exception as exc:
            return CacheResult.failure(exc)

    @staticmethod
    def _unwrap(result: CacheResult[T], default: T, op: str, key: str) -> T:
        if result.ok:
            return result.value  # type: ignore[return-value]
        logger.error(
            "Cache %s failed for %r: %s", op, key, result.error, exc_info=result.error
        )
        return default

    def _get(self, key: str) -> Any | None:
        entry = self.store_for(key).get(key)
        if entry is None:
            self.counters.inc_miss()
            logger.debug("Cache miss: %s", key)
            return None
        self.counters.inc_hit()
        if not isinstance(entry, CacheEntry):
            return entry
        self._check_smart_refresh(entry)
        logger.debug("Cache hit: %s", key)
        return entry.value

    def _check_smart_refresh(self, entry: CacheEntry) -> None:
        strategy = entry.refresh_strategy
        if strategy.refresh_time != "continuous":
            return
        age = entry.age()
        if age > strategy.ttl * SMART_REFRESH_THRESHOLD:
            self._refresh_flags[entry.key] = _RefreshFlag(entry.key, age_seconds=age)
            self.counters.inc_refresh_flag()
            logger.debug("Smart refresh needed for: %s (age %.0fs)", entry.key, age)

    def _set(self, key: str, value: Any, ttl: int | None) -> bool:
        store_name = self.classifier.classify(key)
        effective_ttl = self.ttl_policy.resolve_ttl(key, ttl)
        entry = CacheEntry(
            key=key,
            value=value,
            cached_at=time.time(),
            refresh_strategy=self.ttl_policy.resolve_refresh_strategy(key),
            ttl_seconds=effective_ttl,
            store=store_name,
        )
        ok = self._stores[store_name].set(key, entry, effective_ttl)
        if ok:
            self._refresh_flags.pop(key, None)
            self.counters.inc_set()
            logger.debug("Cache set: %s (TTL: %ss, store: %s)", key, effective_ttl, store_name)
        return ok

    def _get_entry(self, key: str) -> Any | None:
        return self.store_for(key).get(key)

    def _has(self, key: str) -> bool:
        return self.store_for(key).has(key)

    def _prune_refresh_flags(self) -> int:
        stale = [key for key in self._refresh_flags if not self._has(key)]
        for key in stale:
            self._refresh_flags.pop(key, None)
        return len(stale)

    def _delete(self, key: str) -> bool:
        removed = self.store_for(key).delete(key)
        self._refresh_flags.pop(key, None)
        if removed:
            self.counters.inc_delete()
            logger.debug("Cache deleted: %s", key)
        return removed

    def _clear_pattern(self, substring: str) -> dict[str, int]:
        cleared = {name: 0 for name in self._stores}
        for name, store in self._stores.items():
            for key in store.keys(substring):
                if store.delete(key):
                    self._refresh_flags.pop(key, None)
                    cleared[name] += 1
        return cleared

    # -- public API ----------------------------------------------------------

    def get(self, key: str) -> Any | None:
        """Cached value for *key*, or None on miss, expiry or internal error."""
        return self._unwrap(self._attempt(self._get, key), None, "get", key)

    def get_entry(self, key: str) -> CacheEntry | None:
        """The stored envelope, without touching hit/miss counters."""
        result = self._attempt(self._get_entry, key)
        entry = self._unwrap(result, None, "get_entry", key)
        return entry if isinstance(entry, CacheEntry) else None

    def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        return self._unwrap(self._attempt(self._set, key, value, ttl), False, "set", key)

    def delete(self, key: str) -> bool:
        return self._unwrap(self._attempt(self._delete, key), False, "delete", key)

    def has(self, key: str) -> bool:
        return self._unwrap(self._attempt(self._has, key), False, "has", key)

    def keys(self, substring: str = "") -> list[str]:
        def _all() -> list[str]:
            return [k for store in self._stores.values() for k in store.keys(substring)]

        return self._unwrap(self._attempt(_all), [], "keys", substring)

    def clear_pattern(self, substring: str) -> dict[str, int]:
        """Delete every key containing *substring*; returns per-store counts."""
        result = self._attempt(self._clear_pattern, substring)
        cleared = self._unwrap(result, {}, "clear_pattern", substring)
        if result.ok:
            logger.info("Cleared cache pattern: %s", substring, extra={"cleared": cleared})
        return cleared

    def invalidate_profile(self, profile_id: str) -> dict[str, int]:
        return self.clear_pattern(f"profile:{profile_id}")

    def invalidate_biomarker(self, biomarker_type: str) -> dict[str, int]:
        return self.clear_pattern(f"biomarker:{biomarker_type}")

    def invalidate_pattern(self, pattern_name: str) -> dict[str, int]:
        return self.clear_pattern(f"pattern:{pattern_name}")

    def get_bulk(self, keys: Iterable[str]) -> dict[str, Any | None]:
        return {key: self.get(key) for key in keys}

    def set_bulk(self, data: Mapping[str, Any]) -> dict[str, bool]:
        return {key: self.set(key, value) for key, value in data.items()}

    def refresh_candidates(self) -> list[str]:
        """Live keys flagged for early refresh since they were last written."""
        result = self._attempt(self._prune_refresh_flags)
        self._unwrap(result, 0, "refresh_candidates", "")
        return sorted(self._refresh_flags)

    def warm_cache(self) -> None:
        """Seed well-known pattern keys and biomarker metadata; never raises."""
        try:
            logger.info("Starting cache warming...")
            warmed_at = _iso(time.time())
            for pattern in WARM_PATTERNS:
                self.set(
                    f"pattern:{pattern}",
                    {"warmed": True, "pattern": pattern, "warmed_at": warmed_at},
                )
            self.set(
                BIOMARKER_METADATA_KEY,
                {
                    "total": 184,
                    "categories": ["sleep", "activity", "heart", "mental", "body", "environment"],
                    "warmed": True,
                },
            )
            logger.info("Cache warming completed")
        except Exception:
            logger.exception("Cache warming error")

    def get_stats(self) -> dict:
        stats = self.counters.snapshot()
        stats["caches"] = {
            name: {"keys": len(store.keys()), "stats": store.stats()}
            for name, store in self._stores.items()
        }
        return stats

    def optimize(self) -> dict:
        """Maintenance pass: sweep expired entries in every store."""
        try:
            logger.info("Starting cache optimization...")
            cleared = sum(store.sweep() for store in self._stores.values())
            self._prune_refresh_flags()
            self._adjust_ttl_based_on_usage()
            self._lru_cleanup()
            logger.info("Cache optimization completed", extra={"cleared_entries": cleared})
            return {
                "optimized": True,
                "cleared_entries": cleared,
                "timestamp": _iso(time.time()),
            }
        except Exception as exc:
            logger.exception("Cache optimization error")
            return {"optimized": False, "error": str(exc)}

    def _adjust_ttl_based_on_usage(self) -> None:
        logger.debug("TTL adjustment based on usage patterns")

    def _lru_cleanup(self) -> None:
        logger.debug("LRU cleanup performed")

    def flush_all(self) -> None:
        for store in self._stores.values():
            store.flush_all()
        self._refresh_flags.clear()
        self.counters.reset()
        logger.info("All caches flushed")

    # -- background sweep ----------------------------------------------------

    def start(self) -> None:
        """Start one expiry sweeper per store on the running event loop."""
        if self._sweepers:
            return
        loop = asyncio.get_running_loop()
        self._sweepers = [
            loop.create_task(store.run_sweeper(), name=f"cache-sweeper-{name}")
            for name, store in self._stores.items()
        ]

    async def stop(self) -> None:
        for task in self._sweepers:
            task.cancel()
        await asyncio.gather(*self._sweepers, return_exceptions=True)
        self._sweepers = []
