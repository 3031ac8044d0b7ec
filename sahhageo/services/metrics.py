"""Thread-safe in-memory counters for the cache, patterns and HTTP surface."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field


@dataclass
class CacheCounters:
    """Hit/miss/set/delete accounting for a ``CacheManager``."""

    hits: int = field(default=0, init=False)
    misses: int = field(default=0, init=False)
    sets: int = field(default=0, init=False)
    deletes: int = field(default=0, init=False)
    refresh_flags: int = field(default=0, init=False)

    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def inc_hit(self) -> None:
        with self._lock:
            self.hits += 1

    def inc_miss(self) -> None:
        with self._lock:
            self.misses += 1

    def inc_set(self) -> None:
        with self._lock:
            self.sets += 1

    def inc_delete(self) -> None:
        with self._lock:
            self.deletes += 1

    def inc_refresh_flag(self) -> None:
        with self._lock:
            self.refresh_flags += 1

    def snapshot(self) -> dict:
        """Request/operation counts plus derived hit rate and efficiency.

        ``hit_rate`` is a percentage.  ``efficiency`` penalises write-heavy,
        low-reuse traffic: ``hit_fraction*100 - (sets/requests)*10``.
        """
        with self._lock:
            total = self.hits + self.misses
            hit_rate = round(self.hits / total * 100, 2) if total else 0.0
            efficiency = (
                round(self.hits / total * 100 - self.sets / total * 10) if total else 0
            )
            return {
                "requests": {
                    "total": total,
                    "hits": self.hits,
                    "misses": self.misses,
                    "hit_rate": hit_rate,
                },
                "operations": {
                    "sets": self.sets,
                    "deletes": self.deletes,
                    "refresh_flags": self.refresh_flags,
                },
                "performance": {
                    "hit_rate": hit_rate,
                    "efficiency": efficiency,
                },
            }

    def reset(self) -> None:
        with self._lock:
            self.hits = 0
            self.misses = 0
            self.sets = 0
            self.deletes = 0
            self.refresh_flags = 0


@dataclass
class PerformanceMetric:
    """Accumulated execution stats for one pattern id."""

    usage_count: int = 0
    total_time_ms: float = 0.0
    success_count: int = 0

    @property
    def avg_response_time_ms(self) -> float:
        return round(self.total_time_ms / self.usage_count, 2) if self.usage_count else 0.0

    @property
    def success_rate_percent(self) -> float:
        if not self.usage_count:
            return 100.0
        return round(self.success_count / self.usage_count * 100, 2)

    def to_dict(self) -> dict:
        return {
            "usage_count": self.usage_count,
            "total_time_ms": round(self.total_time_ms, 2),
            "success_count": self.success_count,
            "avg_response_time_ms": self.avg_response_time_ms,
            "success_rate_percent": self.success_rate_percent,
        }


class PatternPerformance:
    """Per-pattern ``PerformanceMetric`` registry."""

    def __init__(self) -> None:
        self._metrics: dict[str, PerformanceMetric] = {}
        self._lock = threading.Lock()

    def record(self, pattern_id: str, elapsed_ms: float, success: bool) -> None:
        with self._lock:
            metric = self._metrics.setdefault(pattern_id, PerformanceMetric())
            metric.usage_count += 1
            metric.total_time_ms += elapsed_ms
            if success:
                metric.success_count += 1

    def get(self, pattern_id: str) -> PerformanceMetric:
        """Copy of the metric for *pattern_id*; zeroed if never executed."""
        with self._lock:
            metric = self._metrics.get(pattern_id)
            if metric is None:
                return PerformanceMetric()
            return PerformanceMetric(
                metric.usage_count, metric.total_time_ms, metric.success_count
            )

    def snapshot(self) -> dict[str, dict]:
        with self._lock:
            return {pid: m.to_dict() for pid, m in sorted(self._metrics.items())}


@dataclass
class RequestMetrics:
    """HTTP request counters and latency samples for the API.

    The latency list is bounded at ``_MAX_LATENCY_SAMPLES``; when exceeded it
    is halved by keeping only the most-recent entries.
    """

    _MAX_LATENCY_SAMPLES: int = field(default=10_000, repr=False)

    total_requests: int = field(default=0, init=False)
    status_codes: dict[int, int] = field(default_factory=dict, init=False)

    _latencies: list[float] = field(default_factory=list, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _start_time: float = field(default_factory=time.monotonic, init=False, repr=False)

    def inc_request(self, status_code: int) -> None:
        with self._lock:
            self.total_requests += 1
            self.status_codes[status_code] = self.status_codes.get(status_code, 0) + 1

    def record_latency(self, ms: float) -> None:
        with self._lock:
            self._latencies.append(ms)
            if len(self._latencies) > self._MAX_LATENCY_SAMPLES:
                half = self._MAX_LATENCY_SAMPLES // 2
                self._latencies = self._latencies[-half:]

    def _percentiles_unlocked(self) -> dict[str, float]:
        """p50/p95/p99; caller must hold ``_lock``."""
        if not self._latencies:
            return {"p50": 0.0, "p95": 0.0, "p99": 0.0}
        s = sorted(self._latencies)
        n = len(s)
        return {
            "p50": round(s[int(n * 0.50)], 2),
            "p95": round(s[int(min(n * 0.95, n - 1))], 2),
            "p99": round(s[int(min(n * 0.99, n - 1))], 2),
        }

    def uptime_seconds(self) -> float:
        return round(time.monotonic() - self._start_time, 2)

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "uptime_seconds": round(time.monotonic() - self._start_time, 2),
                "total_requests": self.total_requests,
                "status_codes": dict(self.status_codes),
                "latency_ms": self._percentiles_unlocked(),
            }


# Module-level singleton shared by the API middleware and /metrics.
request_metrics = RequestMetrics()
