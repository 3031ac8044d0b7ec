"""Tests for cache counters, pattern performance and request metrics."""

from __future__ import annotations

from sahhageo.services.metrics import (
    CacheCounters,
    PatternPerformance,
    PerformanceMetric,
    RequestMetrics,
)


def test_cache_counters_snapshot():
    c = CacheCounters()
    c.inc_hit()
    c.inc_miss()
    c.inc_set()
    c.inc_delete()
    snap = c.snapshot()
    assert snap["requests"] == {"total": 2, "hits": 1, "misses": 1, "hit_rate": 50.0}
    assert snap["operations"] == {"sets": 1, "deletes": 1, "refresh_flags": 0}
    # 50 - 1/2*10
    assert snap["performance"]["efficiency"] == 45


def test_cache_counters_reset():
    c = CacheCounters()
    c.inc_hit()
    c.inc_refresh_flag()
    c.reset()
    assert c.hits == 0
    assert c.refresh_flags == 0


def test_performance_metric_defaults():
    m = PerformanceMetric()
    assert m.avg_response_time_ms == 0.0
    assert m.success_rate_percent == 100.0


def test_pattern_performance_record():
    perf = PatternPerformance()
    perf.record("morning_health_check", 10.0, success=True)
    perf.record("morning_health_check", 30.0, success=False)
    m = perf.get("morning_health_check")
    assert m.usage_count == 2
    assert m.success_count == 1
    assert m.avg_response_time_ms == 20.0
    assert m.success_rate_percent == 50.0


def test_pattern_performance_get_returns_copy():
    perf = PatternPerformance()
    perf.record("p", 1.0, success=True)
    copy = perf.get("p")
    copy.usage_count = 99
    assert perf.get("p").usage_count == 1


def test_pattern_performance_unknown_is_zeroed():
    assert PatternPerformance().get("nope").usage_count == 0


def test_pattern_performance_snapshot_sorted():
    perf = PatternPerformance()
    perf.record("b", 1.0, success=True)
    perf.record("a", 1.0, success=True)
    assert list(perf.snapshot()) == ["a", "b"]


def test_inc_request():
    m = RequestMetrics()
    m.inc_request(200)
    m.inc_request(200)
    m.inc_request(404)
    assert m.total_requests == 3
    assert m.status_codes == {200: 2, 404: 1}


def test_latency_percentiles_empty():
    snap = RequestMetrics().snapshot()
    assert snap["latency_ms"] == {"p50": 0.0, "p95": 0.0, "p99": 0.0}


def test_latency_percentiles_populated():
    m = RequestMetrics()
    for i in range(1, 101):
        m.record_latency(float(i))
    p = m.snapshot()["latency_ms"]
    assert 50.0 <= p["p50"] <= 51.0
    assert p["p99"] >= 99.0


def test_latency_samples_bounded():
    m = RequestMetrics(_MAX_LATENCY_SAMPLES=10)
    for i in range(11):
        m.record_latency(float(i))
    assert len(m._latencies) == 5
