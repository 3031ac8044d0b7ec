import asyncio
import time
from unittest.mock import MagicMock, patch

import pytest

from sahhageo.config import Settings
from sahhageo.services.cache_manager import (
    BIOMARKER_METADATA_KEY,
    WARM_PATTERNS,
    CacheEntry,
    CacheManager,
)
from sahhageo.services.typed_cache import TypedCache

_PATCH_TIME = "sahhageo.services.cache_manager.time"


def _fresh() -> CacheManager:
    return CacheManager()


class TestBasicOperations:
    def test_set_then_get(self):
        cache = _fresh()
        assert cache.set("biomarker:steps", {"value": 10000}) is True
        assert cache.get("biomarker:steps") == {"value": 10000}

    def test_routed_to_classified_store(self):
        cache = _fresh()
        cache.set("pattern:morning_health_check", 1)
        assert cache.stores["pattern"].keys() == ["pattern:morning_health_check"]
        assert cache.stores["biomarker"].keys() == []

    def test_envelope_records_ttl_and_strategy(self):
        cache = _fresh()
        cache.set("pattern:workout_readiness", "x")
        entry = cache.get_entry("pattern:workout_readiness")
        assert isinstance(entry, CacheEntry)
        assert entry.ttl_seconds == 3600
        assert entry.store == "pattern"
        assert entry.refresh_strategy.refresh_time == "pre_workout"
        assert entry.to_dict()["value"] == "x"

    def test_explicit_ttl_is_stored(self):
        cache = _fresh()
        cache.set("pattern:morning_health_check", "x", ttl=42)
        assert cache.get_entry("pattern:morning_health_check").ttl_seconds == 42
        remaining = cache.stores["pattern"].ttl_remaining("pattern:morning_health_check")
        assert 0 < remaining <= 42

    def test_miss_after_expiry(self):
        cache = _fresh()
        cache.set("biomarker:steps", 1, ttl=1)
        with patch("sahhageo.services.typed_cache.time") as mock_time:
            mock_time.monotonic.return_value = time.monotonic() + 2
            assert cache.get("biomarker:steps") is None

    def test_delete_is_idempotent(self):
        cache = _fresh()
        cache.set("biomarker:steps", 1)
        assert cache.delete("biomarker:steps") is True
        assert cache.delete("biomarker:steps") is False
        assert cache.get("biomarker:steps") is None

    def test_has_and_stored_none(self):
        cache = _fresh()
        cache.set("biomarker:empty", None)
        assert cache.get("biomarker:empty") is None
        assert cache.has("biomarker:empty") is True

    def test_keys_across_stores(self):
        cache = _fresh()
        cache.set("pattern:a:profile:1", 1)
        cache.set("biomarker:b:profile:1", 2)
        cache.set("biomarker:c", 3)
        assert sorted(cache.keys("profile:1")) == ["biomarker:b:profile:1", "pattern:a:profile:1"]

    def test_missing_store_rejected(self):
        with pytest.raises(ValueError):
            CacheManager({"biomarker": TypedCache("biomarker")})

    def test_from_settings(self):
        cache = CacheManager.from_settings(Settings(biomarker_cache_ttl=10, cache_use_clones=True))
        assert cache.stores["biomarker"].default_ttl == 10
        assert cache.stores["pattern"].default_ttl == 3600


class TestInvalidation:
    def test_clear_pattern_scoped_to_substring(self):
        cache = _fresh()
        cache.set("biomarker:profile:1:sleep", 1)
        cache.set("pattern:x:profile:1", 2)
        cache.set("biomarker:profile:2:sleep", 3)
        cleared = cache.clear_pattern("profile:1")
        assert cleared["biomarker"] == 1
        assert cleared["pattern"] == 1
        assert cache.get("biomarker:profile:2:sleep") == 3
        assert cache.get("biomarker:profile:1:sleep") is None

    def test_invalidate_profile(self):
        cache = _fresh()
        cache.set("insight:profile:abc", 1)
        assert cache.invalidate_profile("abc")["insight"] == 1

    def test_invalidate_biomarker_and_pattern(self):
        cache = _fresh()
        cache.set("biomarker:steps:p1", 1)
        cache.set("pattern:sleep_optimization", 2)
        assert cache.invalidate_biomarker("steps")["biomarker"] == 1
        assert cache.invalidate_pattern("sleep_optimization")["pattern"] == 1


class TestStats:
    def test_counts_and_hit_rate(self):
        cache = _fresh()
        cache.set("biomarker:steps", 1)
        cache.get("biomarker:steps")
        cache.get("biomarker:steps")
        cache.get("biomarker:missing")
        stats = cache.get_stats()
        assert stats["requests"] == {"total": 3, "hits": 2, "misses": 1, "hit_rate": 66.67}
        assert stats["operations"]["sets"] == 1
        # round(2/3*100 - 1/3*10) == 63
        assert stats["performance"]["efficiency"] == 63
        assert stats["caches"]["biomarker"]["keys"] == 1

    def test_empty_stats(self):
        stats = _fresh().get_stats()
        assert stats["requests"]["hit_rate"] == 0.0
        assert stats["performance"]["efficiency"] == 0
        assert set(stats["caches"]) == {"biomarker", "pattern", "resource", "insight"}

    def test_flush_all_resets_counters(self):
        cache = _fresh()
        cache.set("biomarker:steps", 1)
        cache.get("biomarker:steps")
        cache.flush_all()
        assert cache.get_stats()["requests"]["total"] == 0
        assert cache.keys() == []


class TestSmartRefresh:
    def test_continuous_entry_flagged_after_threshold(self):
        cache = _fresh()
        start = time.time()
        cache.set("daily_wellness:p1", {"score": 80})
        with patch(_PATCH_TIME) as mock_time:
            mock_time.time.return_value = start + 1500
            assert cache.get("daily_wellness:p1") == {"score": 80}
        assert cache.refresh_candidates() == ["daily_wellness:p1"]
        assert cache.get_stats()["operations"]["refresh_flags"] == 1

    def test_young_entry_not_flagged(self):
        cache = _fresh()
        cache.set("daily_wellness:p1", 1)
        cache.get("daily_wellness:p1")
        assert cache.refresh_candidates() == []

    def test_non_continuous_entry_not_flagged(self):
        cache = _fresh()
        start = time.time()
        cache.set("biomarker:steps", 1)
        with patch(_PATCH_TIME) as mock_time:
            mock_time.time.return_value = start + 1700
            cache.get("biomarker:steps")
        assert cache.refresh_candidates() == []

    def test_set_clears_flag(self):
        cache = _fresh()
        start = time.time()
        cache.set("daily_wellness:p1", 1)
        with patch(_PATCH_TIME) as mock_time:
            mock_time.time.return_value = start + 1500
            cache.get("daily_wellness:p1")
        cache.set("daily_wellness:p1", 2)
        assert cache.refresh_candidates() == []

    def test_expired_flag_dropped_from_candidates(self):
        cache = _fresh()
        start = time.time()
        cache.set("daily_wellness:p1", 1)
        with patch(_PATCH_TIME) as mock_time:
            mock_time.time.return_value = start + 1500
            cache.get("daily_wellness:p1")
        assert cache.refresh_candidates() == ["daily_wellness:p1"]

        with patch("sahhageo.services.typed_cache.time") as mock_time:
            mock_time.monotonic.return_value = time.monotonic() + 2000
            assert cache.refresh_candidates() == []
        assert cache._refresh_flags == {}

    def test_optimize_drops_flags_of_swept_entries(self):
        cache = _fresh()
        start = time.time()
        cache.set("daily_wellness:p1", 1)
        with patch(_PATCH_TIME) as mock_time:
            mock_time.time.return_value = start + 1500
            cache.get("daily_wellness:p1")

        with patch("sahhageo.services.typed_cache.time") as mock_time:
            mock_time.monotonic.return_value = time.monotonic() + 2000
            result = cache.optimize()
        assert result["cleared_entries"] == 1
        assert cache._refresh_flags == {}



class TestFailureSafety:
    def _broken(self) -> CacheManager:
        broken = MagicMock(spec=TypedCache)
        broken.get.side_effect = RuntimeError("boom")
        broken.set.side_effect = RuntimeError("boom")
        broken.delete.side_effect = RuntimeError("boom")
        broken.has.side_effect = RuntimeError("boom")
        broken.keys.side_effect = RuntimeError("boom")
        return CacheManager({
            "biomarker": broken,
            "pattern": TypedCache("pattern"),
            "resource": TypedCache("resource"),
            "insight": TypedCache("insight"),
        })

    def test_public_methods_return_safe_defaults(self, caplog):
        cache = self._broken()
        assert cache.get("biomarker:x") is None
        assert cache.set("biomarker:x", 1) is False
        assert cache.delete("biomarker:x") is False
        assert cache.has("biomarker:x") is False
        assert cache.keys() == []
        assert cache.clear_pattern("x") == {}
        assert "Cache get failed" in caplog.text

    def test_invalid_key_returns_safe_defaults(self, caplog):
        cache = _fresh()
        assert cache.has(None) is False
        assert cache.get_entry(None) is None
        assert "Cache has failed" in caplog.text
        assert "Cache get_entry failed" in caplog.text

    def test_get_entry_store_failure_returns_none(self):
        assert self._broken().get_entry("biomarker:x") is None


    def test_other_stores_keep_working(self):
        cache = self._broken()
        assert cache.set("pattern:ok", 1) is True
        assert cache.get("pattern:ok") == 1


class TestMaintenance:
    def test_warm_cache(self):
        cache = _fresh()
        cache.warm_cache()
        for pattern in WARM_PATTERNS:
            assert cache.get(f"pattern:{pattern}")["warmed"] is True
        metadata = cache.get(BIOMARKER_METADATA_KEY)
        assert metadata["total"] == 184
        assert len(metadata["categories"]) == 6

    def test_optimize_sweeps_expired_only(self):
        cache = _fresh()
        cache.set("biomarker:short", 1, ttl=1)
        cache.set("biomarker:long", 2, ttl=1000)
        with patch("sahhageo.services.typed_cache.time") as mock_time:
            mock_time.monotonic.return_value = time.monotonic() + 5
            result = cache.optimize()
        assert result["optimized"] is True
        assert result["cleared_entries"] == 1
        assert cache.get("biomarker:long") == 2

    def test_optimize_reports_failure(self):
        cache = _fresh()
        cache._stores["pattern"] = MagicMock(spec=TypedCache)
        cache._stores["pattern"].sweep.side_effect = RuntimeError("bad")
        result = cache.optimize()
        assert result == {"optimized": False, "error": "bad"}

    def test_bulk_operations(self):
        cache = _fresh()
        assert cache.set_bulk({"biomarker:a": 1, "pattern:b": 2}) == {
            "biomarker:a": True,
            "pattern:b": True,
        }
        assert cache.get_bulk(["biomarker:a", "pattern:b", "biomarker:c"]) == {
            "biomarker:a": 1,
            "pattern:b": 2,
            "biomarker:c": None,
        }

    async def test_start_and_stop_sweepers(self):
        cache = _fresh()
        cache.start()
        assert len(cache._sweepers) == 4
        cache.start()
        assert len(cache._sweepers) == 4
        await cache.stop()
        assert cache._sweepers == []
        await asyncio.sleep(0)
