from unittest.mock import AsyncMock

import pytest

from sahhageo.sdk.exceptions import SahhaError
from sahhageo.services.errors import PatternNotFoundError, UnknownResourceError
from sahhageo.services.health_service import HealthDataService


class TestOptimizedBiomarkers:
    async def test_miss_fetches_reduced_fields(self, service, fetcher):
        result = await service.optimized_biomarkers("p1", "workout_readiness")
        assert result["cached"] is False
        assert result["biomarkers_requested"] == 7
        kwargs = fetcher.fetch_biomarkers.call_args.kwargs
        assert "recovery_heart_rate" in kwargs["fields"]
        assert kwargs["optimization"] == "performance_focused"
        assert "score" in result["analysis"]

    async def test_hit_avoids_refetch(self, service, fetcher):
        first = await service.optimized_biomarkers("p1", "morning_health_check")
        second = await service.optimized_biomarkers("p1", "morning_health_check")
        assert fetcher.fetch_biomarkers.call_count == 1
        assert second["cached"] is True
        assert second["analysis"] == first["analysis"]

    async def test_cache_key_and_ttl(self, service, cache_manager):
        await service.optimized_biomarkers("p1", "morning_health_check", "7d")
        entry = cache_manager.get_entry("optimized_biomarkers:p1:morning_health_check:7d")
        assert entry is not None
        assert entry.ttl_seconds == 14400
        assert entry.store == "biomarker"

    async def test_unknown_use_case(self, service, fetcher):
        with pytest.raises(PatternNotFoundError):
            await service.optimized_biomarkers("p1", "nope")
        fetcher.fetch_biomarkers.assert_not_called()

    async def test_fetch_failure_propagates_and_caches_nothing(self, cache_manager):
        fetcher = AsyncMock()
        fetcher.fetch_biomarkers.side_effect = SahhaError(500, "down")
        service = HealthDataService(cache_manager, fetcher)
        with pytest.raises(SahhaError):
            await service.optimized_biomarkers("p1", "workout_readiness")
        assert cache_manager.keys("p1") == []


class TestHealthScore:
    async def test_health_score_cached_by_date(self, service, fetcher, cache_manager):
        result = await service.health_score("p1", "2024-05-01")
        assert result["date"] == "2024-05-01"
        assert result["grade"] in {"A", "B", "C", "D", "F"}
        assert fetcher.fetch_biomarkers.call_args.kwargs["date"] == "2024-05-01"
        assert cache_manager.has("health_score:p1:2024-05-01")

        again = await service.health_score("p1", "2024-05-01")
        assert again["cached"] is True
        assert fetcher.fetch_biomarkers.call_count == 1

    async def test_health_score_defaults_to_today(self, service):
        result = await service.health_score("p1")
        assert len(result["date"]) == 10


class TestExecutePattern:
    async def test_bypasses_cache(self, service, fetcher, cache_manager):
        await service.execute_pattern("sleep_optimization", "p1")
        await service.execute_pattern("sleep_optimization", "p1")
        assert fetcher.fetch_biomarkers.call_count == 2
        assert cache_manager.keys("p1") == []

    async def test_includes_efficiency(self, service):
        result = await service.execute_pattern("stress_assessment", "p1")
        assert result["efficiency"]["biomarkers_used"] == 4
        assert result["result"]["pattern"] == "stress_assessment"


class TestResources:
    def test_read_resource_cached_with_override(self, service, cache_manager):
        patterns = service.read_resource("patterns")
        assert patterns["total"] == 19
        assert cache_manager.get_entry("resource:sahha://patterns").ttl_seconds == 300

    def test_documentation(self, service):
        assert "best_practices" in service.read_resource("documentation")

    def test_unknown_resource(self, service):
        with pytest.raises(UnknownResourceError):
            service.read_resource("secrets")


class TestInvalidateProfile:
    async def test_clears_service_keys(self, service, cache_manager):
        await service.optimized_biomarkers("p1", "workout_readiness")
        await service.health_score("p1", "2024-05-01")
        await service.optimized_biomarkers("p2", "workout_readiness")
        cleared = service.invalidate_profile("p1")
        assert sum(cleared.values()) == 2
        assert cache_manager.keys("p1") == []
        assert cache_manager.keys(":p2:") != []
