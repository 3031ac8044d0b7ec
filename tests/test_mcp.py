"""Tests for the Sahha GEO MCP server tools."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

mcp_sdk = pytest.importorskip("mcp", reason="mcp package not installed")

from sahhageo.mcp.server import (  # noqa: E402
    documentation_resource,
    execute_geo_pattern,
    get_cache_stats,
    get_health_score,
    get_optimized_biomarkers,
    invalidate_profile_cache,
    list_geo_patterns,
    patterns_resource,
)
from sahhageo.services.call_context import get_call_id  # noqa: E402

_PATCH_SERVICE = "sahhageo.mcp.server._service"


@pytest.mark.asyncio
async def test_get_optimized_biomarkers(service, fetcher):
    with patch(_PATCH_SERVICE, service):
        first = await get_optimized_biomarkers("p1", "workout_readiness")
        second = await get_optimized_biomarkers("p1", "workout_readiness")
    assert first["cached"] is False
    assert second["cached"] is True
    assert fetcher.fetch_biomarkers.call_count == 1


@pytest.mark.asyncio
async def test_execute_geo_pattern_is_uncached(service, fetcher):
    with patch(_PATCH_SERVICE, service):
        await execute_geo_pattern("p1", "sleep_optimization")
        result = await execute_geo_pattern("p1", "sleep_optimization")
    assert result["pattern_id"] == "sleep_optimization"
    assert fetcher.fetch_biomarkers.call_count == 2


@pytest.mark.asyncio
async def test_get_health_score(service):
    with patch(_PATCH_SERVICE, service):
        result = await get_health_score("p1", "2024-05-01")
    assert result["date"] == "2024-05-01"


@pytest.mark.asyncio
async def test_list_geo_patterns(service):
    with patch(_PATCH_SERVICE, service):
        result = await list_geo_patterns()
    assert result["total"] == 19


@pytest.mark.asyncio
async def test_get_cache_stats(service):
    with patch(_PATCH_SERVICE, service):
        await get_optimized_biomarkers("p1", "morning_health_check")
        stats = await get_cache_stats()
    assert stats["operations"]["sets"] == 1
    assert stats["patterns"]["morning_health_check"]["usage_count"] == 1
    assert stats["refresh_candidates"] == []


@pytest.mark.asyncio
async def test_invalidate_profile_cache(service, fetcher):
    with patch(_PATCH_SERVICE, service):
        await get_optimized_biomarkers("p1", "workout_readiness")
        result = await invalidate_profile_cache("p1")
        await get_optimized_biomarkers("p1", "workout_readiness")
    assert result["total_cleared"] == 1
    assert fetcher.fetch_biomarkers.call_count == 2


@pytest.mark.asyncio
async def test_unknown_use_case_raises(service):
    from sahhageo.services.errors import PatternNotFoundError

    with patch(_PATCH_SERVICE, service):
        with pytest.raises(PatternNotFoundError):
            await get_optimized_biomarkers("p1", "nope")


@pytest.mark.asyncio
async def test_call_id_reset_after_tool(service):
    with patch(_PATCH_SERVICE, service):
        await list_geo_patterns()
    assert get_call_id() == ""


def test_resources_return_json(service):
    with patch(_PATCH_SERVICE, service):
        patterns = json.loads(patterns_resource())
        docs = json.loads(documentation_resource())
    assert patterns["total"] == 19
    assert "readiness_bands" in docs


@pytest.mark.asyncio
async def test_service_required():
    with pytest.raises(AssertionError):
        await list_geo_patterns()
