"""FastMCP server exposing GEO patterns and cached Sahha biomarkers as agent tools."""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager, contextmanager
from typing import Any, Iterator

from mcp.server.fastmcp import FastMCP

from sahhageo.config import settings
from sahhageo.sdk.client import AsyncSahhaClient
from sahhageo.services.cache_manager import CacheManager
from sahhageo.services.call_context import call_scope
from sahhageo.services.health_service import HealthDataService

logger = logging.getLogger("sahhageo.mcp")

_service: HealthDataService | None = None


@asynccontextmanager
async def _lifespan(server: FastMCP):
    """Create and tear down the Sahha client, cache and service."""
    global _service  # noqa: PLW0603
    client = AsyncSahhaClient(
        settings.sahha_api_url,
        settings.sahha_account_token,
        timeout=settings.sahha_timeout,
    )
    cache = CacheManager.from_settings(settings)
    if settings.cache_warm_on_startup:
        cache.warm_cache()
    cache.start()
    _service = HealthDataService(cache, client)
    try:
        yield
    finally:
        await cache.stop()
        await client.close()
        _service = None


mcp = FastMCP(
    name="SahhaGEO",
    instructions=(
        "Sahha GEO gives pattern-optimized access to a user's health "
        "biomarkers. Each use case (morning_health_check, workout_readiness, "
        "sleep_optimization, stress_management, ...) fetches only the handful "
        "of biomarkers it needs and returns a 0-100 score with a readiness "
        "band. Call list_geo_patterns first to pick a use case, then "
        "get_optimized_biomarkers. Results are cached; use "
        "invalidate_profile_cache after new data arrives."
    ),
    lifespan=_lifespan,
)


def _get_service() -> HealthDataService:
    assert _service is not None, "MCP server not started, service unavailable"
    return _service


@contextmanager
def _tool_call(tool: str) -> Iterator[None]:
    with call_scope():
        logger.info("Tool call: %s", tool)
        yield


@mcp.tool()
async def get_optimized_biomarkers(
    profile_id: str,
    use_case: str,
    time_range: str = "today",
) -> dict[str, Any]:
    """Fetch and score only the biomarkers a health use case needs.

    Serves from cache when a fresh result exists; otherwise requests the
    pattern's reduced biomarker set from Sahha, scores it against clinical
    ranges and caches it with a pattern-specific TTL.

    Args:
        profile_id: Sahha profile id.
        use_case: Pattern id, e.g. "morning_health_check" or "workout_readiness".
        time_range: "today", "7d", "14d", "30d" or "90d".

    Returns:
        Dict with the pattern optimization info, the scored analysis
        (score, readiness_level, components and use-case output) and a
        ``cached`` flag.
    """
    with _tool_call("get_optimized_biomarkers"):
        return await _get_service().optimized_biomarkers(profile_id, use_case, time_range)


@mcp.tool()
async def execute_geo_pattern(profile_id: str, pattern_id: str) -> dict[str, Any]:
    """Run a pattern against live data, bypassing the cache.

    Args:
        profile_id: Sahha profile id.
        pattern_id: Pattern id from list_geo_patterns.

    Returns:
        Dict with the scored result and the pattern's efficiency versus the
        full 184-biomarker catalog.
    """
    with _tool_call("execute_geo_pattern"):
        return await _get_service().execute_pattern(pattern_id, profile_id)


@mcp.tool()
async def get_health_score(profile_id: str, date: str | None = None) -> dict[str, Any]:
    """Comprehensive 0-100 health score with grade and priority areas.

    Args:
        profile_id: Sahha profile id.
        date: ISO date (YYYY-MM-DD); defaults to today.
    """
    with _tool_call("get_health_score"):
        return await _get_service().health_score(profile_id, date)


@mcp.tool()
async def list_geo_patterns() -> dict[str, Any]:
    """List every GEO pattern with its biomarker count and category."""
    with _tool_call("list_geo_patterns"):
        return _get_service().read_resource("patterns")


@mcp.tool()
async def get_cache_stats() -> dict[str, Any]:
    """Cache hit rate, per-store sizes and pattern execution performance."""
    with _tool_call("get_cache_stats"):
        service = _get_service()
        stats = service.cache.get_stats()
        stats["patterns"] = service.executor.performance_snapshot()
        stats["refresh_candidates"] = service.cache.refresh_candidates()
        return stats


@mcp.tool()
async def invalidate_profile_cache(profile_id: str) -> dict[str, Any]:
    """Drop every cached result for a profile so the next call refetches.

    Args:
        profile_id: Sahha profile id.
    """
    with _tool_call("invalidate_profile_cache"):
        cleared = _get_service().invalidate_profile(profile_id)
        return {
            "profile_id": profile_id,
            "cleared": cleared,
            "total_cleared": sum(cleared.values()),
        }


@mcp.resource("sahha://patterns", mime_type="application/json")
def patterns_resource() -> str:
    """The GEO pattern catalog."""
    return json.dumps(_get_service().read_resource("patterns"))


@mcp.resource("sahha://documentation", mime_type="application/json")
def documentation_resource() -> str:
    """Usage guide for agents: patterns, readiness bands and best practices."""
    return json.dumps(_get_service().read_resource("documentation"))
