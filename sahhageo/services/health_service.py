"""Cache-first orchestration: look up, fetch the reduced biomarker set, score, store.

``HealthDataService`` is the single entry point the API and MCP surfaces
call.  Cache failures never surface here (``CacheManager`` degrades to a
miss), but fetch failures propagate and leave the cache untouched.
"""

from __future__ import annotations

import logging
from datetime import date as date_cls
from datetime import datetime, timezone
from typing import Protocol, Sequence

from sahhageo.services.cache_manager import CacheManager
from sahhageo.services.errors import UnknownResourceError
from sahhageo.services.pattern_executor import PatternExecutor
from sahhageo.services.patterns import PatternRegistry

logger = logging.getLogger("sahhageo.service")

HEALTH_SCORE_PATTERN = "health_score_calculation"
RESOURCE_TTL = 300
RESOURCE_NAMES = ("patterns", "documentation")


class BiomarkerFetcher(Protocol):
    async def fetch_biomarkers(
        self,
        profile_id: str,
        *,
        fields: Sequence[str] = (),
        optimization: str = "standard",
        time_range: str = "today",
        date: str | None = None,
    ) -> list[dict]: ...


def optimized_key(profile_id: str, use_case: str, time_range: str) -> str:
    return f"optimized_biomarkers:{profile_id}:{use_case}:{time_range}"


def health_score_key(profile_id: str, day: str) -> str:
    return f"health_score:{profile_id}:{day}"


def resource_key(name: str) -> str:
    return f"resource:sahha://{name}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class HealthDataService:
    def __init__(
        self,
        cache: CacheManager,
        fetcher: BiomarkerFetcher,
        registry: PatternRegistry | None = None,
        executor: PatternExecutor | None = None,
    ) -> None:
        self.cache = cache
        self.fetcher = fetcher
        self.registry = registry or PatternRegistry()
        self.executor = executor or PatternExecutor()

    async def optimized_biomarkers(
        self, profile_id: str, use_case: str, time_range: str = "today"
    ) -> dict:
        """Scored result for *use_case*, served from cache when fresh."""
        pattern = self.registry.require(use_case)
        key = optimized_key(profile_id, use_case, time_range)

        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Returning cached biomarkers", extra={"key": key})
            return {**cached, "cached": True}

        fetched = await self.fetcher.fetch_biomarkers(
            profile_id,
            fields=pattern.biomarkers,
            optimization=pattern.optimization.type,
            time_range=time_range,
        )
        analysis = self.executor.execute_pattern(pattern, fetched)
        result = {
            "profile_id": profile_id,
            "use_case": use_case,
            "time_range": time_range,
            "biomarkers_requested": len(pattern.biomarkers),
            "optimization": pattern.optimization.model_dump(),
            "analysis": analysis,
            "generated_at": _now_iso(),
        }
        self.cache.set(key, result)
        return {**result, "cached": False}

    async def health_score(self, profile_id: str, day: str | None = None) -> dict:
        """Comprehensive health score for *profile_id* on *day* (default today)."""
        day = day or date_cls.today().isoformat()
        pattern = self.registry.require(HEALTH_SCORE_PATTERN)
        key = health_score_key(profile_id, day)

        cached = self.cache.get(key)
        if cached is not None:
            return {**cached, "cached": True}

        fetched = await self.fetcher.fetch_biomarkers(
            profile_id,
            fields=pattern.biomarkers,
            optimization=pattern.optimization.type,
            date=day,
        )
        analysis = self.executor.execute_pattern(pattern, fetched)
        result = {
            "profile_id": profile_id,
            "date": day,
            "score": analysis["score"],
            "readiness_level": analysis["readiness_level"],
            "grade": analysis["grade"],
            "components": analysis["components"],
            "priority_areas": analysis["priority_areas"],
            "calculated_at": analysis["calculated_at"],
        }
        self.cache.set(key, result)
        return {**result, "cached": False}

    async def execute_pattern(
        self, pattern_id: str, profile_id: str, time_range: str = "today"
    ) -> dict:
        """Live execution that bypasses the cache in both directions."""
        pattern = self.registry.require(pattern_id)
        fetched = await self.fetcher.fetch_biomarkers(
            profile_id,
            fields=pattern.biomarkers,
            optimization=pattern.optimization.type,
            time_range=time_range,
        )
        return {
            "profile_id": profile_id,
            "pattern_id": pattern_id,
            "result": self.executor.execute_pattern(pattern, fetched),
            "efficiency": self.registry.optimization_efficiency(pattern_id),
        }

    def read_resource(self, name: str) -> dict:
        if name not in RESOURCE_NAMES:
            raise UnknownResourceError(name)
        key = resource_key(name)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        if name == "patterns":
            content = self.registry.get_all_patterns()
        else:
            content = self.registry.documentation()
        self.cache.set(key, content, ttl=RESOURCE_TTL)
        return content

    def invalidate_profile(self, profile_id: str) -> dict[str, int]:
        """Drop every cached entry for *profile_id*; returns per-store counts.

        Service keys embed the bare id (``health_score:<id>:<date>``), so both
        that form and the ``profile:<id>`` prefix are cleared.
        """
        cleared = self.cache.invalidate_profile(profile_id)
        for store, count in self.cache.clear_pattern(f":{profile_id}:").items():
            cleared[store] = cleared.get(store, 0) + count
        logger.info("Profile cache invalidated", extra={"total_cleared": sum(cleared.values())})
        return cleared
