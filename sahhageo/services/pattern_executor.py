"""Score fetched biomarkers against a pattern and build use-case output."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from sahhageo.services.clinical_ranges import (
    CLINICAL_RANGES,
    NEUTRAL_SCORE,
    normalize_biomarker,
    readiness_band,
)
from sahhageo.services.errors import PatternExecutionError
from sahhageo.services.metrics import PatternPerformance, PerformanceMetric
from sahhageo.services.patterns import OptimizationPattern

logger = logging.getLogger("sahhageo.patterns")

WORKOUT_LEVELS: tuple[tuple[int, str, str], ...] = (
    (80, "high_readiness", "high"),
    (65, "moderate_readiness", "moderate"),
    (50, "low_readiness", "low"),
)
WORKOUT_REST = ("rest_recommended", "rest")

STRESS_LEVELS: tuple[tuple[int, str], ...] = (
    (70, "low"),
    (50, "moderate"),
)

COPING_STRATEGIES = {
    "high": [
        "Box breathing for 5 minutes",
        "Step away from screens for 15 minutes",
        "Short walk outdoors",
    ],
    "moderate": [
        "Schedule regular breaks",
        "Light stretching or yoga",
    ],
    "low": ["Maintain current routine"],
}

HEALTH_GRADES: tuple[tuple[int, str], ...] = (
    (90, "A"),
    (80, "B"),
    (70, "C"),
    (60, "D"),
)

# Component scores below this are reported as priority areas.
PRIORITY_THRESHOLD = 60


def _collect_values(fetched: Iterable[Mapping[str, Any]] | Mapping[str, Any]) -> dict[str, Any]:
    """Flatten fetched records into ``{biomarker: value}``.

    Accepts either a mapping or a sequence of ``{"type": ..., "value": ...}``
    records; later records for the same type win.
    """
    if isinstance(fetched, Mapping):
        return {k: v for k, v in fetched.items() if v is not None}
    values: dict[str, Any] = {}
    for record in fetched:
        kind = record.get("type")
        if kind is None or record.get("value") is None:
            continue
        values[kind] = record["value"]
    return values


class PatternExecutor:
    """Turns raw biomarker values into a weighted readiness score."""

    def __init__(self, performance: PatternPerformance | None = None) -> None:
        self._performance = performance or PatternPerformance()

    def execute_pattern(
        self,
        pattern: OptimizationPattern,
        fetched: Iterable[Mapping[str, Any]] | Mapping[str, Any],
    ) -> dict:
        start = time.perf_counter()
        try:
            result = self._execute(pattern, _collect_values(fetched))
        except Exception as exc:
            elapsed_ms = (time.perf_counter() - start) * 1000
            self._performance.record(pattern.id, elapsed_ms, success=False)
            logger.error("Pattern execution failed: %s: %s", pattern.id, exc)
            if isinstance(exc, PatternExecutionError):
                raise
            raise PatternExecutionError(pattern.id, str(exc)) from exc
        elapsed_ms = (time.perf_counter() - start) * 1000
        self._performance.record(pattern.id, elapsed_ms, success=True)
        result["execution_time_ms"] = round(elapsed_ms, 2)
        logger.debug(
            "Pattern executed: %s",
            pattern.id,
            extra={"score": result["score"], "execution_time_ms": result["execution_time_ms"]},
        )
        return result

    def performance(self, pattern_id: str) -> PerformanceMetric:
        return self._performance.get(pattern_id)

    def performance_snapshot(self) -> dict[str, dict]:
        return self._performance.snapshot()

    # -- scoring -------------------------------------------------------------

    def _execute(self, pattern: OptimizationPattern, values: dict[str, Any]) -> dict:
        components: dict[str, dict] = {}
        for biomarker, weight in pattern.scoring_weights.items():
            if biomarker in values:
                score = normalize_biomarker(biomarker, values[biomarker])
                available = True
            else:
                score = NEUTRAL_SCORE
                available = False
            components[biomarker] = {
                "value": values.get(biomarker),
                "score": score,
                "weight": weight,
                "available": available,
            }

        total_weight = sum(c["weight"] for c in components.values())
        if total_weight > 0:
            score = round(sum(c["score"] * c["weight"] for c in components.values()) / total_weight)
        else:
            score = NEUTRAL_SCORE
        band = readiness_band(score)

        result = {
            "pattern": pattern.id,
            "name": pattern.name,
            "score": score,
            "readiness_level": band,
            "components": components,
            "data_completeness": round(
                sum(1 for c in components.values() if c["available"]) / len(components) * 100
            ) if components else 0,
            "calculated_at": datetime.now(timezone.utc).isoformat(),
        }
        result.update(self._use_case_output(pattern, score, band, components, values))
        return result

    def _use_case_output(
        self,
        pattern: OptimizationPattern,
        score: int,
        band: str,
        components: dict[str, dict],
        values: dict[str, Any],
    ) -> dict:
        if pattern.id == "morning_health_check":
            return self._morning(pattern, band, components)
        if pattern.id == "workout_readiness":
            return self._workout(pattern, score)
        if pattern.id == "sleep_optimization":
            return self._sleep(pattern, components, values)
        if pattern.id in ("stress_management", "stress_assessment"):
            return self._stress(pattern, score)
        if pattern.id == "health_score_calculation":
            return self._health_score(score, components)
        return {"priority_areas": _priority_areas(components)}

    @staticmethod
    def _morning(pattern: OptimizationPattern, band: str, components: dict[str, dict]) -> dict:
        recommendations = []
        for biomarker in _priority_areas(components):
            recommendations.append(f"Focus on improving {biomarker.replace('_', ' ')}")
        if not recommendations:
            recommendations.append("Maintain your current routine")
        return {
            "insight": pattern.insights.get(band, ""),
            "recommendations": recommendations,
        }

    @staticmethod
    def _workout(pattern: OptimizationPattern, score: int) -> dict:
        level, intensity = WORKOUT_REST
        for threshold, name, effort in WORKOUT_LEVELS:
            if score >= threshold:
                level, intensity = name, effort
                break
        return {
            "workout_level": level,
            "intensity": intensity,
            "recommendation": pattern.recommendations.get(level, ""),
        }

    @staticmethod
    def _sleep(
        pattern: OptimizationPattern, components: dict[str, dict], values: dict[str, Any]
    ) -> dict:
        areas = []
        for biomarker, component in components.items():
            if not component["available"]:
                continue
            clinical = CLINICAL_RANGES.get(biomarker)
            if clinical is not None:
                needs_work = clinical.below_optimal(values[biomarker])
            else:
                needs_work = component["score"] < PRIORITY_THRESHOLD
            if needs_work:
                areas.append({
                    "biomarker": biomarker,
                    "score": component["score"],
                    "suggestion": pattern.recommendations.get(
                        biomarker, pattern.recommendations.get("default", "")
                    ),
                })
        return {"optimization_areas": areas}

    @staticmethod
    def _stress(pattern: OptimizationPattern, score: int) -> dict:
        # Stress biomarkers are inverted, so a high score means low stress.
        level = next((name for threshold, name in STRESS_LEVELS if score >= threshold), "high")
        return {
            "stress_level": level,
            "recommendation": pattern.recommendations.get(level, ""),
            "coping_strategies": COPING_STRATEGIES[level],
        }

    @staticmethod
    def _health_score(score: int, components: dict[str, dict]) -> dict:
        grade = next((g for threshold, g in HEALTH_GRADES if score >= threshold), "F")
        return {"grade": grade, "priority_areas": _priority_areas(components)}


def _priority_areas(components: dict[str, dict]) -> list[str]:
    return [
        name for name, c in components.items()
        if c["available"] and c["score"] < PRIORITY_THRESHOLD
    ]
