"""Pydantic response models for OpenAPI documentation."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Structured error returned by all non-2xx responses."""

    error: bool = Field(True, description="Always true for error responses")
    status_code: int = Field(..., description="HTTP status code")
    detail: str = Field(..., description="Human-readable error message")


# ---------------------------------------------------------------------------
# /health
# ---------------------------------------------------------------------------


class StoreHealth(BaseModel):
    """Live key count for one cache partition."""

    keys: int = Field(..., description="Number of live entries")
    default_ttl: int = Field(..., description="Store default TTL in seconds")


class HealthResponse(BaseModel):
    status: str = Field(..., description="Overall status: always 'ok' when serving")
    patterns_loaded: int = Field(..., description="Number of GEO patterns in the registry")
    cache: dict[str, StoreHealth] = Field(..., description="Per-store cache health")
    hit_rate: float = Field(..., description="Cache hit rate as a percentage")
    uptime_seconds: float = Field(..., description="Seconds since the process started")


# ---------------------------------------------------------------------------
# /v1/patterns
# ---------------------------------------------------------------------------


class OptimizationInfo(BaseModel):
    type: str
    reduction: str
    response_time: str
    cache_strategy: str | None = None


class PatternSummary(BaseModel):
    id: str
    name: str
    description: str
    intent: str
    biomarker_count: int
    optimization: OptimizationInfo
    category: str


class PatternListResponse(BaseModel):
    """All patterns, grouped by category."""

    total: int = Field(..., description="Number of patterns")
    total_biomarkers: int = Field(..., description="Size of the full Sahha biomarker catalog")
    patterns: dict[str, PatternSummary]
    categories: dict[str, list[str]]


class EfficiencyInfo(BaseModel):
    reduction: int = Field(..., description="Percent of the catalog not requested")
    efficiency: str = Field(..., description="Excellent, Very Good, Good, Moderate or Limited")
    biomarkers_used: int
    total_available: int


class PatternDetailResponse(BaseModel):
    """A single pattern with its weights and efficiency."""

    id: str
    name: str
    description: str
    intent: str
    biomarkers: list[str]
    scoring_weights: dict[str, float]
    optimization: OptimizationInfo
    clinical_significance: str
    category: str
    efficiency: EfficiencyInfo


# ---------------------------------------------------------------------------
# /v1/profiles
# ---------------------------------------------------------------------------


class OptimizedBiomarkersResponse(BaseModel):
    profile_id: str
    use_case: str
    time_range: str
    biomarkers_requested: int
    optimization: OptimizationInfo
    analysis: dict[str, Any] = Field(..., description="Scored pattern output")
    generated_at: str
    cached: bool = Field(..., description="True when served from the cache")


class HealthScoreResponse(BaseModel):
    profile_id: str
    date: str
    score: int = Field(..., description="Weighted score 0-100")
    readiness_level: str
    grade: str
    components: dict[str, Any]
    priority_areas: list[str]
    calculated_at: str
    cached: bool


# ---------------------------------------------------------------------------
# /v1/cache
# ---------------------------------------------------------------------------


class InvalidationResponse(BaseModel):
    profile_id: str
    cleared: dict[str, int] = Field(..., description="Deleted entries per store")
    total_cleared: int


class OptimizeResponse(BaseModel):
    optimized: bool
    cleared_entries: int | None = None
    timestamp: str | None = None
    error: str | None = None
