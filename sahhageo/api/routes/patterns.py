from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Path, Query

from sahhageo.api.dependencies import get_health_service
from sahhageo.api.schemas import (
    ErrorResponse,
    HealthScoreResponse,
    OptimizedBiomarkersResponse,
    PatternDetailResponse,
    PatternListResponse,
)
from sahhageo.services.health_service import HealthDataService
from sahhageo.services.patterns import categorize_pattern

router = APIRouter(prefix="/v1", tags=["patterns"])

_UPSTREAM_ERRORS = {
    404: {"model": ErrorResponse, "description": "Unknown use case or profile"},
    502: {"model": ErrorResponse, "description": "Sahha API failure"},
}


@router.get(
    "/patterns",
    summary="List GEO patterns",
    response_model=PatternListResponse,
)
async def list_patterns(service: HealthDataService = Depends(get_health_service)):
    """Every pattern with its biomarker count, optimization and category."""
    return service.read_resource("patterns")


@router.get(
    "/patterns/{pattern_id}",
    summary="Pattern detail",
    response_model=PatternDetailResponse,
    responses={404: {"model": ErrorResponse, "description": "Unknown pattern"}},
)
async def get_pattern(
    pattern_id: str = Path(..., description="Pattern id, e.g. morning_health_check"),
    service: HealthDataService = Depends(get_health_service),
):
    pattern = service.registry.require(pattern_id)
    return {
        **pattern.model_dump(include={
            "id", "name", "description", "intent", "biomarkers",
            "scoring_weights", "optimization", "clinical_significance",
        }),
        "category": categorize_pattern(pattern.id),
        "efficiency": service.registry.optimization_efficiency(pattern.id),
    }


@router.post(
    "/profiles/{profile_id}/patterns/{use_case}",
    summary="Optimized biomarkers for a use case",
    description=(
        "Fetch only the biomarkers the use case needs, score them and cache "
        "the result. Repeated calls within the pattern TTL are served from "
        "the cache."
    ),
    response_model=OptimizedBiomarkersResponse,
    responses=_UPSTREAM_ERRORS,
)
async def optimized_biomarkers(
    profile_id: str,
    use_case: str,
    time_range: str = Query("today", description="today, 7d, 14d, 30d or 90d"),
    service: HealthDataService = Depends(get_health_service),
):
    return await service.optimized_biomarkers(profile_id, use_case, time_range)


@router.get(
    "/profiles/{profile_id}/health-score",
    summary="Comprehensive health score",
    response_model=HealthScoreResponse,
    responses=_UPSTREAM_ERRORS,
)
async def health_score(
    profile_id: str,
    day: date | None = Query(None, alias="date", description="ISO date, default today"),
    service: HealthDataService = Depends(get_health_service),
):
    return await service.health_score(profile_id, day.isoformat() if day else None)
