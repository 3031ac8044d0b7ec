from __future__ import annotations

from fastapi import APIRouter, Depends

from sahhageo.api.dependencies import get_cache_manager, get_health_service
from sahhageo.api.schemas import InvalidationResponse, OptimizeResponse
from sahhageo.services.cache_manager import CacheManager
from sahhageo.services.health_service import HealthDataService

router = APIRouter(prefix="/v1/cache", tags=["cache"])


@router.delete(
    "/profiles/{profile_id}",
    summary="Invalidate a profile",
    description="Delete every cached entry whose key mentions the profile.",
    response_model=InvalidationResponse,
)
async def invalidate_profile(
    profile_id: str, service: HealthDataService = Depends(get_health_service)
):
    cleared = service.invalidate_profile(profile_id)
    return {
        "profile_id": profile_id,
        "cleared": cleared,
        "total_cleared": sum(cleared.values()),
    }


@router.post(
    "/optimize",
    summary="Run cache maintenance",
    description="Sweep expired entries from every store.",
    response_model=OptimizeResponse,
)
async def optimize(cache: CacheManager = Depends(get_cache_manager)):
    return cache.optimize()
