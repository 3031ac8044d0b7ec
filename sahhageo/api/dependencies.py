from __future__ import annotations

from fastapi import Depends, Request

from sahhageo.services.cache_manager import CacheManager
from sahhageo.services.health_service import HealthDataService


def get_health_service(request: Request) -> HealthDataService:
    """The service built in the app lifespan."""
    return request.app.state.health_service


def get_cache_manager(
    service: HealthDataService = Depends(get_health_service),
) -> CacheManager:
    return service.cache
