from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from sahhageo.api.dependencies import get_health_service
from sahhageo.api.exception_handlers import (
    http_exception_handler,
    pattern_exception_handler,
    sahha_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from sahhageo.api.middleware import RequestLoggingMiddleware
from sahhageo.api.routes.cache import router as cache_router
from sahhageo.api.routes.patterns import router as patterns_router
from sahhageo.api.schemas import HealthResponse
from sahhageo.config import settings
from sahhageo.logging_config import setup_logging
from sahhageo.sdk.client import AsyncSahhaClient
from sahhageo.sdk.exceptions import SahhaError
from sahhageo.services.cache_manager import CacheManager
from sahhageo.services.errors import SahhaGeoError
from sahhageo.services.health_service import HealthDataService
from sahhageo.services.metrics import request_metrics

logger = logging.getLogger("sahhageo")

_DESCRIPTION = """\
Cache and optimization layer in front of the Sahha health data API.

Each **GEO pattern** names the handful of biomarkers (out of ~184) needed
to answer one health question, such as a morning check-in or workout
readiness. Requests fetch only those biomarkers, score them 0-100 against
clinical ranges and cache the result with a pattern-specific TTL.

### Caching

Results are held in four in-memory stores (biomarker, pattern, resource,
insight) chosen from the cache key. `/metrics` reports hit rate and
per-pattern execution stats.
"""

_OPENAPI_TAGS = [
    {"name": "system", "description": "Health checks and operational endpoints."},
    {
        "name": "patterns",
        "description": "GEO pattern catalog and cached, scored biomarker lookups.",
    },
    {"name": "cache", "description": "Cache invalidation and maintenance."},
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level, settings.log_format)

    client = AsyncSahhaClient(
        settings.sahha_api_url,
        settings.sahha_account_token,
        timeout=settings.sahha_timeout,
    )
    cache = CacheManager.from_settings(settings)
    if settings.cache_warm_on_startup:
        cache.warm_cache()
    cache.start()
    app.state.health_service = HealthDataService(cache, client)
    logger.info("Sahha GEO API started", extra={"sahha_api_url": settings.sahha_api_url})
    try:
        yield
    finally:
        await cache.stop()
        await client.close()


app = FastAPI(
    title="Sahha GEO API",
    version="0.1.0",
    summary="Pattern-optimized, cached access to Sahha biomarkers",
    description=_DESCRIPTION,
    openapi_tags=_OPENAPI_TAGS,
    lifespan=lifespan,
)

# Exception handlers
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(SahhaGeoError, pattern_exception_handler)
app.add_exception_handler(SahhaError, sahha_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# CORS
origins = [o.strip() for o in settings.cors_origins.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request logging
app.add_middleware(RequestLoggingMiddleware)

app.include_router(patterns_router)
app.include_router(cache_router)


@app.get(
    "/health",
    tags=["system"],
    summary="Health check",
    description="Report pattern registry size and per-store cache health.",
    response_model=HealthResponse,
)
async def health(service: HealthDataService = Depends(get_health_service)):
    stats = service.cache.get_stats()
    return {
        "status": "ok",
        "patterns_loaded": len(service.registry),
        "cache": {
            name: {"keys": store["keys"], "default_ttl": store["stats"]["default_ttl"]}
            for name, store in stats["caches"].items()
        },
        "hit_rate": stats["requests"]["hit_rate"],
        "uptime_seconds": request_metrics.uptime_seconds(),
    }


@app.get(
    "/metrics",
    tags=["system"],
    summary="Application metrics",
    description="Request counters, latency percentiles, cache statistics "
    "and per-pattern execution performance.",
)
async def get_metrics(service: HealthDataService = Depends(get_health_service)):
    snap = request_metrics.snapshot()
    snap["cache"] = service.cache.get_stats()
    snap["patterns"] = service.executor.performance_snapshot()
    snap["refresh_candidates"] = service.cache.refresh_candidates()
    return snap
