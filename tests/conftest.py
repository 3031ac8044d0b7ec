from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from sahhageo.api.dependencies import get_health_service
from sahhageo.api.main import app
from sahhageo.services.cache_manager import CacheManager
from sahhageo.services.health_service import HealthDataService

SAMPLE_BIOMARKERS = [
    {"type": "sleep_duration", "value": 480},
    {"type": "sleep_quality", "value": 0.85},
    {"type": "recovery_heart_rate", "value": 60},
    {"type": "heart_rate_variability", "value": 60},
    {"type": "stress_level", "value": 0.3},
    {"type": "energy_level", "value": 0.8},
]


@pytest.fixture
def fetcher():
    mock = AsyncMock()
    mock.fetch_biomarkers.return_value = list(SAMPLE_BIOMARKERS)
    return mock


@pytest.fixture
def cache_manager():
    return CacheManager()


@pytest.fixture
def service(cache_manager, fetcher):
    return HealthDataService(cache_manager, fetcher)


@pytest.fixture
async def client(service):
    app.dependency_overrides[get_health_service] = lambda: service
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
