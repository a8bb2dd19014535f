"""Pytest fixtures for the food recommendation service tests."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from forkcast.services.cache import CacheService
from forkcast.services.circuit_breaker import CircuitBreaker
from forkcast.services.food import FoodService
from forkcast.services.geocode import GeocodeService
from forkcast.services.llm import LLMService, ModelConfig
from forkcast.services.metrics import Metrics
from forkcast.services.providers import ProviderClient
from forkcast.services.recaptcha import RecaptchaVerifier
from forkcast.services.redis_connector import RedisConnector
from forkcast.services.weather import WeatherService

OPEN_METEO_RESPONSE = {
    "current": {
        "temperature_2m": 28.4,
        "weather_code": 3,
        "relative_humidity_2m": 80,
        "uv_index": 5.2,
    },
    "hourly": {
        "time": [f"2026-10-17T{hour:02d}:00" for hour in range(8)],
        "temperature_2m": [28.4, 28.1, 27.5, 27.0, 26.2, 25.9, 25.5, 25.1],
        "weather_code": [3, 3, 61, 61, 63, 80, 95, 0],
    },
}

NOMINATIM_REVERSE_RESPONSE = {
    "lat": "21.0285",
    "lon": "105.8542",
    "display_name": "Hoàn Kiếm, Hà Nội, Việt Nam",
    "address": {"city": "Hà Nội", "state": "Hà Nội", "country": "Việt Nam"},
}

NOMINATIM_SEARCH_RESPONSE = [
    {
        "lat": "48.8566",
        "lon": "2.3522",
        "display_name": "Paris, Île-de-France, France",
        "address": {"town": "Paris", "state": "Île-de-France", "country": "France"},
    }
]

IPAPI_RESPONSE = {
    "latitude": 10.8231,
    "longitude": 106.6297,
    "city": "Ho Chi Minh City",
    "region": "Ho Chi Minh",
    "country_name": "Vietnam",
}

RECOMMENDATION_PAYLOAD = {
    "foods": ["Phở", "Bún chả", "Bánh xèo", "Chả cá", "Bún riêu", "Chè"],
    "reasoning": "Warm broths and fresh herbs suit a humid overcast day in Hanoi.",
}

FOOD_INFO_PAYLOAD = {
    "name": "Phở",
    "description": "Vietnamese noodle soup with a slow-simmered beef broth.",
    "ingredients": ["Rice noodles", "Beef", "Star anise", "Ginger", "Herbs"],
    "preparation": "Simmer bones with spices, then pour over noodles and sliced beef.",
}


@pytest.fixture(autouse=True)
def clean_feature_env(monkeypatch):
    """Start every test with all feature flags at their defaults."""
    import os

    for name in list(os.environ):
        if name.startswith("FEATURE_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def set_features(monkeypatch):
    """Set feature flags by field name, e.g. set_features(enable_caching=False)."""

    def _set(**flags: bool) -> None:
        for name, enabled in flags.items():
            monkeypatch.setenv(f"FEATURE_{name.upper()}", "true" if enabled else "false")

    return _set


@pytest.fixture
def redis_store():
    """Backing dict for the mock Redis client."""
    return {}


@pytest.fixture
def mock_redis(redis_store):
    """Mock async Redis client backed by a dict."""
    mock = MagicMock()

    async def get(key):
        return redis_store.get(key)

    async def set_(key, value, ex=None):
        redis_store[key] = value
        return True

    async def delete(*keys):
        return sum(1 for key in keys if redis_store.pop(key, None) is not None)

    async def scan_iter(match=None):
        prefix = (match or "*").rstrip("*")
        for key in list(redis_store):
            if key.startswith(prefix):
                yield key

    mock.get = AsyncMock(side_effect=get)
    mock.set = AsyncMock(side_effect=set_)
    mock.delete = AsyncMock(side_effect=delete)
    mock.scan_iter = MagicMock(side_effect=scan_iter)
    mock.ping = AsyncMock(return_value=True)
    mock.aclose = AsyncMock()
    return mock


@pytest.fixture
def connector(mock_redis):
    """Connector that hands out the mock client instead of dialing Redis."""
    connector = RedisConnector(redis_url="redis://test:6379", ready_timeout=0.5)
    connector._create_client = MagicMock(return_value=mock_redis)
    return connector


@pytest.fixture
def test_metrics():
    return Metrics()


@pytest.fixture
def cache(connector, test_metrics):
    return CacheService(
        connector=connector,
        circuit=CircuitBreaker(name="test-redis"),
        metrics=test_metrics,
    )


@pytest.fixture
def provider_requests():
    """Every request sent to a fake provider, in order."""
    return []


def fake_provider(request: httpx.Request) -> httpx.Response:
    """Answer like Open-Meteo, Nominatim, ipapi and reCAPTCHA would."""
    host = request.url.host
    path = request.url.path
    if host == "api.open-meteo.com":
        return httpx.Response(200, json=OPEN_METEO_RESPONSE)
    if host == "nominatim.openstreetmap.org" and path == "/reverse":
        return httpx.Response(200, json=NOMINATIM_REVERSE_RESPONSE)
    if host == "nominatim.openstreetmap.org" and path == "/search":
        return httpx.Response(200, json=NOMINATIM_SEARCH_RESPONSE)
    if host == "ipapi.co":
        return httpx.Response(200, json=IPAPI_RESPONSE)
    if host == "www.google.com":
        return httpx.Response(
            200,
            json={"success": True, "score": 0.9, "action": "getRecommendations"},
        )
    return httpx.Response(404, json={"error": "not found"})


@pytest.fixture
def provider_handler():
    """Replaceable handler; tests can swap in a failing one."""
    return {"handler": fake_provider}


@pytest.fixture
async def providers(provider_requests, provider_handler, test_metrics):
    def handler(request: httpx.Request) -> httpx.Response:
        provider_requests.append(request)
        return provider_handler["handler"](request)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = ProviderClient(http_client=http_client, metrics=test_metrics)
    yield client
    await client.close()


def build_completion(content):
    """Build an object shaped like an OpenAI chat completion."""
    mock_message = MagicMock()
    mock_message.content = content
    mock_choice = MagicMock()
    mock_choice.message = mock_message
    mock_response = MagicMock()
    mock_response.choices = [mock_choice]
    return mock_response


@pytest.fixture
def make_completion():
    return build_completion


@pytest.fixture
def mock_openai_client():
    """Mock AsyncOpenAI client returning a recommendation payload."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=build_completion(json.dumps(RECOMMENDATION_PAYLOAD))
    )
    return client


@pytest.fixture
def llm(mock_openai_client, test_metrics):
    service = LLMService(
        model_configs={
            "openai": ModelConfig(
                api_key="test-key",
                base_url="http://llm.test/v1",
                max_concurrent_requests=2,
            )
        },
        metrics=test_metrics,
    )
    service.rate_limit_cooldown = 0
    service.clients["openai"] = mock_openai_client
    return service


@pytest.fixture
def weather(cache, providers):
    return WeatherService(cache=cache, providers=providers)


@pytest.fixture
def geocoder(cache, providers):
    return GeocodeService(cache=cache, providers=providers)


@pytest.fixture
def food(llm, cache):
    return FoodService(llm=llm, cache=cache)


@pytest.fixture
def verifier(providers):
    return RecaptchaVerifier(providers=providers)


@pytest.fixture
async def client(weather, geocoder, food, verifier, llm, test_metrics):
    """Async HTTP client for the FastAPI app wired to the fakes."""
    with patch("forkcast.api.routes.weather_service", weather), \
         patch("forkcast.api.routes.geocode_service", geocoder), \
         patch("forkcast.api.routes.food_service", food), \
         patch("forkcast.api.routes.recaptcha_verifier", verifier), \
         patch("forkcast.api.routes.llm_service", llm), \
         patch("forkcast.api.routes.metrics", test_metrics):
        from forkcast.main import app
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            yield c


@pytest.fixture
def hanoi_weather():
    """Weather payload as a client would send it with a recommendation request."""
    return {
        "temperature": 28.4,
        "condition": "3",
        "conditionText": "Overcast",
        "location": "Hoàn Kiếm, Hà Nội",
        "humidity": 80,
        "uvIndex": 5.2,
    }


@pytest.fixture
def food_info_payload():
    return dict(FOOD_INFO_PAYLOAD)
