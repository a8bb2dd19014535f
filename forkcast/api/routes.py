"""API routes for the food recommendation service."""

import logging
import math

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from forkcast.config import settings
from forkcast.errors import (
    FeatureDisabledError,
    ForkcastError,
    RateLimitError,
    RequestValidationFailed,
    UpstreamServiceError,
)
from forkcast.features import FeatureFlags, get_feature_flags, require_feature
from forkcast.schemas import (
    ErrorResponse,
    FoodDetailsRequest,
    FoodInfo,
    FoodRecommendation,
    GeocodeResult,
    HealthResponse,
    Location,
    RecommendationRequest,
    StatsResponse,
    Weather,
)
from forkcast.services.circuit_breaker import store_circuit
from forkcast.services.food import food_service
from forkcast.services.geocode import geocode_service
from forkcast.services.llm import llm_service
from forkcast.services.metrics import metrics
from forkcast.services.recaptcha import recaptcha_verifier
from forkcast.services.weather import weather_service

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    403: {"model": ErrorResponse, "description": "Feature disabled"},
    500: {"model": ErrorResponse, "description": "Upstream or internal failure"},
}


def error_response(status_code: int, error: str, details=None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def domain_error_response(e: ForkcastError, fallback: str) -> JSONResponse:
    """Map a domain error to its status; upstream detail stays in the logs."""
    if isinstance(e, RateLimitError):
        return error_response(e.status_code, e.message)
    if isinstance(e, UpstreamServiceError):
        return error_response(e.status_code, fallback)
    return error_response(e.status_code, e.message, e.details)


def parse_coordinates(lat: str | None, lon: str | None) -> tuple[float, float]:
    """Parse lat/lon query strings, collecting per-field errors."""
    errors = {}
    values = {}
    for field, raw, label, limit in (
        ("lat", lat, "Latitude", 90.0),
        ("lon", lon, "Longitude", 180.0),
    ):
        try:
            value = float(raw)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            errors[field] = f"{label} must be a valid number"
            continue
        if not math.isfinite(value) or abs(value) > limit:
            errors[field] = f"{label} must be between -{limit:g} and {limit:g}"
            continue
        values[field] = value

    if errors:
        raise RequestValidationFailed("Invalid query parameters", details=errors)
    return values["lat"], values["lon"]


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def check_recommendation_options(flags: FeatureFlags, body: RecommendationRequest) -> None:
    """Reject optional inputs whose feature is switched off."""
    if body.excludedFoods and not flags.food_exclusions:
        raise FeatureDisabledError("Food exclusions")
    if body.numberOfDiners and body.numberOfDiners > 1 and not flags.number_of_diners:
        raise FeatureDisabledError("Number of diners")
    if body.mealType and not flags.meal_type_selection:
        raise FeatureDisabledError("Meal type selection")
    if body.specialRequirements and body.specialRequirements.strip():
        if not (flags.extended_settings and flags.special_requirements):
            raise FeatureDisabledError("Special requirements")


@router.post("/recommendations", response_model=FoodRecommendation, responses=ERROR_RESPONSES)
async def recommendations(body: RecommendationRequest):
    """
    Recommend six dishes for the given weather and preferences.

    Optional inputs are rejected with 403 when their feature is off, and the
    request must pass human verification when that feature is on.
    """
    fallback = "Failed to generate food recommendations"
    try:
        flags = get_feature_flags()
        require_feature(flags, "food_recommendations", "Food recommendations")

        if flags.use_weather_for_recommendations and body.weather is None:
            raise RequestValidationFailed("Weather data is required for food recommendations")

        check_recommendation_options(flags, body)
        await recaptcha_verifier.require(body.verificationToken, "getRecommendations")

        return await food_service.get_food_recommendations(
            body.weather,
            excluded_foods=body.excludedFoods,
            locale=body.locale,
            number_of_diners=body.numberOfDiners,
            meal_type=body.mealType,
            special_requirements=body.specialRequirements,
        )
    except ForkcastError as e:
        logger.error(f"Recommendation API error: {e}")
        return domain_error_response(e, fallback)
    except Exception as e:
        logger.exception(f"Unexpected error generating recommendations: {e}")
        return error_response(500, fallback)


@router.post("/food-details", response_model=FoodInfo, responses=ERROR_RESPONSES)
async def food_details(body: FoodDetailsRequest):
    """Describe a dish: ingredients and how it is prepared."""
    fallback = "Failed to get food details"
    try:
        flags = get_feature_flags()
        require_feature(flags, "food_details", "Food details")
        await recaptcha_verifier.require(body.verificationToken, "getFoodDetails")

        return await food_service.get_food_details(
            body.name.strip(), body.locale or settings.default_locale
        )
    except ForkcastError as e:
        logger.error(f"Food details API error: {e}")
        return domain_error_response(e, fallback)
    except Exception as e:
        logger.exception(f"Unexpected error getting food details: {e}")
        return error_response(500, fallback)


@router.get("/weather", response_model=Weather, responses=ERROR_RESPONSES)
async def weather(lat: str | None = None, lon: str | None = None, locale: str | None = None):
    """Current weather and a six-hour forecast for a coordinate pair."""
    fallback = "Failed to fetch weather data"
    try:
        latitude, longitude = parse_coordinates(lat, lon)
        return await weather_service.get_weather(latitude, longitude, locale or "en")
    except ForkcastError as e:
        logger.error(f"Weather API error: {e}")
        return domain_error_response(e, fallback)
    except Exception as e:
        logger.exception(f"Unexpected error fetching weather: {e}")
        return error_response(500, fallback)


@router.get("/geocode", response_model=GeocodeResult, responses=ERROR_RESPONSES)
async def geocode(q: str | None = None, lat: str | None = None, lon: str | None = None):
    """Forward geocode ?q=, or reverse geocode ?lat=&lon=."""
    if lat and lon:
        fallback = "Failed to reverse geocode coordinates"
        try:
            latitude, longitude = parse_coordinates(lat, lon)
            return await geocode_service.reverse_geocode(latitude, longitude)
        except ForkcastError as e:
            logger.error(f"Reverse geocoding error: {e}")
            return domain_error_response(e, fallback)
        except Exception as e:
            logger.exception(f"Unexpected reverse geocoding error: {e}")
            return error_response(500, fallback)

    fallback = "Failed to geocode location"
    try:
        if not q or not q.strip():
            raise RequestValidationFailed(
                "Invalid query parameters", details={"q": "Location query is required"}
            )
        return await geocode_service.geocode(q)
    except ForkcastError as e:
        logger.error(f"Geocoding error: {e}")
        return domain_error_response(e, fallback)
    except Exception as e:
        logger.exception(f"Unexpected geocoding error: {e}")
        return error_response(500, fallback)


@router.get("/ip-geolocation", response_model=Location, responses=ERROR_RESPONSES)
async def ip_geolocation(request: Request):
    """Approximate location of the caller's IP address."""
    fallback = "Failed to get location from IP address"
    try:
        return await geocode_service.locate_ip(client_ip(request))
    except ForkcastError as e:
        logger.error(f"IP geolocation error: {e}")
        return domain_error_response(e, fallback)
    except Exception as e:
        logger.exception(f"Unexpected IP geolocation error: {e}")
        return error_response(500, fallback)


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="ok")


@router.get("/stats", response_model=StatsResponse)
async def stats() -> StatsResponse:
    """Cache hit rates, upstream traffic and admission queue depth."""
    return StatsResponse(
        **metrics.get_stats(),
        admission=llm_service.admission.get_status(),
        store_circuit=store_circuit.get_status(),
    )
