"""Pydantic models for the domain data and API request/response validation."""

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator


class Location(BaseModel):
    """Geographic coordinates with optional place names."""

    latitude: float
    longitude: float
    city: str | None = None
    region: str | None = None
    country: str | None = None


class GeocodeResult(Location):
    """Location returned by forward or reverse geocoding."""

    displayName: str


class HourlyForecast(BaseModel):
    """One hour of forecast data."""

    time: str
    temperature: float
    weatherCode: int
    conditionText: str


class Weather(BaseModel):
    """Current weather for a location."""

    temperature: float = Field(..., description="Temperature in degrees Celsius")
    condition: str = Field(..., description="WMO weather code or 'unknown'")
    conditionText: str = Field(..., description="Localized condition description")
    location: str
    humidity: float | None = None
    uvIndex: float | None = None
    hourlyForecast: list[HourlyForecast] | None = Field(default=None, max_length=6)


class FoodRecommendation(BaseModel):
    """Six dish names and why they were picked."""

    foods: list[str] = Field(..., min_length=6, max_length=6)
    reasoning: str = Field(..., min_length=1)

    @field_validator("foods")
    @classmethod
    def food_names_must_not_be_blank(cls, v: list[str]) -> list[str]:
        """Strip names and reject empty ones."""
        names = [name.strip() for name in v]
        if any(not name for name in names):
            raise ValueError("Food names cannot be empty")
        return names


class FoodInfo(BaseModel):
    """Details about a single dish."""

    name: str
    description: str
    ingredients: list[str]
    preparation: str


class RecommendationRequest(BaseModel):
    """Request body for the recommendations endpoint."""

    weather: Weather | None = None
    excludedFoods: list[str] | None = None
    locale: str | None = None
    numberOfDiners: int | None = Field(default=None, gt=0)
    mealType: Literal["single", "full"] | None = None
    specialRequirements: str | None = None
    verificationToken: str | None = Field(
        default=None,
        validation_alias=AliasChoices("verificationToken", "recaptchaToken"),
    )


class FoodDetailsRequest(BaseModel):
    """Request body for the food details endpoint."""

    name: str = Field(..., min_length=1, description="Name of the dish")
    locale: str | None = None
    verificationToken: str | None = Field(
        default=None,
        validation_alias=AliasChoices("verificationToken", "recaptchaToken"),
    )

    @field_validator("name")
    @classmethod
    def name_must_not_be_whitespace_only(cls, v: str) -> str:
        """Validate that the name is not whitespace-only."""
        if not v.strip():
            raise ValueError("Food name is required")
        return v


class VerificationResult(BaseModel):
    """Outcome of a human-verification check."""

    success: bool
    score: float | None = None
    action: str | None = None
    challengeTimestamp: str | None = None
    hostname: str | None = None
    errorCodes: list[str] | None = None


class ErrorResponse(BaseModel):
    """Error response body."""

    error: str = Field(..., description="Error message")
    details: Any | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="ok")


class NamespaceStats(BaseModel):
    """Cache counters for one namespace."""

    hits: int
    misses: int
    errors: int
    hit_rate_percent: float


class AdmissionStats(BaseModel):
    """Admission controller state for one upstream configuration."""

    active: int
    queued: int
    max_concurrent: int


class StatsResponse(BaseModel):
    """Cache and upstream statistics response."""

    cache: dict[str, NamespaceStats]
    upstream_calls: dict[str, int]
    upstream_errors: dict[str, int]
    admission: dict[str, AdmissionStats]
    store_circuit: dict[str, Any]
