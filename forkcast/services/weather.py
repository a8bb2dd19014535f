"""Current weather and short forecast from Open-Meteo."""

import logging

from forkcast.config import settings
from forkcast.errors import UpstreamServiceError
from forkcast.features import is_feature_enabled
from forkcast.i18n import weather_condition_text
from forkcast.schemas import HourlyForecast, Weather
from forkcast.services.cache import CacheService, cache_service
from forkcast.services.cache_keys import Namespace, generate_cache_key
from forkcast.services.providers import ProviderClient, provider_client

logger = logging.getLogger(__name__)

WEATHER_TTL = 600
FORECAST_HOURS = 6

# WMO weather interpretation codes with a translation entry
VALID_WEATHER_CODES = frozenset(
    [0, 1, 2, 3, 45, 48, 51, 53, 55, 56, 57, 61, 63, 65, 66, 67,
     71, 73, 75, 77, 80, 81, 82, 85, 86, 95, 96, 99]
)


def get_weather_condition(code: int | None) -> str:
    """Map a WMO weather code to its condition key, or 'unknown'."""
    if code in VALID_WEATHER_CODES:
        return str(code)
    return "unknown"


def get_weather_condition_text(code: int | None, locale: str = "en") -> str:
    return weather_condition_text(get_weather_condition(code), locale)


def short_location_name(display_name: str) -> str:
    """First two comma-separated parts of a Nominatim display name."""
    return ",".join(display_name.split(",")[:2])


class WeatherService:
    """Fetches weather for coordinates, cached per rounded position and locale."""

    def __init__(
        self,
        cache: CacheService | None = None,
        providers: ProviderClient | None = None,
    ):
        self.cache = cache or cache_service
        self.providers = providers or provider_client

    async def get_weather(self, latitude: float, longitude: float, locale: str = "en") -> Weather:
        """
        Weather for a location, going through the cache when caching is on.

        Coordinates are rounded to 2 decimals for the cache key so nearby
        requests share an entry.
        """

        async def fetch() -> Weather:
            return await self._fetch_weather(latitude, longitude, locale)

        if not is_feature_enabled("enable_caching"):
            return await fetch()

        key = generate_cache_key(
            Namespace.WEATHER,
            [f"{latitude:.2f}", f"{longitude:.2f}", locale],
        )
        return await self.cache.get_or_fetch(key, fetch, WEATHER_TTL, model=Weather)

    async def _fetch_weather(self, latitude: float, longitude: float, locale: str) -> Weather:
        data = await self.providers.get_json(
            "open-meteo",
            settings.open_meteo_url,
            params={
                "latitude": latitude,
                "longitude": longitude,
                "current": "temperature_2m,weather_code,relative_humidity_2m,uv_index",
                "hourly": "temperature_2m,weather_code",
                "forecast_hours": FORECAST_HOURS,
                "timezone": "auto",
            },
        )
        geo = await self.providers.get_json(
            "nominatim",
            f"{settings.nominatim_url}/reverse",
            params={"format": "json", "lat": latitude, "lon": longitude, "zoom": 10},
        )

        try:
            current = data["current"]
            code = current["weather_code"]
            location = short_location_name(geo["display_name"])
            weather = Weather(
                temperature=current["temperature_2m"],
                condition=get_weather_condition(code),
                conditionText=get_weather_condition_text(code, locale),
                location=location,
                humidity=current.get("relative_humidity_2m"),
                uvIndex=current.get("uv_index"),
                hourlyForecast=self._hourly_forecast(data.get("hourly"), locale),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Unexpected weather payload: {e}")
            raise UpstreamServiceError("Failed to fetch weather data from API")

        logger.info(f"Fetched weather for {latitude},{longitude}: {weather.condition}")
        return weather

    @staticmethod
    def _hourly_forecast(hourly: dict | None, locale: str) -> list[HourlyForecast]:
        if not hourly:
            return []
        entries = zip(hourly["time"], hourly["temperature_2m"], hourly["weather_code"])
        return [
            HourlyForecast(
                time=time,
                temperature=temperature,
                weatherCode=code,
                conditionText=get_weather_condition_text(code, locale),
            )
            for time, temperature, code in list(entries)[:FORECAST_HOURS]
        ]


weather_service = WeatherService()
