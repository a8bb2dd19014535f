"""Forward, reverse and IP-based geolocation via Nominatim and ipapi."""

import ipaddress
import logging

from forkcast.config import settings
from forkcast.errors import UpstreamServiceError
from forkcast.features import get_feature_flags, is_feature_enabled, require_feature
from forkcast.schemas import GeocodeResult, Location
from forkcast.services.cache import CacheService, cache_service
from forkcast.services.cache_keys import Namespace, generate_cache_key
from forkcast.services.providers import ProviderClient, provider_client

logger = logging.getLogger(__name__)

GEOLOCATION_TTL = 3600


def _address_fields(address: dict | None) -> dict:
    address = address or {}
    return {
        "city": address.get("city") or address.get("town") or address.get("village") or "",
        "region": address.get("state") or address.get("county") or "",
        "country": address.get("country") or "",
    }


def is_public_ip(ip: str | None) -> bool:
    if not ip:
        return False
    try:
        return ipaddress.ip_address(ip).is_global
    except ValueError:
        return False


class GeocodeService:
    """Geolocation lookups, cached under the geolocation namespace."""

    def __init__(
        self,
        cache: CacheService | None = None,
        providers: ProviderClient | None = None,
    ):
        self.cache = cache or cache_service
        self.providers = providers or provider_client

    async def _cached(self, parts: list, fetch, model):
        if not is_feature_enabled("enable_caching"):
            return await fetch()
        key = generate_cache_key(Namespace.GEOLOCATION, parts)
        return await self.cache.get_or_fetch(key, fetch, GEOLOCATION_TTL, model=model)

    async def geocode(self, query: str) -> GeocodeResult:
        """Resolve a free-text place name to coordinates."""

        async def fetch() -> GeocodeResult:
            data = await self.providers.get_json(
                "nominatim",
                f"{settings.nominatim_url}/search",
                params={"q": query, "format": "json", "addressdetails": 1, "limit": 1},
            )
            if not data or not data[0].get("lat") or not data[0].get("lon"):
                raise UpstreamServiceError("Location not found")
            return self._to_result(data[0])

        return await self._cached([query.lower().strip()], fetch, GeocodeResult)

    async def reverse_geocode(self, latitude: float, longitude: float) -> GeocodeResult:
        """Describe the place at the given coordinates (cached to 3 decimals)."""

        async def fetch() -> GeocodeResult:
            data = await self.providers.get_json(
                "nominatim",
                f"{settings.nominatim_url}/reverse",
                params={"format": "json", "lat": latitude, "lon": longitude, "zoom": 10},
            )
            if not data or not data.get("lat") or not data.get("lon"):
                raise UpstreamServiceError("Location information not found")
            return self._to_result(data)

        return await self._cached(
            [f"rev:{latitude:.3f},{longitude:.3f}"], fetch, GeocodeResult
        )

    async def locate_ip(self, ip: str | None = None) -> Location:
        """
        Location of a client IP address.

        Private or unknown addresses are looked up as the requesting host,
        which is the server itself.
        """
        require_feature(get_feature_flags(), "ip_geolocation", "IP geolocation")
        lookup_ip = ip if is_public_ip(ip) else None

        async def fetch() -> Location:
            path = f"/{lookup_ip}/json/" if lookup_ip else "/json/"
            data = await self.providers.get_json(
                "ipapi", f"{settings.ip_geolocation_url}{path}"
            )
            if not data or data.get("error") or not data.get("latitude") or not data.get("longitude"):
                raise UpstreamServiceError("Could not determine location from IP")
            return Location(
                latitude=data["latitude"],
                longitude=data["longitude"],
                city=data.get("city"),
                region=data.get("region"),
                country=data.get("country_name"),
            )

        parts = ["ip", lookup_ip] if lookup_ip else ["ip_geolocation"]
        return await self._cached(parts, fetch, Location)

    @staticmethod
    def _to_result(item: dict) -> GeocodeResult:
        try:
            return GeocodeResult(
                latitude=float(item["lat"]),
                longitude=float(item["lon"]),
                displayName=item.get("display_name", ""),
                **_address_fields(item.get("address")),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Unexpected geocoding payload: {e}")
            raise UpstreamServiceError("Geocoding service error")


geocode_service = GeocodeService()
