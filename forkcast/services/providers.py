"""HTTP access to the third-party weather, geocoding and verification APIs."""

import logging
from typing import Any

import httpx

from forkcast.config import settings
from forkcast.errors import UpstreamServiceError
from forkcast.services.metrics import Metrics, metrics as default_metrics

logger = logging.getLogger(__name__)


class ProviderClient:
    """Thin wrapper over a shared httpx.AsyncClient that speaks JSON."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        metrics: Metrics | None = None,
    ):
        self._http_client = http_client
        self.metrics = metrics or default_metrics

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=settings.http_timeout,
                headers={"User-Agent": settings.provider_user_agent},
            )
        return self._http_client

    async def request_json(
        self,
        provider: str,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> Any:
        """
        Send a request and decode the JSON body.

        Raises:
            UpstreamServiceError: Transport failure, non-2xx status or a body
                that is not JSON
        """
        self.metrics.record_upstream_call(provider)
        try:
            response = await self.http_client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            self.metrics.record_upstream_error(provider)
            logger.error(f"{provider} returned HTTP {e.response.status_code}")
            raise UpstreamServiceError(f"{provider} request failed")
        except httpx.HTTPError as e:
            self.metrics.record_upstream_error(provider)
            logger.error(f"{provider} request error: {e}")
            raise UpstreamServiceError(f"{provider} request failed")
        except ValueError as e:
            self.metrics.record_upstream_error(provider)
            logger.error(f"{provider} returned a malformed payload: {e}")
            raise UpstreamServiceError(f"{provider} returned a malformed payload")

    async def get_json(self, provider: str, url: str, **kwargs: Any) -> Any:
        return await self.request_json(provider, "GET", url, **kwargs)

    async def post_json(self, provider: str, url: str, **kwargs: Any) -> Any:
        return await self.request_json(provider, "POST", url, **kwargs)

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None


provider_client = ProviderClient()
