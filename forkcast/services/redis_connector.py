"""Shared, lazily created Redis connection."""

import asyncio
import logging
import time

import redis
from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import AbstractBackoff

from forkcast.config import settings

logger = logging.getLogger(__name__)


class LinearBackoff(AbstractBackoff):
    """Wait attempt * step seconds between reconnects, capped."""

    def __init__(self, step: float = 0.1, cap: float = 10.0):
        self._step = step
        self._cap = cap

    def compute(self, failures: int) -> float:
        return min(failures * self._step, self._cap)


class RedisConnector:
    """
    Owns the single process-wide Redis client.

    acquire() hands out the shared client, connecting on first use. Callers
    that arrive while a connection attempt is running wait on that attempt
    instead of opening their own. If Redis does not answer within the ready
    timeout the client is returned anyway and operations become best effort;
    after such a failed check the client is handed out without another ping
    until recheck_interval has passed.
    """

    def __init__(
        self,
        redis_url: str | None = None,
        ready_timeout: float | None = None,
        recheck_interval: float | None = None,
    ):
        self.redis_url = redis_url if redis_url is not None else settings.redis_url
        self.ready_timeout = (
            ready_timeout if ready_timeout is not None else settings.redis_ready_timeout
        )
        self.recheck_interval = (
            recheck_interval
            if recheck_interval is not None
            else settings.redis_recheck_interval
        )
        self._client: Redis | None = None
        self._is_ready = False
        self._connecting: asyncio.Event | None = None
        self._failed_check_at: float | None = None

    @property
    def is_ready(self) -> bool:
        return self._client is not None and self._is_ready

    @property
    def connecting(self) -> bool:
        return self._connecting is not None

    def _create_client(self) -> Redis:
        """Build a client from REDIS_URL or the discrete host settings."""
        retry = Retry(
            LinearBackoff(settings.redis_retry_step, settings.redis_retry_cap),
            settings.redis_max_retries,
        )
        options = {
            "socket_connect_timeout": settings.redis_connect_timeout,
            "retry": retry,
            "retry_on_error": [redis.ConnectionError, redis.TimeoutError],
            "decode_responses": True,
        }
        if self.redis_url:
            return Redis.from_url(self.redis_url, **options)

        return Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            username=settings.redis_username or None,
            password=settings.redis_password or None,
            db=settings.redis_db,
            **options,
        )

    async def acquire(self) -> Redis:
        """Return the shared client, connecting if needed."""
        if self._client is not None and self._is_ready:
            return self._client

        if self._client is not None and self._recently_failed_check():
            return self._client

        if self._connecting is not None:
            await self._connecting.wait()
            if self._client is None:
                raise redis.ConnectionError("Redis connection attempt failed")
            return self._client

        return await self._connect()

    async def _connect(self) -> Redis:
        attempt = asyncio.Event()
        self._connecting = attempt
        try:
            if self._client is None:
                self._client = self._create_client()
            client = self._client

            try:
                await asyncio.wait_for(client.ping(), timeout=self.ready_timeout)
                self._is_ready = True
                self._failed_check_at = None
                logger.info("Redis is ready to accept commands")
            except asyncio.TimeoutError:
                logger.error(
                    f"Redis connection timeout after {self.ready_timeout}s, continuing without ready check"
                )
                self._failed_check_at = time.monotonic()
            except redis.RedisError as e:
                self._is_ready = False
                logger.error(f"Redis connection error: {e}")
                self._failed_check_at = time.monotonic()

            return client
        except Exception as e:
            logger.error(f"Error creating Redis client: {e}")
            raise
        finally:
            self._connecting = None
            attempt.set()

    def _recently_failed_check(self) -> bool:
        if self._failed_check_at is None:
            return False
        return time.monotonic() - self._failed_check_at < self.recheck_interval

    def mark_unavailable(self) -> None:
        """Drop the ready flag after a connection error so the next acquire re-checks."""
        if self._is_ready:
            logger.info("Redis marked not ready, will re-check on next acquire")
        self._is_ready = False

    async def release(self) -> None:
        """Close the connection, forcing a disconnect if a clean close fails."""
        client = self._client
        if client is None:
            return
        try:
            await client.aclose()
            logger.info("Redis connection closed")
        except (redis.RedisError, OSError) as e:
            logger.error(f"Error closing Redis connection: {e}")
            await client.connection_pool.disconnect(inuse_connections=True)
        finally:
            self._client = None
            self._is_ready = False
            self._connecting = None
            self._failed_check_at = None


redis_connector = RedisConnector()
