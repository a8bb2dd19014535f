"""Best-effort JSON cache over the shared Redis connection."""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, TypeVar

import redis
from pydantic import BaseModel, ValidationError
from redis.asyncio import Redis

from forkcast.services.cache_keys import Namespace
from forkcast.services.circuit_breaker import CircuitBreaker, store_circuit
from forkcast.services.metrics import Metrics, metrics as default_metrics
from forkcast.services.redis_connector import RedisConnector, redis_connector

logger = logging.getLogger(__name__)

T = TypeVar("T")
ModelT = TypeVar("ModelT", bound=BaseModel)

DEFAULT_TTL = 3600

# Everything the store or the JSON codec can throw; all of it is absorbed.
CACHE_ERRORS = (redis.RedisError, OSError, ValueError)


class CacheService:
    """
    Redis cache for JSON payloads.

    Every operation is best effort: store failures and malformed payloads are
    logged and reported as a miss or a no-op, never raised to the caller.
    """

    def __init__(
        self,
        connector: RedisConnector | None = None,
        circuit: CircuitBreaker | None = None,
        metrics: Metrics | None = None,
    ):
        self.connector = connector or redis_connector
        self.circuit = circuit or store_circuit
        self.metrics = metrics or default_metrics

    def _record_failure(self, error: Exception) -> None:
        self.circuit.record_failure()
        if isinstance(error, (redis.ConnectionError, OSError)):
            self.connector.mark_unavailable()

    async def _execute(
        self,
        key: str,
        action: str,
        operation: Callable[[Redis], Awaitable[T]],
    ) -> T | None:
        """
        Run one store operation behind the circuit breaker.

        Returns None when the circuit is open or the operation failed. Every
        call that passed the circuit reports its outcome back to it.
        """
        if not self.circuit.is_available():
            logger.warning(f"Redis circuit breaker is OPEN, skipping cache {action}")
            return None

        try:
            client = await self.connector.acquire()
            result = await operation(client)
        except CACHE_ERRORS as e:
            self._record_failure(e)
            self.metrics.record_cache_error(Namespace.label_for_key(key))
            logger.error(f"Cache {action} error for key {key}: {e}")
            return None
        except asyncio.CancelledError:
            self.circuit.abandon_trial()
            raise

        self.circuit.record_success()
        return result

    async def get(self, key: str) -> Any | None:
        """Fetch and decode a cached value, or None on miss or failure."""
        data = await self._execute(key, "get", lambda client: client.get(key))
        if not data:
            return None

        try:
            return json.loads(data)
        except ValueError as e:
            self.metrics.record_cache_error(Namespace.label_for_key(key))
            logger.error(f"Malformed cached payload for key {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store a value as JSON, with a TTL in seconds if given."""
        try:
            if isinstance(value, BaseModel):
                serialized = value.model_dump_json()
            else:
                serialized = json.dumps(value)
        except (TypeError, ValueError) as e:
            self.metrics.record_cache_error(Namespace.label_for_key(key))
            logger.error(f"Cannot serialize value for key {key}: {e}")
            return

        async def operation(client: Redis):
            if ttl:
                return await client.set(key, serialized, ex=ttl)
            return await client.set(key, serialized)

        if await self._execute(key, "set", operation):
            logger.debug(f"Cached key {key} with TTL {ttl}s")

    async def delete(self, key: str) -> None:
        """Remove a single key."""
        await self._execute(key, "delete", lambda client: client.delete(key))

    async def invalidate_namespace(self, namespace: Namespace | str) -> None:
        """Delete every key under a namespace prefix in one batch."""
        prefix = namespace.value if isinstance(namespace, Namespace) else namespace

        async def operation(client: Redis) -> int:
            keys = [key async for key in client.scan_iter(match=f"{prefix}*")]
            if keys:
                await client.delete(*keys)
            return len(keys)

        count = await self._execute(prefix, "invalidate", operation)
        if count is not None:
            logger.info(f"Invalidated {count} keys in namespace {prefix}")

    async def get_or_fetch(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[T]],
        ttl: int = DEFAULT_TTL,
        model: type[ModelT] | None = None,
    ) -> T:
        """
        Return the cached value for key, or compute, store and return it.

        fetch_fn runs at most once per call and only on a miss. Concurrent
        misses on the same key are not coalesced; each calls fetch_fn.
        Errors from fetch_fn propagate and nothing is cached.

        Args:
            key: Cache key
            fetch_fn: Coroutine function producing the fresh value
            ttl: Expiry in seconds
            model: Optional pydantic model; cached payloads that do not
                validate against it are treated as a miss

        Returns:
            The cached or freshly computed value
        """
        namespace = Namespace.label_for_key(key)
        cached = await self.get(key)

        if cached is not None:
            if model is None:
                self.metrics.record_cache_hit(namespace)
                logger.debug(f"Cache hit: {key}")
                return cached
            try:
                value = model.model_validate(cached)
                self.metrics.record_cache_hit(namespace)
                logger.debug(f"Cache hit: {key}")
                return value
            except ValidationError as e:
                self.metrics.record_cache_error(namespace)
                logger.error(f"Cached payload for key {key} failed validation: {e}")

        self.metrics.record_cache_miss(namespace)
        logger.info(f"Cache miss, fetching: {key}")
        data = await fetch_fn()

        await self.set(key, data, ttl)

        return data


cache_service = CacheService()
