"""Counters for cache effectiveness and upstream traffic."""

from collections import defaultdict
from dataclasses import dataclass, field


@dataclass
class Metrics:
    """Per-namespace cache counters and per-provider call counters."""

    _hits: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    _misses: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    _cache_errors: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    _upstream_calls: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    _upstream_errors: dict[str, int] = field(default_factory=lambda: defaultdict(int))

    def record_cache_hit(self, namespace: str) -> None:
        self._hits[namespace] += 1

    def record_cache_miss(self, namespace: str) -> None:
        self._misses[namespace] += 1

    def record_cache_error(self, namespace: str) -> None:
        self._cache_errors[namespace] += 1

    def record_upstream_call(self, provider: str) -> None:
        self._upstream_calls[provider] += 1

    def record_upstream_error(self, provider: str) -> None:
        self._upstream_errors[provider] += 1

    def get_stats(self) -> dict:
        """Get current statistics."""
        namespaces = set(self._hits) | set(self._misses) | set(self._cache_errors)
        cache = {}
        for namespace in sorted(namespaces):
            hits = self._hits[namespace]
            lookups = hits + self._misses[namespace]
            hit_rate = (hits / lookups * 100) if lookups > 0 else 0.0
            cache[namespace] = {
                "hits": hits,
                "misses": self._misses[namespace],
                "errors": self._cache_errors[namespace],
                "hit_rate_percent": round(hit_rate, 2),
            }
        return {
            "cache": cache,
            "upstream_calls": dict(self._upstream_calls),
            "upstream_errors": dict(self._upstream_errors),
        }

    def reset(self) -> None:
        """Reset all metrics."""
        self._hits.clear()
        self._misses.clear()
        self._cache_errors.clear()
        self._upstream_calls.clear()
        self._upstream_errors.clear()


metrics = Metrics()
