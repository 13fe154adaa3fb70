"""Prometheus metrics for the response cache."""

from __future__ import annotations

from prometheus_client import Counter

__all__ = [
    "RESPONSE_CACHE_METRICS",
    "record_cache_hit",
    "record_cache_miss",
    "record_cache_store",
    "record_invalidation",
    "record_store_error",
]


class ResponseCacheMetrics:
    """Container for response cache counters."""

    def __init__(self) -> None:
        self.hits_total = Counter(
            "graphql_response_cache_hits_total",
            "Total number of response cache hits",
        )
        self.misses_total = Counter(
            "graphql_response_cache_misses_total",
            "Total number of response cache misses",
        )
        self.stores_total = Counter(
            "graphql_response_cache_stores_total",
            "Executed query results by caching outcome",
            labelnames=["outcome"],
        )
        self.invalidated_entries_total = Counter(
            "graphql_response_cache_invalidated_entries_total",
            "Cache entries removed by invalidation",
            labelnames=["source"],
        )
        self.store_errors_total = Counter(
            "graphql_response_cache_store_errors_total",
            "Cache backend failures (request continued uncached)",
            labelnames=["operation"],
        )


# Global metrics instance
RESPONSE_CACHE_METRICS = ResponseCacheMetrics()


def record_cache_hit() -> None:
    RESPONSE_CACHE_METRICS.hits_total.inc()


def record_cache_miss() -> None:
    RESPONSE_CACHE_METRICS.misses_total.inc()


def record_cache_store(outcome: str) -> None:
    """Record a caching decision (``stored``, ``ttl_zero``, ``declined``, ``ignored``)."""
    RESPONSE_CACHE_METRICS.stores_total.labels(outcome=outcome).inc()


def record_invalidation(count: int, source: str) -> None:
    """Record removed entries (``source`` is ``mutation`` or ``manual``)."""
    if count:
        RESPONSE_CACHE_METRICS.invalidated_entries_total.labels(source=source).inc(count)


def record_store_error(operation: str) -> None:
    RESPONSE_CACHE_METRICS.store_errors_total.labels(operation=operation).inc()
