"""
Service layer infrastructure - resilience patterns for remote data calls.

Provides:
- DataCache: TTL cache with FIFO eviction and pattern invalidation
- CircuitBreaker: Fails fast while a service keeps failing
- RequestDeduplicator: Collapses duplicate concurrent requests
- with_timeout: Bounds a remote call without cancelling it
- DataAccessClient: Composes all of the above
"""

from lodge.services.errors import (
    ServiceError,
    RemoteDataError,
    CircuitOpenError,
    RequestTimeoutError,
)
from lodge.services.cache import CacheEntry, CacheStats, DataCache
from lodge.services.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitState,
)
from lodge.services.deduplicator import DeduplicatorStats, RequestDeduplicator
from lodge.services.keys import CacheKey, CacheKeys
from lodge.services.timeout import with_timeout
from lodge.services.client import DataAccessClient

__all__ = [
    # Errors
    "ServiceError",
    "RemoteDataError",
    "CircuitOpenError",
    "RequestTimeoutError",
    # Cache
    "DataCache",
    "CacheEntry",
    "CacheStats",
    "CacheKey",
    "CacheKeys",
    # Circuit Breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerRegistry",
    "CircuitState",
    # Deduplicator
    "RequestDeduplicator",
    "DeduplicatorStats",
    # Timeout
    "with_timeout",
    # Client
    "DataAccessClient",
]
