"""
DataAccessClient - Composes the resilience primitives around remote calls.

Read path (outermost first):
- RequestDeduplicator collapses concurrent callers for the same key
- DataCache serves fresh entries and skips everything below on a hit
- CircuitBreaker fails fast while the remote service keeps failing
- with_timeout bounds the actual remote call

Write path: the operation runs directly, then the affected cache keys are
invalidated. Nothing is invalidated when the write fails.
"""

from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Iterable, TypeVar

from loguru import logger

from lodge.services.cache import DataCache
from lodge.services.circuit_breaker import CircuitBreakerConfig, CircuitBreakerRegistry
from lodge.services.deduplicator import RequestDeduplicator
from lodge.services.timeout import with_timeout
from lodge.settings import Settings

T = TypeVar("T")

DEFAULT_SERVICE_ID = "supabase"


class DataAccessClient:
    """
    Cached, deduplicated, circuit-protected access to a remote data service.

    Usage:
        async with DataAccessClient() as client:
            events = await client.read(
                CacheKeys.EVENTS,
                lambda: remote.select("events", order="event_date.asc"),
            )

            await client.write(
                lambda: remote.insert("events", payload),
                invalidate=[CacheKeys.EVENTS, CacheKeys.NEXT_EVENT],
            )
    """

    def __init__(
        self,
        cache: DataCache | None = None,
        deduplicator: RequestDeduplicator | None = None,
        circuit_breakers: CircuitBreakerRegistry | None = None,
        default_timeout: float = 10.0,
        service_id: str = DEFAULT_SERVICE_ID,
        on_close: Callable[[], Awaitable[None]] | None = None,
    ):
        self.cache = cache if cache is not None else DataCache()
        self.deduplicator = deduplicator if deduplicator is not None else RequestDeduplicator()
        self.circuit_breakers = (
            circuit_breakers if circuit_breakers is not None else CircuitBreakerRegistry()
        )
        self._default_timeout = default_timeout
        self._service_id = service_id
        self._on_close = on_close

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        clock: Callable[[], datetime] = datetime.now,
        **kwargs: Any,
    ) -> "DataAccessClient":
        """Build the full stack from configuration."""
        return cls(
            cache=DataCache(
                max_size=settings.cache_max_size,
                default_ttl=settings.cache_default_ttl,
                debug=settings.debug,
                clock=clock,
            ),
            deduplicator=RequestDeduplicator(debug=settings.debug),
            circuit_breakers=CircuitBreakerRegistry(
                CircuitBreakerConfig(
                    failure_threshold=settings.circuit_failure_threshold,
                    reset_timeout=settings.circuit_reset_timeout,
                ),
                clock=clock,
            ),
            default_timeout=settings.request_timeout_seconds,
            **kwargs,
        )

    @property
    def service_id(self) -> str:
        return self._service_id

    async def read(
        self,
        key: str,
        operation: Callable[[], Awaitable[T]],
        ttl: timedelta | None = None,
        timeout: float | None = None,
        dedupe_key: str | None = None,
        service_id: str | None = None,
    ) -> T:
        """
        Run a read through dedup, cache, circuit breaker and timeout.

        Args:
            key: Cache key (see CacheKeys)
            operation: Zero-argument async callable doing the remote read
            ttl: Override the cache TTL for this entry
            timeout: Override the request timeout in seconds
            dedupe_key: Deduplication key when it differs from the cache key
            service_id: Circuit breaker to use (defaults to the client's)

        Raises:
            CircuitOpenError: If the circuit breaker is open
            RequestTimeoutError: If the remote call times out
            ServiceError: For other remote failures
        """
        breaker = self.circuit_breakers.get(service_id or self._service_id)
        req_timeout = self._default_timeout if timeout is None else timeout

        async def protected_call() -> T:
            return await breaker.execute(
                lambda: with_timeout(operation(), req_timeout, breaker.service_id)
            )

        return await self.deduplicator.dedupe(
            dedupe_key or key,
            lambda: self.cache.get(key, protected_call, ttl),
        )

    async def write(
        self,
        operation: Callable[[], Awaitable[T]],
        invalidate: Iterable[str] = (),
        invalidate_patterns: Iterable[str] = (),
    ) -> T:
        """
        Run a write directly, then invalidate the cache entries it affects.

        Args:
            operation: Zero-argument async callable doing the remote write
            invalidate: Exact cache keys to drop after success
            invalidate_patterns: Regular expressions over cache keys to drop
        """
        result = await operation()

        removed = 0
        for key in invalidate:
            removed += int(self.cache.invalidate(key))
        for pattern in invalidate_patterns:
            removed += self.cache.invalidate_pattern(pattern)

        if removed:
            logger.debug(f"Write invalidated {removed} cache entries")
        return result

    async def close(self) -> None:
        """Cancel in-flight reads and release the remote connection."""
        cancelled = self.deduplicator.cancel_all()
        if cancelled:
            logger.debug(f"Cancelled {cancelled} in-flight requests")
        if self._on_close is not None:
            await self._on_close()
        logger.debug("DataAccessClient closed")

    async def __aenter__(self) -> "DataAccessClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    # Health and status methods

    def get_health_status(self) -> dict[str, Any]:
        """Get health status of the cache, breakers and deduplicator."""
        return {
            "cache": self.cache.get_stats().to_dict(),
            "circuit_breakers": self.circuit_breakers.get_all_status(),
            "deduplicator": self.deduplicator.get_stats().to_dict(),
            "open_circuits": self.circuit_breakers.get_open_circuits(),
        }

    def get_circuit_status(self, service_id: str | None = None) -> dict[str, Any] | None:
        """Get circuit breaker status for a specific service."""
        cb = self.circuit_breakers.find(service_id or self._service_id)
        return cb.get_status() if cb else None

    def reset_circuit(self, service_id: str | None = None) -> bool:
        """Reset circuit breaker for a service."""
        return self.circuit_breakers.reset(service_id or self._service_id)

    def clear_cache(self, pattern: str | None = None) -> int:
        """Clear cache entries, optionally matching a pattern."""
        if pattern:
            return self.cache.invalidate_pattern(pattern)
        count = len(self.cache)
        self.cache.clear()
        return count
