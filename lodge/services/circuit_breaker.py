"""
CircuitBreaker - Stops calling a failing service until it has had time to recover.

States:
- CLOSED: Normal operation, requests pass through
- OPEN: Service is failing, requests are blocked
- HALF_OPEN: Reset timeout has elapsed, trial requests pass through

The state is derived from the consecutive failure count and the time of the
last failure:
- failures < threshold                          -> CLOSED
- failures >= threshold, within reset_timeout   -> OPEN
- failures >= threshold, reset_timeout elapsed  -> HALF_OPEN

Transitions:
- CLOSED -> OPEN: When failure_threshold is reached
- OPEN -> HALF_OPEN: After reset_timeout expires
- HALF_OPEN -> CLOSED: On any successful request (failures reset to 0)
- HALF_OPEN -> OPEN: On a failed request (restarts the timeout window)

HALF_OPEN does not limit the number of trial requests.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

from lodge.services.errors import CircuitOpenError

T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"  # Normal operation
    OPEN = "OPEN"  # Blocking requests
    HALF_OPEN = "HALF_OPEN"  # Probing recovery


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker."""

    failure_threshold: int = 3  # Consecutive failures before opening
    reset_timeout: timedelta = timedelta(seconds=30)  # Time before half-open


class CircuitBreaker:
    """
    Circuit breaker for a single operation class.

    Usage:
        cb = CircuitBreaker("supabase")

        rows = await cb.execute(lambda: remote.select("events"))

    execute() raises CircuitOpenError without calling the operation while the
    circuit is open; otherwise it re-raises whatever the operation raised.
    Counter updates run without an await between read and write, which keeps
    them atomic on a single event loop.
    """

    def __init__(
        self,
        service_id: str,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.service_id = service_id
        self.config = config or CircuitBreakerConfig()
        self._clock = clock

        self._failure_count = 0
        self._last_failure_time: datetime | None = None

    @property
    def state(self) -> CircuitState:
        """Get current state from the failure count and elapsed time."""
        if self._failure_count < self.config.failure_threshold:
            return CircuitState.CLOSED
        if (
            self._last_failure_time is not None
            and self._clock() - self._last_failure_time < self.config.reset_timeout
        ):
            return CircuitState.OPEN
        return CircuitState.HALF_OPEN

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def last_failure_time(self) -> datetime | None:
        return self._last_failure_time

    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run one attempt of a protected operation.

        Raises:
            CircuitOpenError: If the circuit is open (operation not invoked)
            Exception: Whatever the operation raised
        """
        current_state = self.state
        if current_state == CircuitState.OPEN:
            raise CircuitOpenError(self.service_id, self.get_time_until_reset() or 0)
        if current_state == CircuitState.HALF_OPEN:
            logger.info(f"Circuit breaker '{self.service_id}' HALF_OPEN, trying request")

        try:
            result = await operation()
        except Exception:
            self.record_failure()
            raise

        self.record_success()
        return result

    def record_success(self) -> None:
        """Record a successful request."""
        if self._failure_count >= self.config.failure_threshold:
            logger.info(f"Circuit breaker '{self.service_id}' CLOSED (recovered)")
        self._failure_count = 0

    def record_failure(self) -> None:
        """Record a failed request."""
        self._failure_count += 1
        self._last_failure_time = self._clock()

        if self._failure_count == self.config.failure_threshold:
            logger.warning(
                f"Circuit breaker '{self.service_id}' OPENED after {self._failure_count} failures"
            )
        elif self._failure_count > self.config.failure_threshold:
            logger.warning(
                f"Circuit breaker '{self.service_id}' trial request failed, re-opened"
            )

    def reset(self) -> None:
        """Manually reset the circuit breaker."""
        self._failure_count = 0
        self._last_failure_time = None
        logger.info(f"Circuit breaker '{self.service_id}' manually reset")

    def get_time_until_reset(self) -> float | None:
        """Get seconds until circuit transitions to half-open."""
        if self.state != CircuitState.OPEN or self._last_failure_time is None:
            return None

        reset_at = self._last_failure_time + self.config.reset_timeout
        remaining = (reset_at - self._clock()).total_seconds()
        return max(0.0, remaining)

    def get_status(self) -> dict[str, Any]:
        """Get current status as dictionary."""
        return {
            "service_id": self.service_id,
            "state": self.state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.config.failure_threshold,
            "last_failure": (
                self._last_failure_time.isoformat() if self._last_failure_time else None
            ),
            "time_until_reset": self.get_time_until_reset(),
        }


class CircuitBreakerRegistry:
    """
    Registry for managing multiple circuit breakers.

    Usage:
        registry = CircuitBreakerRegistry()
        cb = registry.get("supabase")
    """

    def __init__(
        self,
        default_config: CircuitBreakerConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._breakers: dict[str, CircuitBreaker] = {}
        self._default_config = default_config or CircuitBreakerConfig()
        self._clock = clock

    def get(
        self,
        service_id: str,
        config: CircuitBreakerConfig | None = None,
    ) -> CircuitBreaker:
        """Get or create a circuit breaker for a service."""
        if service_id not in self._breakers:
            self._breakers[service_id] = CircuitBreaker(
                service_id,
                config or self._default_config,
                clock=self._clock,
            )
        return self._breakers[service_id]

    def find(self, service_id: str) -> CircuitBreaker | None:
        """Get an existing circuit breaker without creating one."""
        return self._breakers.get(service_id)

    def get_all_status(self) -> dict[str, dict[str, Any]]:
        """Get status of all circuit breakers."""
        return {
            service_id: cb.get_status() for service_id, cb in self._breakers.items()
        }

    def reset_all(self) -> None:
        """Reset all circuit breakers."""
        for cb in self._breakers.values():
            cb.reset()
        logger.info(f"Reset {len(self._breakers)} circuit breakers")

    def reset(self, service_id: str) -> bool:
        """Reset a specific circuit breaker."""
        if service_id in self._breakers:
            self._breakers[service_id].reset()
            return True
        return False

    def get_open_circuits(self) -> list[str]:
        """Get list of services with open circuits."""
        return [
            service_id
            for service_id, cb in self._breakers.items()
            if cb.state == CircuitState.OPEN
        ]
