"""
Circuit Breaker for upstream catalog fetches.

Sits in front of the retry executor so that a catalog that is down hard does
not cost every caller four attempts' worth of backoff. While open, fetches
fail immediately with CircuitBreakerError, which the resolvers treat exactly
like any other exhausted transient failure.

States:
- CLOSED: Normal operation, fetches pass through.
- OPEN: Upstream unhealthy, fetches are rejected without a network call.
- HALF_OPEN: Trial calls allowed; a success streak closes the circuit again.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Tuple, TypedDict

import aiohttp

from dexcore.errors import UpstreamUnavailableError

logger = logging.getLogger("dexcore.circuit_breaker")


class CircuitState(Enum):
    """Enumeration of circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerError(UpstreamUnavailableError):
    """Raised when the circuit is open and the fetch was not attempted."""

    pass


class BreakerStats(TypedDict):
    """Point-in-time snapshot of a breaker, for operational reporting."""

    breaker_name: str
    state: str
    failure_count: int
    success_count: int
    failure_threshold: int
    recovery_timeout: float
    opened_at: Optional[float]


DEFAULT_FAILURE_EXCEPTIONS: Tuple[type, ...] = (
    UpstreamUnavailableError,
    aiohttp.ClientError,
    asyncio.TimeoutError,
)


class CircuitBreaker:
    """
    Async circuit breaker keyed to consecutive failures.

    A failure is any exception in ``failure_exceptions`` escaping the wrapped
    coroutine. Other exceptions propagate without affecting the state, and
    ``asyncio.CancelledError`` is never counted.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        success_threshold: int = 2,
        failure_exceptions: Tuple[type, ...] = DEFAULT_FAILURE_EXCEPTIONS,
        name: str = "pokeapi",
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the circuit breaker.

        Args:
            failure_threshold: Consecutive failures that open the circuit.
            recovery_timeout: Seconds to stay OPEN before allowing a trial call.
            success_threshold: Consecutive HALF_OPEN successes that close it.
            failure_exceptions: Exception types that count as failures.
            name: Name used in logs and stats.
            clock: Monotonic time source, injectable for tests.
        """
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.success_threshold = success_threshold
        self.failure_exceptions = failure_exceptions
        self.name = name
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """
        Run ``func(*args, **kwargs)`` under breaker protection.

        Raises:
            CircuitBreakerError: If the circuit is OPEN and the recovery
                timeout has not elapsed yet.
        """
        async with self._lock:
            if self._state == CircuitState.OPEN:
                if self._recovery_due():
                    self._transition(CircuitState.HALF_OPEN)
                else:
                    logger.debug(
                        f"Circuit breaker '{self.name}' is open, rejecting call",
                        extra={"breaker_name": self.name},
                    )
                    raise CircuitBreakerError(
                        f"Circuit breaker '{self.name}' is open; upstream unavailable"
                    )

        try:
            result = await func(*args, **kwargs)
        except self.failure_exceptions:
            await self._record_failure()
            raise

        await self._record_success()
        return result

    def _recovery_due(self) -> bool:
        if self._opened_at is None:
            return True
        return (self._clock() - self._opened_at) >= self.recovery_timeout

    def _transition(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        self._success_count = 0
        if new_state == CircuitState.OPEN:
            self._opened_at = self._clock()

        log = logger.error if new_state == CircuitState.OPEN else logger.info
        log(
            f"Circuit breaker '{self.name}' {old_state.value} -> {new_state.value}",
            extra={
                "breaker_name": self.name,
                "failure_count": self._failure_count,
            },
        )

    async def _record_success(self) -> None:
        async with self._lock:
            self._failure_count = 0
            if self._state != CircuitState.HALF_OPEN:
                return

            self._success_count += 1
            if self._success_count >= self.success_threshold:
                self._transition(CircuitState.CLOSED)

    async def _record_failure(self) -> None:
        async with self._lock:
            self._failure_count += 1

            logger.warning(
                f"Circuit breaker '{self.name}' failure",
                extra={
                    "breaker_name": self.name,
                    "failure_count": self._failure_count,
                    "threshold": self.failure_threshold,
                    "state": self._state.value,
                },
            )

            # A failed trial call reopens immediately
            if self._state == CircuitState.HALF_OPEN:
                self._transition(CircuitState.OPEN)
            elif (
                self._state == CircuitState.CLOSED
                and self._failure_count >= self.failure_threshold
            ):
                self._transition(CircuitState.OPEN)

    def get_stats(self) -> BreakerStats:
        return {
            "breaker_name": self.name,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "success_count": self._success_count,
            "failure_threshold": self.failure_threshold,
            "recovery_timeout": self.recovery_timeout,
            "opened_at": self._opened_at,
        }

    async def reset(self) -> None:
        """Force the breaker back to CLOSED, e.g. after an operator intervention."""
        async with self._lock:
            logger.info(
                f"Circuit breaker '{self.name}' manually reset",
                extra={"breaker_name": self.name},
            )
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._success_count = 0
            self._opened_at = None
