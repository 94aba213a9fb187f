"""Circuit breaker for outbound gateway calls."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from claimgate.config import settings
from claimgate.observability.metrics import metrics
from claimgate.utils.time import utc_now

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # calls pass through
    OPEN = "open"  # calls fail fast
    HALF_OPEN = "half_open"  # trial calls pass; any failure reopens


@dataclass
class CircuitBreakerConfig:
    """Circuit breaker configuration."""

    failure_threshold: int = 5
    timeout_seconds: int = 60
    success_threshold: int = 2

    @classmethod
    def from_settings(cls) -> "CircuitBreakerConfig":
        return cls(
            failure_threshold=settings.circuit_breaker_failure_threshold,
            timeout_seconds=settings.circuit_breaker_timeout_seconds,
            success_threshold=settings.circuit_breaker_success_threshold,
        )


class CircuitBreakerOpen(Exception):
    """Raised when a call is rejected because the circuit is open."""

    def __init__(self, service_name: str, retry_after: int):
        self.service_name = service_name
        self.retry_after = retry_after
        super().__init__(f"Circuit breaker open for {service_name}, retry after {retry_after}s")


class CircuitBreaker:
    """
    Fail fast against a dependency that keeps failing.

    CLOSED -> OPEN after ``failure_threshold`` consecutive failures.
    OPEN -> HALF_OPEN once ``timeout_seconds`` have elapsed.
    HALF_OPEN -> CLOSED after ``success_threshold`` consecutive successes,
    or straight back to OPEN on any failure.
    """

    def __init__(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._successes = 0
        self._opened_at: Optional[datetime] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    async def call(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """Run ``func`` through the breaker, re-raising its exceptions."""
        async with self._lock:
            if self._state == CircuitState.OPEN:
                elapsed = (self._clock() - self._opened_at).total_seconds()
                if elapsed < self.config.timeout_seconds:
                    metrics.inc_counter("circuit.rejected", circuit=self.name)
                    raise CircuitBreakerOpen(self.name, int(self.config.timeout_seconds - elapsed))
                self._set_state(CircuitState.HALF_OPEN)

        try:
            result = await func(*args, **kwargs)
        except Exception as exc:
            await self._record_failure(exc)
            raise
        await self._record_success()
        return result

    async def reset(self) -> None:
        async with self._lock:
            self._set_state(CircuitState.CLOSED)

    async def _record_success(self) -> None:
        async with self._lock:
            self._failures = 0
            self._successes += 1
            if self._state == CircuitState.HALF_OPEN and self._successes >= self.config.success_threshold:
                self._set_state(CircuitState.CLOSED)

    async def _record_failure(self, error: Exception) -> None:
        async with self._lock:
            self._successes = 0
            self._failures += 1
            logger.warning(
                "Circuit %s failure (%d/%d): %s",
                self.name,
                self._failures,
                self.config.failure_threshold,
                error,
            )
            if self._state == CircuitState.HALF_OPEN or self._failures >= self.config.failure_threshold:
                self._set_state(CircuitState.OPEN)

    def _set_state(self, state: CircuitState) -> None:
        if state == self._state:
            return
        self._state = state
        self._successes = 0
        if state == CircuitState.OPEN:
            self._opened_at = self._clock()
            logger.error("Circuit %s opened after %d failures", self.name, self._failures)
        else:
            self._failures = 0
            if state == CircuitState.CLOSED:
                self._opened_at = None
            logger.info("Circuit %s is now %s", self.name, state.value)
        metrics.inc_counter("circuit.transition", circuit=self.name, state=state.value)
