"""Circuit breaker guarding calls to a single upstream dependency."""

import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, TypeVar

from app.core.config import settings
from app.core.errors import CircuitBreakerOpenError
from app.core.logging import get_logger

logger = get_logger(module="circuit_breaker")

T = TypeVar("T")


class CircuitState(str, Enum):
    """Breaker states."""

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


def _always_failure(_: BaseException) -> bool:
    return True


class CircuitBreaker:
    """Fail fast while an upstream is unhealthy and probe for its recovery.

    CLOSED counts failures inside a sliding ``monitoring_period`` window and
    opens once ``failure_threshold`` is reached. OPEN rejects calls until
    ``reset_timeout`` has passed since the last failure, then moves to
    HALF_OPEN. HALF_OPEN closes after ``success_threshold`` successes and
    re-opens on the first failure.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        reset_timeout: float = 30.0,
        monitoring_period: float = 60.0,
        success_threshold: int = 2,
        is_failure: Callable[[BaseException], bool] = _always_failure,
        on_state_change: Callable[[str, CircuitState], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the breaker.

        Args:
            name: Upstream name, used in errors and logs
            failure_threshold: Failures within the window that open the breaker
            reset_timeout: Seconds after the last failure before probing again
            monitoring_period: Sliding window, in seconds, for counting failures
            success_threshold: HALF_OPEN successes needed to close
            is_failure: Decides whether a raised exception counts against the upstream
            on_state_change: Callback invoked with ``(name, new_state)``
            clock: Monotonic time source, injectable for tests
        """
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.monitoring_period = monitoring_period
        self.success_threshold = success_threshold
        self._is_failure = is_failure
        self._on_state_change = on_state_change
        self._clock = clock

        self.state = CircuitState.CLOSED
        self.failures = 0
        self.successes = 0
        self.last_failure_time: float | None = None
        self.last_state_change = clock()
        self.total_requests = 0
        self.total_failures = 0
        self.total_successes = 0
        self._failure_timestamps: list[float] = []

    @classmethod
    def from_settings(
        cls,
        name: str,
        is_failure: Callable[[BaseException], bool] = _always_failure,
        on_state_change: Callable[[str, CircuitState], None] | None = None,
    ) -> "CircuitBreaker":
        """Build a breaker using the configured thresholds and timeouts."""
        return cls(
            name,
            failure_threshold=settings.CIRCUIT_FAILURE_THRESHOLD,
            reset_timeout=settings.CIRCUIT_RESET_TIMEOUT,
            monitoring_period=settings.CIRCUIT_MONITORING_PERIOD,
            success_threshold=settings.CIRCUIT_SUCCESS_THRESHOLD,
            is_failure=is_failure,
            on_state_change=on_state_change,
        )

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` unless the breaker is open.

        Raises:
            CircuitBreakerOpenError: If the breaker is OPEN and not yet due a probe
        """
        self.total_requests += 1

        if self.state is CircuitState.OPEN:
            if self._should_attempt_reset():
                self._transition(CircuitState.HALF_OPEN)
            else:
                raise CircuitBreakerOpenError(self.name)

        try:
            result = await operation()
        except Exception as exc:
            if self._is_failure(exc):
                self._on_failure()
            else:
                self._on_success()
            raise

        self._on_success()
        return result

    def _on_success(self) -> None:
        self.total_successes += 1
        self.successes += 1

        if self.state is CircuitState.HALF_OPEN:
            if self.successes >= self.success_threshold:
                self._transition(CircuitState.CLOSED)
        elif self.state is CircuitState.CLOSED:
            self.failures = 0
            self._failure_timestamps = []

    def _on_failure(self) -> None:
        now = self._clock()
        self.total_failures += 1
        self.failures += 1
        self.last_failure_time = now

        cutoff = now - self.monitoring_period
        self._failure_timestamps = [
            ts for ts in self._failure_timestamps if ts > cutoff
        ]
        self._failure_timestamps.append(now)

        if self.state is CircuitState.HALF_OPEN:
            self._transition(CircuitState.OPEN)
        elif (
            self.state is CircuitState.CLOSED
            and len(self._failure_timestamps) >= self.failure_threshold
        ):
            self._transition(CircuitState.OPEN)

    def _should_attempt_reset(self) -> bool:
        return (
            self.last_failure_time is not None
            and self._clock() - self.last_failure_time >= self.reset_timeout
        )

    def _transition(self, state: CircuitState) -> None:
        self.state = state
        self.last_state_change = self._clock()
        self.successes = 0

        if state is CircuitState.OPEN:
            logger.warning(
                "circuit_opened",
                breaker=self.name,
                failures=self.failures,
                last_failure_time=self.last_failure_time,
            )
        elif state is CircuitState.HALF_OPEN:
            self.failures = 0
            logger.info("circuit_half_open", breaker=self.name)
        else:
            self.failures = 0
            self._failure_timestamps = []
            logger.info("circuit_closed", breaker=self.name)

        if self._on_state_change is not None:
            self._on_state_change(self.name, state)

    def get_stats(self) -> dict[str, Any]:
        """Snapshot of state and counters; has no side effects."""
        return {
            "state": self.state.value,
            "failures": self.failures,
            "successes": self.successes,
            "last_failure_time": self.last_failure_time,
            "last_state_change": self.last_state_change,
            "total_requests": self.total_requests,
            "total_failures": self.total_failures,
            "total_successes": self.total_successes,
        }

    def reset(self) -> None:
        """Force the breaker closed and zero every counter."""
        self.state = CircuitState.CLOSED
        self.failures = 0
        self.successes = 0
        self.last_failure_time = None
        self.last_state_change = self._clock()
        self.total_requests = 0
        self.total_failures = 0
        self.total_successes = 0
        self._failure_timestamps = []
        logger.info("circuit_reset", breaker=self.name)
        if self._on_state_change is not None:
            self._on_state_change(self.name, CircuitState.CLOSED)
