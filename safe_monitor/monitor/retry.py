"""
Retry and circuit breaker utilities for Safe API calls.

Implements exponential backoff with jitter and a circuit breaker so a chain
whose Safe service is down fails fast instead of stalling every pass.
"""

import asyncio
import random
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type, TypeVar

import structlog

from safe_monitor.monitor.config import CircuitBreakerConfig, RetryConfig

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject requests
    HALF_OPEN = "half_open"  # Testing if service recovered


class CircuitOpenError(Exception):
    """Raised when circuit breaker is open."""

    pass


class CircuitBreaker:
    """
    Circuit breaker pattern implementation.

    Opens after ``failure_threshold`` consecutive failures and lets a probe
    call through once ``timeout`` seconds have passed.
    """

    def __init__(self, config: CircuitBreakerConfig, name: str = "default"):
        self.config = config
        self.name = name
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time: Optional[datetime] = None
        self.last_state_change: datetime = datetime.now(timezone.utc)

    async def call_async(
        self,
        func: Callable[[], Awaitable[T]],
        failure_on: Tuple[Type[BaseException], ...] = (Exception,),
    ) -> T:
        """
        Execute an async function with circuit breaker protection.

        Only exceptions matching ``failure_on`` count as failures. Anything
        else is re-raised without changing the breaker state.

        Raises:
            CircuitOpenError: If circuit is open
            Exception: Original exception from function
        """
        if self.state == CircuitState.OPEN:
            if self._should_attempt_reset():
                self._transition_to(CircuitState.HALF_OPEN)
                logger.info("circuit_breaker.half_open", circuit=self.name)
            else:
                raise CircuitOpenError(
                    f"Circuit '{self.name}' is OPEN. "
                    f"Last failure: {self.last_failure_time}"
                )

        try:
            result = await func()
        except failure_on:
            self._on_failure()
            raise
        self._on_success()
        return result

    def _on_success(self) -> None:
        self.failure_count = 0

        if self.state == CircuitState.HALF_OPEN:
            self.success_count += 1
            if self.success_count >= self.config.success_threshold:
                self._transition_to(CircuitState.CLOSED)
                logger.info("circuit_breaker.closed", circuit=self.name)

    def _on_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = datetime.now(timezone.utc)
        self.success_count = 0

        if self.state == CircuitState.HALF_OPEN:
            self._transition_to(CircuitState.OPEN)
            logger.warning(
                "circuit_breaker.reopened",
                circuit=self.name,
                failure_count=self.failure_count,
            )
        elif (
            self.state == CircuitState.CLOSED
            and self.failure_count >= self.config.failure_threshold
        ):
            self._transition_to(CircuitState.OPEN)
            logger.warning(
                "circuit_breaker.opened",
                circuit=self.name,
                failure_count=self.failure_count,
                threshold=self.config.failure_threshold,
            )

    def _should_attempt_reset(self) -> bool:
        if not self.last_failure_time:
            return True
        elapsed = (datetime.now(timezone.utc) - self.last_failure_time).total_seconds()
        return elapsed >= self.config.timeout

    def _transition_to(self, state: CircuitState) -> None:
        self.state = state
        self.success_count = 0
        if state == CircuitState.CLOSED:
            self.failure_count = 0
        self.last_state_change = datetime.now(timezone.utc)

    def get_state(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "success_count": self.success_count,
            "last_failure_time": (
                self.last_failure_time.isoformat() if self.last_failure_time else None
            ),
            "last_state_change": self.last_state_change.isoformat(),
        }


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    config: RetryConfig,
    operation_name: str = "operation",
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> T:
    """
    Execute a function with exponential backoff retry.

    Only exceptions matching ``retry_on`` are retried; anything else is
    raised immediately. A ``retry_after`` attribute on the exception
    (rate limit responses) overrides the computed delay.

    Raises:
        Exception: Last exception if all retries exhausted
    """
    for attempt in range(config.max_attempts):
        try:
            return await func()
        except retry_on as e:
            attempt_num = attempt + 1

            if attempt_num >= config.max_attempts:
                logger.error(
                    "retry.exhausted",
                    operation=operation_name,
                    attempts=attempt_num,
                    error=str(e),
                )
                raise

            delay = min(
                config.initial_delay * (config.exponential_base**attempt),
                config.max_delay,
            )
            if config.jitter:
                delay = delay * (0.5 + random.random() * 0.5)

            retry_after = getattr(e, "retry_after", None)
            if retry_after:
                delay = min(float(retry_after), config.max_delay)

            logger.warning(
                "retry.attempt",
                operation=operation_name,
                attempt=attempt_num,
                max_attempts=config.max_attempts,
                delay_seconds=round(delay, 3),
                error=str(e),
            )

            await asyncio.sleep(delay)

    raise RuntimeError("Retry failed without exception")
