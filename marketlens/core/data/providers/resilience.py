"""
Retry with exponential backoff around a circuit breaker.

ResiliencePolicy.execute() is the decorator applied to every outbound
provider call:

    retry loop  ->  circuit breaker gate  ->  transport call

Only transient ProviderErrors (timeouts, transport failures, 5xx/408) are
retried and counted by the breaker. Any other answer from the provider
(rate limit, auth, 404, 4xx, malformed body) proves the upstream is
reachable and counts as a breaker success, but is not retried.
"""
import asyncio
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, TypeVar

import structlog

from marketlens.core.config import settings
from marketlens.core.data.providers.errors import ProviderError

logger = structlog.get_logger()

T = TypeVar("T")


class CircuitOpenError(ProviderError):
    """Raised without touching the network while the breaker is open."""


class RetriesExhaustedError(ProviderError):

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


class BreakerState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Process-wide failure gate for one upstream.

    States:
    - CLOSED: calls pass; consecutive transient failures are counted
    - OPEN: calls are rejected until the cooldown elapses
    - HALF_OPEN: up to ``half_open_max_calls`` trial calls are admitted;
      that many successes close the breaker, any failure re-opens it

    All transitions happen under a threading.Lock so the counters are safe
    whether callers share one event loop or several threads.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        cooldown_seconds: float = 30.0,
        half_open_max_calls: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._failure_threshold = max(1, failure_threshold)
        self._cooldown_seconds = cooldown_seconds
        self._half_open_max_calls = max(1, half_open_max_calls)
        self._clock = clock

        self._state = BreakerState.CLOSED
        self._consecutive_failures = 0
        self._opened_at: float | None = None
        self._trial_calls = 0
        self._trial_successes = 0
        self._lock = threading.Lock()

    def _refresh(self) -> None:
        # Caller holds the lock
        if self._state == BreakerState.OPEN and self._opened_at is not None:
            if self._clock() - self._opened_at >= self._cooldown_seconds:
                self._state = BreakerState.HALF_OPEN
                self._trial_calls = 0
                self._trial_successes = 0
                logger.info("breaker.half_open")

    def _open(self) -> None:
        self._state = BreakerState.OPEN
        self._opened_at = self._clock()
        self._trial_calls = 0
        self._trial_successes = 0

    @property
    def state(self) -> BreakerState:
        with self._lock:
            self._refresh()
            return self._state

    @property
    def consecutive_failures(self) -> int:
        with self._lock:
            return self._consecutive_failures

    def try_acquire(self) -> bool:
        """Ask permission for one call; False means short-circuit."""
        with self._lock:
            self._refresh()
            if self._state == BreakerState.CLOSED:
                return True
            if self._state == BreakerState.HALF_OPEN and self._trial_calls < self._half_open_max_calls:
                self._trial_calls += 1
                return True
            return False

    def record_success(self) -> None:
        with self._lock:
            self._consecutive_failures = 0
            if self._state == BreakerState.HALF_OPEN:
                self._trial_successes += 1
                if self._trial_successes >= self._half_open_max_calls:
                    self._state = BreakerState.CLOSED
                    self._opened_at = None
                    logger.info("breaker.closed")

    def record_failure(self) -> None:
        with self._lock:
            self._consecutive_failures += 1
            if self._state == BreakerState.HALF_OPEN:
                self._open()
                logger.warning("breaker.open", reason="trial call failed")
            elif self._state == BreakerState.CLOSED and self._consecutive_failures >= self._failure_threshold:
                self._open()
                logger.warning("breaker.open", consecutive_failures=self._consecutive_failures)

    def abandon(self) -> None:
        """Give back a trial slot taken by a call that never completed (cancelled)."""
        with self._lock:
            if self._state == BreakerState.HALF_OPEN and self._trial_calls > 0:
                self._trial_calls -= 1

    def reset(self) -> None:
        with self._lock:
            self._state = BreakerState.CLOSED
            self._consecutive_failures = 0
            self._opened_at = None
            self._trial_calls = 0
            self._trial_successes = 0


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3            # attempts after the first one
    backoff_base_seconds: float = 2.0

    def delay(self, retry_number: int) -> float:
        """Seconds to wait before retry ``retry_number`` (1-based): base * 2^(n-1)."""
        return self.backoff_base_seconds * (2 ** (retry_number - 1))


class ResiliencePolicy:

    def __init__(
        self,
        retry: RetryPolicy | None = None,
        breaker: CircuitBreaker | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.retry = retry or RetryPolicy(settings.retry_attempts, settings.retry_backoff_base_seconds)
        self.breaker = breaker or CircuitBreaker(
            failure_threshold=settings.breaker_failure_threshold,
            cooldown_seconds=settings.breaker_cooldown_seconds,
            half_open_max_calls=settings.breaker_half_open_max_calls,
        )
        self._sleep = sleep

    async def execute(self, call: Callable[[], Awaitable[T]], operation: str = "provider") -> T:
        attempt = 0
        while True:
            attempt += 1
            if not self.breaker.try_acquire():
                logger.warning("provider.short_circuit", operation=operation)
                raise CircuitOpenError("Provider circuit is open; calls are suspended.")
            try:
                result = await call()
            except ProviderError as e:
                if not e.transient:
                    self.breaker.record_success()
                    raise
                self.breaker.record_failure()
                if attempt > self.retry.max_retries:
                    logger.warning("provider.retries_exhausted", operation=operation, attempts=attempt, error=str(e))
                    raise RetriesExhaustedError(
                        f"Provider unavailable after {attempt} attempts: {e}", attempts=attempt
                    ) from e
                delay = self.retry.delay(attempt)
                logger.info("provider.retry", operation=operation, attempt=attempt, delay_s=delay, error=str(e))
                await self._sleep(delay)
            except BaseException:
                # Cancellation or an unexpected bug: not an upstream verdict
                self.breaker.abandon()
                raise
            else:
                self.breaker.record_success()
                return result
