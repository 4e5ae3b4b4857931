# listing_ingest/adapters/clients/http_resilience.py
from __future__ import annotations

import asyncio
import enum
import logging
import random
import time
from typing import Any, Awaitable, Callable, TypeVar

from ...config import settings
from ...domain.errors import CircuitOpenError, NotFoundError, TransientNetworkError

log = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, enum.Enum):
    closed = "CLOSED"
    open = "OPEN"
    half_open = "HALF_OPEN"


class CircuitBreaker:
    """
    CLOSED -> OPEN after `failure_threshold` consecutive failures.
    OPEN fails fast until `timeout_s` has passed since the last failure.
    HALF_OPEN lets one trial call through at a time; `success_threshold`
    consecutive successes close it, any failure reopens it.

    None of the state methods await, so every read-modify-write below runs
    to completion on the event loop without interleaving.
    """

    def __init__(
        self,
        *,
        name: str = "external",
        failure_threshold: int | None = None,
        success_threshold: int | None = None,
        timeout_s: float | None = None,
        ignored: tuple[type[BaseException], ...] = (NotFoundError,),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.failure_threshold = int(failure_threshold or settings.BREAKER_FAILURE_THRESHOLD)
        self.success_threshold = int(success_threshold or settings.BREAKER_SUCCESS_THRESHOLD)
        self.timeout_s = float(settings.BREAKER_TIMEOUT_S if timeout_s is None else timeout_s)
        self.ignored = ignored
        self._clock = clock

        self.state = CircuitState.closed
        self.consecutive_failures = 0
        self.consecutive_successes = 0
        self.last_failure_time: float | None = None
        self._trial_in_flight = False

    # ----- state transitions -----

    def _admit(self) -> bool:
        if self.state is CircuitState.open:
            if self.last_failure_time is not None and self._clock() - self.last_failure_time < self.timeout_s:
                return False
            self.state = CircuitState.half_open
            self.consecutive_successes = 0
            log.info("Circuit %s: OPEN -> HALF_OPEN (trial call allowed)", self.name)

        if self.state is CircuitState.half_open:
            if self._trial_in_flight:
                return False
            self._trial_in_flight = True
        return True

    def _on_success(self) -> None:
        if self.state is CircuitState.half_open:
            self._trial_in_flight = False
            self.consecutive_successes += 1
            if self.consecutive_successes >= self.success_threshold:
                self.state = CircuitState.closed
                self.consecutive_failures = 0
                self.consecutive_successes = 0
                log.info("Circuit %s: HALF_OPEN -> CLOSED", self.name)
            return
        self.consecutive_failures = 0

    def _on_failure(self) -> None:
        self.consecutive_failures += 1
        self.consecutive_successes = 0
        self.last_failure_time = self._clock()

        if self.state is CircuitState.half_open:
            self._trial_in_flight = False
            self.state = CircuitState.open
            log.warning("Circuit %s: HALF_OPEN -> OPEN (trial failed)", self.name)
        elif self.state is CircuitState.closed and self.consecutive_failures >= self.failure_threshold:
            self.state = CircuitState.open
            log.warning(
                "Circuit %s: CLOSED -> OPEN after %d consecutive failures", self.name, self.consecutive_failures
            )

    def _on_ignored(self) -> None:
        if self.state is CircuitState.half_open:
            self._trial_in_flight = False

    def retry_after_s(self) -> float | None:
        if self.state is not CircuitState.open or self.last_failure_time is None:
            return None
        return max(0.0, self.timeout_s - (self._clock() - self.last_failure_time))

    # ----- public -----

    async def call(
        self,
        fn: Callable[[], Awaitable[T]],
        fallback: Callable[[BaseException], Awaitable[T]] | None = None,
    ) -> T:
        """
        Run `fn` through the breaker. `fallback` receives the error (a
        CircuitOpenError when we refused to call) and either returns a
        substitute value or re-raises.
        """
        if not self._admit():
            err = CircuitOpenError(
                f"circuit {self.name} is {self.state.value}; refusing external call",
                retry_after_s=self.retry_after_s(),
            )
            if fallback is not None:
                return await fallback(err)
            raise err

        try:
            result = await fn()
        except self.ignored:
            self._on_ignored()
            raise
        except asyncio.CancelledError:
            self._on_ignored()
            raise
        except Exception as e:
            self._on_failure()
            if fallback is not None:
                return await fallback(e)
            raise

        self._on_success()
        return result

    def stats(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "consecutive_failures": self.consecutive_failures,
            "consecutive_successes": self.consecutive_successes,
            "last_failure_time": self.last_failure_time,
            "failure_threshold": self.failure_threshold,
            "success_threshold": self.success_threshold,
            "timeout_s": self.timeout_s,
            "retry_after_s": self.retry_after_s(),
        }

    def reset(self) -> None:
        self.state = CircuitState.closed
        self.consecutive_failures = 0
        self.consecutive_successes = 0
        self.last_failure_time = None
        self._trial_in_flight = False
        log.info("Circuit %s: manually reset to CLOSED", self.name)


class RetryPolicy:
    """
    Exponential backoff with jitter:
      delay(attempt) = min(base * 2**attempt, max) + random() * jitter_ratio * that
    attempt is 0-based; `max_attempts` counts the first try.
    """

    def __init__(
        self,
        *,
        max_attempts: int | None = None,
        base_delay_s: float | None = None,
        max_delay_s: float | None = None,
        jitter_ratio: float | None = None,
        retry_on: tuple[type[BaseException], ...] = (TransientNetworkError,),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self.max_attempts = max(1, int(max_attempts or settings.RETRY_MAX_ATTEMPTS))
        self.base_delay_s = float(settings.RETRY_BASE_DELAY_S if base_delay_s is None else base_delay_s)
        self.max_delay_s = float(settings.RETRY_MAX_DELAY_S if max_delay_s is None else max_delay_s)
        self.jitter_ratio = float(settings.RETRY_JITTER_RATIO if jitter_ratio is None else jitter_ratio)
        self.retry_on = retry_on
        self._sleep = sleep
        self._rng = rng

    def is_retryable(self, exc: BaseException) -> bool:
        return isinstance(exc, self.retry_on)

    def delay_for(self, attempt: int) -> float:
        capped = min(self.base_delay_s * (2**attempt), self.max_delay_s)
        return capped + self._rng() * self.jitter_ratio * capped

    async def run(self, fn: Callable[[], Awaitable[T]], *, label: str = "call") -> T:
        attempt = 0
        while True:
            try:
                return await fn()
            except Exception as e:
                if not self.is_retryable(e) or attempt + 1 >= self.max_attempts:
                    raise
                delay = self.delay_for(attempt)
                log.warning(
                    "%s failed (%s); retry %d/%d in %.2fs",
                    label, e, attempt + 1, self.max_attempts - 1, delay,
                )
                await self._sleep(delay)
                attempt += 1
