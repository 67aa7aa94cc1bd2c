"""Thread-safe circuit breaker for the completions endpoint.

When the endpoint is down, every worker would otherwise sit out the full
request timeout for each remaining chunk. The breaker counts consecutive
failures shared by all workers and, once open, rejects calls immediately
so those chunks become failure placeholders without waiting.

States:
  CLOSED    -- normal operation, requests pass through
  OPEN      -- endpoint is down, requests fail immediately
  HALF_OPEN -- cooldown expired, one probe request allowed

The breaker never retries anything; it only decides whether a call is
attempted at all.
"""

import logging
import threading
import time
from contextlib import contextmanager
from enum import Enum
from typing import Iterator

logger = logging.getLogger("aiguide.circuit_breaker")

DEFAULT_FAILURE_THRESHOLD = 3    # consecutive failures before opening
DEFAULT_COOLDOWN_SECONDS = 60    # seconds to wait before half-open probe


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """Raised when the circuit is open and requests are blocked."""

    def __init__(self, endpoint: str, retry_after: float):
        self.endpoint = endpoint
        self.retry_after = retry_after
        super().__init__(
            f"Circuit breaker OPEN for '{endpoint}' after repeated failures. "
            f"Retry after {retry_after:.0f}s."
        )


class CircuitBreaker:
    """Per-endpoint circuit breaker shared by all writer threads.

    Args:
        endpoint: Label used in logs and errors (usually the completions URL).
        failure_threshold: Consecutive failures that open the circuit.
        cooldown_seconds: Time in OPEN before a half-open probe is allowed.
    """

    def __init__(
        self,
        endpoint: str,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
    ) -> None:
        self.endpoint = endpoint
        self._failure_threshold = failure_threshold
        self._cooldown_seconds = cooldown_seconds

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time = 0.0
        self._probe_in_flight = False
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failure_count

    def check(self) -> None:
        """Allow or reject a request. Raises CircuitBreakerOpen when blocked.

        In HALF_OPEN only one probe is let through; concurrent workers are
        rejected until the probe reports back.
        """
        with self._lock:
            if self._state == CircuitState.CLOSED:
                return
            if self._state == CircuitState.OPEN:
                elapsed = time.monotonic() - self._last_failure_time
                if elapsed < self._cooldown_seconds:
                    raise CircuitBreakerOpen(self.endpoint, self._cooldown_seconds - elapsed)
                self._state = CircuitState.HALF_OPEN
                logger.info("Circuit %s: OPEN -> HALF_OPEN (cooldown expired)", self.endpoint)
            if self._probe_in_flight:
                raise CircuitBreakerOpen(self.endpoint, self._cooldown_seconds)
            self._probe_in_flight = True

    def record_success(self) -> None:
        with self._lock:
            self._probe_in_flight = False
            self._failure_count = 0
            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.CLOSED
                logger.info("Circuit %s: HALF_OPEN -> CLOSED", self.endpoint)

    def record_failure(self) -> None:
        with self._lock:
            self._probe_in_flight = False
            self._failure_count += 1
            self._last_failure_time = time.monotonic()
            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.OPEN
                logger.warning("Circuit %s: HALF_OPEN -> OPEN (probe failed)", self.endpoint)
            elif (
                self._state == CircuitState.CLOSED
                and self._failure_count >= self._failure_threshold
            ):
                self._state = CircuitState.OPEN
                logger.warning(
                    "Circuit %s: CLOSED -> OPEN (%d consecutive failures)",
                    self.endpoint, self._failure_count,
                )

    @contextmanager
    def guard(self) -> Iterator[None]:
        """Wrap one request: check first, then record its outcome.

        Exceptions from the body are recorded as failures and re-raised.
        """
        self.check()
        try:
            yield
        except BaseException:
            self.record_failure()
            raise
        self.record_success()


# ---------------------------------------------------------------------------
# Registry: one breaker per endpoint, shared across clients
# ---------------------------------------------------------------------------

_breakers: dict[str, CircuitBreaker] = {}
_registry_lock = threading.Lock()


def get_breaker(
    endpoint: str,
    failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
    cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
) -> CircuitBreaker:
    """Get or create the breaker for *endpoint*.

    Thresholds only apply when the breaker is first created.
    """
    with _registry_lock:
        if endpoint not in _breakers:
            _breakers[endpoint] = CircuitBreaker(
                endpoint=endpoint,
                failure_threshold=failure_threshold,
                cooldown_seconds=cooldown_seconds,
            )
        return _breakers[endpoint]


def reset_all() -> None:
    """Reset all circuit breakers (for testing)."""
    with _registry_lock:
        _breakers.clear()
