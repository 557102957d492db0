"""
Circuit Breaker — stops calling a failing AI operation for a cooldown.

States: CLOSED → OPEN → HALF_OPEN → CLOSED
- CLOSED: normal. After `failure_threshold` consecutive failures → OPEN
- OPEN: reject immediately for `recovery_timeout` seconds
- HALF_OPEN: allow 1 trial request. Success → CLOSED; Failure → OPEN
- A success reported by a call admitted before the circuit opened is ignored;
  only the half-open trial can close an opened circuit

State is guarded by a threading.Lock so one breaker can be shared by
concurrent callers. The clock is injectable for tests.
"""

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import structlog

logger = structlog.get_logger(__name__)

FAILURE_THRESHOLD: int = 5
RECOVERY_TIMEOUT_SECONDS: float = 30.0


class CircuitState(str, Enum):
    CLOSED = "closed"       # Normal operation
    OPEN = "open"           # Rejecting all requests
    HALF_OPEN = "half_open" # Testing with one request


@dataclass(frozen=True)
class CircuitSnapshot:
    name: str
    state: CircuitState
    consecutive_failures: int
    opened_at: Optional[float]
    total_opens: int


class CircuitBreaker:
    """Consecutive-failure circuit breaker for one operation."""

    def __init__(
        self,
        name: str,
        failure_threshold: int = FAILURE_THRESHOLD,
        recovery_timeout: float = RECOVERY_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock

        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at: Optional[float] = None
        self._half_open_in_progress = False
        self._total_opens = 0

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._current_state()

    def _current_state(self) -> CircuitState:
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            if self._clock() - self._opened_at >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                self._half_open_in_progress = False
                logger.info("circuit_half_open", breaker=self.name)
        return self._state

    def allow_request(self) -> bool:
        """
        Whether a call may go through now.

        In HALF_OPEN only the first caller is admitted; it must report back
        through record_success / record_failure.
        """
        with self._lock:
            state = self._current_state()
            if state == CircuitState.CLOSED:
                return True
            if state == CircuitState.HALF_OPEN and not self._half_open_in_progress:
                self._half_open_in_progress = True
                return True
            logger.debug("circuit_open_rejected", breaker=self.name, state=state.value)
            return False

    def record_success(self) -> None:
        with self._lock:
            state = self._current_state()
            if state == CircuitState.OPEN or (
                state == CircuitState.HALF_OPEN and not self._half_open_in_progress
            ):
                # Late success of a call admitted before the circuit opened.
                logger.debug("circuit_stale_success_ignored", breaker=self.name)
                return
            if state == CircuitState.HALF_OPEN:
                logger.info("circuit_closed", breaker=self.name)
            self._state = CircuitState.CLOSED
            self._failures = 0
            self._opened_at = None
            self._half_open_in_progress = False

    def record_failure(self) -> None:
        with self._lock:
            now = self._clock()
            self._half_open_in_progress = False

            if self._state == CircuitState.HALF_OPEN:
                self._open(now)
                logger.warning("circuit_reopened", breaker=self.name)
                return

            self._failures += 1
            if self._state == CircuitState.CLOSED and self._failures >= self.failure_threshold:
                self._open(now)
                logger.warning(
                    "circuit_opened",
                    breaker=self.name,
                    failures=self._failures,
                    recovery_seconds=self.recovery_timeout,
                )

    def release_trial(self) -> None:
        """Give back a half-open trial slot without recording an outcome."""
        with self._lock:
            self._half_open_in_progress = False

    def _open(self, now: float) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = now
        self._total_opens += 1

    def reset(self) -> None:
        """Manually reset to CLOSED."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._failures = 0
            self._opened_at = None
            self._half_open_in_progress = False
        logger.info("circuit_reset", breaker=self.name)

    def snapshot(self) -> CircuitSnapshot:
        with self._lock:
            return CircuitSnapshot(
                name=self.name,
                state=self._current_state(),
                consecutive_failures=self._failures,
                opened_at=self._opened_at,
                total_opens=self._total_opens,
            )
