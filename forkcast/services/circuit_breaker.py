"""Circuit breaker guarding the shared key-value store."""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """
    Stops calling a failing dependency for a while.

    All mutations happen between awaits on the event loop, so no lock is held.
    """

    name: str
    failure_threshold: int = 3
    recovery_timeout: float = 10.0
    half_open_max_calls: int = 1
    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _failure_count: int = field(default=0, init=False)
    _opened_at: float | None = field(default=None, init=False)
    _half_open_calls: int = field(default=0, init=False)
    _trial_started_at: float | None = field(default=None, init=False)

    @property
    def state(self) -> CircuitState:
        """Current state, moving OPEN to HALF_OPEN once the timeout elapsed."""
        if self._state == CircuitState.OPEN and self._recovery_due():
            self._state = CircuitState.HALF_OPEN
            self._half_open_calls = 0
            logger.info(f"Circuit '{self.name}' entering HALF_OPEN state")
        return self._state

    def _recovery_due(self) -> bool:
        if self._opened_at is None:
            return True
        return time.monotonic() - self._opened_at >= self.recovery_timeout

    def is_available(self) -> bool:
        """
        Check if a call should be let through.

        In HALF_OPEN a trial call that never reported back frees its slot after
        recovery_timeout, so a lost trial call cannot keep the circuit shut.
        """
        state = self.state
        if state == CircuitState.CLOSED:
            return True
        if state != CircuitState.HALF_OPEN:
            return False

        if self._half_open_calls >= self.half_open_max_calls and self._trial_expired():
            logger.warning(f"Circuit '{self.name}' trial call did not report back, allowing another")
            self._half_open_calls = 0

        if self._half_open_calls < self.half_open_max_calls:
            self._half_open_calls += 1
            self._trial_started_at = time.monotonic()
            return True
        return False

    def _trial_expired(self) -> bool:
        if self._trial_started_at is None:
            return True
        return time.monotonic() - self._trial_started_at >= self.recovery_timeout

    def abandon_trial(self) -> None:
        """Give back a HALF_OPEN trial slot whose call was cancelled."""
        if self._state == CircuitState.HALF_OPEN and self._half_open_calls > 0:
            self._half_open_calls -= 1

    def record_success(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            logger.info(f"Circuit '{self.name}' recovered, now CLOSED")
        self._state = CircuitState.CLOSED
        self._failure_count = 0

    def record_failure(self) -> None:
        self._failure_count += 1
        if self._state == CircuitState.HALF_OPEN:
            self._open()
            logger.warning(f"Circuit '{self.name}' failed in HALF_OPEN, back to OPEN")
        elif self._state == CircuitState.CLOSED and self._failure_count >= self.failure_threshold:
            self._open()
            logger.warning(
                f"Circuit '{self.name}' OPENED after {self._failure_count} failures"
            )

    def _open(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = time.monotonic()

    def reset(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at = None
        self._half_open_calls = 0
        self._trial_started_at = None

    def get_status(self) -> dict:
        """Get circuit breaker status for monitoring."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.failure_threshold,
            "recovery_timeout_seconds": self.recovery_timeout,
        }


store_circuit = CircuitBreaker(name="redis", failure_threshold=3, recovery_timeout=10.0)
