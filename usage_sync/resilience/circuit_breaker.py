"""
Circuit breaker for outbound usage lookups.
Stops calling an AWS API that keeps failing, so one broken service does not
slow down every estimator in a sync pass.
"""
from enum import Enum
import logging
import threading
import time
from typing import Callable, Dict, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Circuit breaker configuration constants
FAILURE_THRESHOLD = 3  # Trip breaker after N consecutive failures
OPEN_STATE_DURATION = 60  # Seconds to remain OPEN before allowing a trial call


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing fast
    HALF_OPEN = "half_open"  # One trial call allowed


class CircuitBreakerError(Exception):
    """Raised when a call is refused because the circuit is open."""
    pass


class CircuitBreaker:
    """
    Circuit breaker for a single upstream service.

    Transitions:
    - CLOSED -> OPEN: after failure_threshold consecutive failures
    - OPEN -> HALF_OPEN: once open_duration seconds have passed
    - HALF_OPEN -> CLOSED: trial call succeeds
    - HALF_OPEN -> OPEN: trial call fails
    """

    def __init__(
        self,
        service_name: str,
        failure_threshold: int = FAILURE_THRESHOLD,
        open_duration: float = OPEN_STATE_DURATION,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize circuit breaker.

        Args:
            service_name: Name of the service (e.g., "aws_eks")
            failure_threshold: Consecutive failures before opening
            open_duration: Seconds to remain OPEN before a trial call
            clock: Monotonic time source
        """
        self.service_name = service_name
        self.failure_threshold = failure_threshold
        self.open_duration = open_duration
        self._clock = clock

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.opened_at: Optional[float] = None
        # Breakers are shared by boto3 calls running in worker threads
        self._lock = threading.Lock()

    def allow_request(self) -> bool:
        """True if a call may go through now."""
        with self._lock:
            return self._allow_request()

    def _allow_request(self) -> bool:
        if self.state == CircuitState.OPEN:
            if self.opened_at is not None and self._clock() - self.opened_at >= self.open_duration:
                logger.warning("Circuit breaker for %s: OPEN -> HALF_OPEN", self.service_name)
                self.state = CircuitState.HALF_OPEN
                return True
            return False
        # HALF_OPEN admits only the single trial call already let through
        return self.state == CircuitState.CLOSED

    def record_success(self) -> None:
        with self._lock:
            self._record_success()

    def _record_success(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            logger.warning("Circuit breaker for %s: HALF_OPEN -> CLOSED", self.service_name)
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.opened_at = None

    def record_failure(self) -> None:
        with self._lock:
            self._record_failure()

    def _record_failure(self) -> None:
        self.failure_count += 1

        if self.state == CircuitState.HALF_OPEN:
            logger.warning("Circuit breaker for %s: HALF_OPEN -> OPEN", self.service_name)
            self._open()
        elif self.state == CircuitState.CLOSED and self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker for %s: CLOSED -> OPEN (%d consecutive failures)",
                self.service_name,
                self.failure_count,
            )
            self._open()

    def _open(self) -> None:
        self.state = CircuitState.OPEN
        self.opened_at = self._clock()

    def call(self, func: Callable[..., T], *args, **kwargs) -> T:
        """
        Call func through the breaker.

        Raises:
            CircuitBreakerError: If the circuit is open
            Exception: Whatever func raises (recorded as a failure)
        """
        if not self.allow_request():
            raise CircuitBreakerError(
                f"{self.service_name} temporarily unavailable (circuit breaker open)"
            )
        try:
            result = func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result


# Global circuit breaker instances (one per service)
_circuit_breakers: Dict[str, CircuitBreaker] = {}
_registry_lock = threading.Lock()


def get_circuit_breaker(service_name: str) -> CircuitBreaker:
    """
    Get or create circuit breaker for a service.

    Args:
        service_name: Name of the service

    Returns:
        CircuitBreaker instance for the service
    """
    with _registry_lock:
        if service_name not in _circuit_breakers:
            _circuit_breakers[service_name] = CircuitBreaker(service_name)
        return _circuit_breakers[service_name]


def reset_circuit_breakers() -> None:
    """Drop all circuit breakers (used between tests)."""
    with _registry_lock:
        _circuit_breakers.clear()
