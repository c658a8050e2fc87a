"""Circuit breaker for the shared counter store."""

import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, TypeVar

from worldwiki.core.base import ServiceErrorDetails
from worldwiki.core.errors import StoreError
from worldwiki.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "closed"  # store calls go through
    OPEN = "open"  # store skipped, callers use their fallback
    HALF_OPEN = "half_open"  # one probe call allowed


class CircuitBreaker:
    """
    Stops calling a failing store until it has had time to recover.

    After ``failure_threshold`` consecutive failures the circuit opens and
    every call is refused without touching the store. Once
    ``recovery_timeout`` seconds have passed a single probe is let through:
    success closes the circuit, failure opens it again.

    Refused and failed calls both raise ``StoreError``, so a caller has one
    exception to catch before switching to its in-process fallback.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 3,
        recovery_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.opened_at: float | None = None
        self.last_exception: Exception | None = None

    def _refresh(self) -> None:
        if self.state != CircuitState.OPEN or self.opened_at is None:
            return
        if self._clock() - self.opened_at >= self.recovery_timeout:
            logger.info("Circuit half-open, probing store", circuit=self.name)
            self.state = CircuitState.HALF_OPEN

    def _open(self, exception: Exception) -> None:
        self.state = CircuitState.OPEN
        self.opened_at = self._clock()
        logger.error(
            "Circuit opened, using fallback store",
            circuit=self.name,
            failures=self.failure_count,
            last_exception=str(exception),
        )

    def _on_success(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            logger.info("Circuit closed, store recovered", circuit=self.name)
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.last_exception = None

    def _on_failure(self, exception: Exception) -> None:
        self.last_exception = exception
        self.failure_count += 1
        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            self._open(exception)

    def _error(self, message: str, operation: str) -> StoreError:
        return StoreError(
            message=message,
            details=ServiceErrorDetails(
                source="circuit_breaker",
                operation=operation,
                service_name=self.name,
                status_code=503,
            ),
        )

    @property
    def is_open(self) -> bool:
        self._refresh()
        return self.state == CircuitState.OPEN

    async def call_async(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """
        Run ``func`` unless the circuit is open.

        Raises:
            StoreError: If the circuit is open or the call failed
        """
        operation = getattr(func, "__name__", "call")
        if self.is_open:
            raise self._error(f"Circuit '{self.name}' is open (last error: {self.last_exception})", operation)

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            self._on_failure(e)
            raise self._error(f"{self.name} call failed: {e}", operation) from e

        self._on_success()
        return result

    def get_state(self) -> dict[str, Any]:
        """Breaker state for the health endpoint."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "opened_at": self.opened_at,
            "last_exception": str(self.last_exception) if self.last_exception else None,
        }
