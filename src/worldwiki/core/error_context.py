"""Error context management"""

from datetime import UTC, datetime
from types import TracebackType
from typing import Any
from uuid import uuid4

from .base import ApplicationError
from .logging import get_log_context, get_logger

logger = get_logger(__name__)


class ErrorContext:
    """Captures and stores context around an error"""

    def __init__(self, error: Exception, trace_id: str | None = None, **context: Any):
        self.error = error
        # Reuse the request id when one is bound so logs and error bodies line up
        self.trace_id = trace_id or get_log_context().get("request_id") or str(uuid4())
        self.timestamp = datetime.now(UTC)
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Convert context to dictionary format with structured details from ApplicationError"""
        result = {
            "error_type": self.error.__class__.__name__,
            "error_message": str(self.error),
            "trace_id": self.trace_id,
            "timestamp": self.timestamp.isoformat(),
        }

        if isinstance(self.error, ApplicationError):
            result["error_code"] = self.error.code.value
            result["error_level"] = self.error.level.value
            for key, value in self.error.details.model_dump().items():
                result[f"details.{key}"] = value

        for key, value in self.context.items():
            result[f"context.{key}"] = value

        return result


class ErrorContextManager:
    """Captures an ErrorContext for the duration of error handling"""

    def __init__(self, error: Exception, **context: Any) -> None:
        self._error = error
        self._context = context

    def _capture(self) -> ErrorContext:
        return ErrorContext(self._error, **self._context)

    def _report(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
    ) -> None:
        # A new exception raised while handling the original one, other than a re-raise
        if exc_type is not None and exc_val is not None and exc_val is not self._error:
            logger.error(
                "Exception during error context handling",
                error_type=exc_type.__name__,
                error_message=str(exc_val),
            )

    async def __aenter__(self) -> ErrorContext:
        return self._capture()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self._report(exc_type, exc_val)

    def __enter__(self) -> ErrorContext:
        return self._capture()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self._report(exc_type, exc_val)
