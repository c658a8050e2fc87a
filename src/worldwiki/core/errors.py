"""Specific error types for the generation service."""

from typing import Any

from .base import (
    AIServiceErrorDetails,
    ApplicationError,
    ErrorCode,
    ErrorDetails,
    ErrorLevel,
    QuotaErrorDetails,
    RateLimitErrorDetails,
    ServiceErrorDetails,
    ValidationErrorDetails,
)


class ValidationError(ApplicationError):
    """Bad request shape or length. Rejected before any upstream call."""

    status_code = 400
    title = "Validation Error"

    def __init__(self, message: str, details: ValidationErrorDetails | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.VALIDATION_ERROR,
            level=ErrorLevel.WARNING,
            details=details or ValidationErrorDetails(source="validation", operation="parse_request"),
        )

    @property
    def field(self) -> str | None:
        return getattr(self.details, "field", None)

    def payload_fields(self) -> dict[str, Any]:
        return {"field": self.field} if self.field else {}


class QuotaExceededError(ApplicationError):
    """Free-tier daily cap reached. The client should offer an own credential."""

    status_code = 429
    title = "Daily free limit reached"

    def __init__(self, message: str, details: QuotaErrorDetails):
        super().__init__(
            message=message,
            code=ErrorCode.RATE_LIMIT_EXCEEDED,
            level=ErrorLevel.WARNING,
            details=details,
        )

    @property
    def usage_count(self) -> int:
        return self.details.usage_count  # type: ignore[attr-defined]

    @property
    def daily_limit(self) -> int:
        return self.details.daily_limit  # type: ignore[attr-defined]

    def payload_fields(self) -> dict[str, Any]:
        return {
            "usageCount": self.usage_count,
            "dailyLimit": self.daily_limit,
            "requiresApiKey": True,
        }


class RateLimitExceededError(ApplicationError):
    """Per-identity or per-IP sliding window exceeded. Safe to retry later."""

    status_code = 429
    title = "Too Many Requests"

    def __init__(self, message: str, details: RateLimitErrorDetails):
        super().__init__(
            message=message,
            code=ErrorCode.TOO_MANY_REQUESTS,
            level=ErrorLevel.WARNING,
            details=details,
        )

    @property
    def retry_after(self) -> int:
        return self.details.retry_after  # type: ignore[attr-defined]

    def payload_fields(self) -> dict[str, Any]:
        return {
            "retryAfter": self.retry_after,
            "limitType": self.details.limit_type,  # type: ignore[attr-defined]
        }


class CredentialError(ApplicationError):
    """No usable upstream credential."""

    status_code = 401
    title = "No API key available"

    def __init__(self, message: str, details: ErrorDetails | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.API_KEY_REQUIRED,
            level=ErrorLevel.WARNING,
            details=details,
        )

    def payload_fields(self) -> dict[str, Any]:
        return {"requiresApiKey": True}


class AuthenticationError(ApplicationError):
    """Authentication-related errors."""

    status_code = 401
    title = "Unauthorized"

    def __init__(self, message: str, details: ErrorDetails | dict | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.UNAUTHORIZED,
            level=ErrorLevel.WARNING,
            details=details,
        )


class UpstreamGenerationError(ApplicationError):
    """Failure calling the generation service."""

    status_code = 502
    title = "Generation failed"

    def __init__(
        self,
        message: str,
        details: AIServiceErrorDetails | None = None,
        code: ErrorCode = ErrorCode.UPSTREAM_GENERATION_FAILED,
    ):
        super().__init__(
            message=message,
            code=code,
            level=ErrorLevel.ERROR,
            details=details or AIServiceErrorDetails(source="upstream", operation="generate", service_name="unknown"),
        )


class ProtocolDecodeError(ApplicationError):
    """Malformed or truncated push stream."""

    title = "Stream decode failed"

    def __init__(self, message: str, details: ErrorDetails | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.STREAM_DECODE_FAILED,
            level=ErrorLevel.WARNING,
            details=details or ErrorDetails(source="push_stream", operation="decode"),
        )


class StoreError(ApplicationError):
    """Shared counter store unavailable."""

    status_code = 503
    title = "Service Unavailable"

    def __init__(self, message: str, details: ServiceErrorDetails | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.STORE_UNAVAILABLE,
            level=ErrorLevel.ERROR,
            details=details or ServiceErrorDetails(source="store", operation="call", service_name="redis"),
        )


class MethodNotAllowedError(ApplicationError):
    status_code = 405
    title = "Method Not Allowed"

    def __init__(self, message: str):
        super().__init__(message=message, code=ErrorCode.METHOD_NOT_ALLOWED, level=ErrorLevel.INFO)
