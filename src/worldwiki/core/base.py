"""Base error classes and enums"""

import logging
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from logfire.integrations.pydantic import PluginSettings
from pydantic import BaseModel, Field, field_serializer


class ErrorLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    def to_logging_level(self) -> int:
        """Convert ErrorLevel to logging level"""
        return {
            ErrorLevel.DEBUG: logging.DEBUG,
            ErrorLevel.INFO: logging.INFO,
            ErrorLevel.WARNING: logging.WARNING,
            ErrorLevel.ERROR: logging.ERROR,
            ErrorLevel.CRITICAL: logging.CRITICAL,
        }[self]


class ErrorCode(str, Enum):
    """Machine-readable codes surfaced to clients so they can branch on them."""

    # Request errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    NOT_FOUND = "NOT_FOUND"

    # Admission errors
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"  # free-tier daily quota
    TOO_MANY_REQUESTS = "TOO_MANY_REQUESTS"  # sliding-window limit
    API_KEY_REQUIRED = "API_KEY_REQUIRED"

    # Generation errors
    UPSTREAM_GENERATION_FAILED = "UPSTREAM_GENERATION_FAILED"
    UPSTREAM_TIMEOUT = "UPSTREAM_TIMEOUT"
    STREAM_DECODE_FAILED = "STREAM_DECODE_FAILED"

    # Infrastructure errors
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorDetails(BaseModel, plugin_settings=PluginSettings(logfire={"record": "all"})):
    """Base model for structured error details"""

    source: str = Field(description="Component or module where the error occurred")
    operation: str = Field(description="Operation being performed when the error occurred")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC), description="When the error occurred")

    # Ensure timestamp is serialized consistently
    @field_serializer("timestamp")
    def serialize_timestamp(self, timestamp: datetime) -> str:
        return timestamp.isoformat()


class ValidationErrorDetails(ErrorDetails):
    """Details for validation-related errors"""

    field: str | None = Field(None, description="Field that failed validation")
    constraint: str | None = Field(None, description="Constraint that was violated")


class QuotaErrorDetails(ErrorDetails):
    """Details for free-tier quota errors"""

    usage_count: int = Field(description="Generations used in the current day")
    daily_limit: int = Field(description="Free generations allowed per day")


class RateLimitErrorDetails(ErrorDetails):
    """Details for sliding-window rejections"""

    limit_type: str = Field(description="Which key was over its limit: 'user' or 'ip'")
    retry_after: int = Field(description="Seconds until the window admits another hit")
    limit: int = Field(description="Hits allowed per window")


class ServiceErrorDetails(ErrorDetails):
    """Details for service-related errors"""

    service_name: str = Field(description="Name of the service that failed")
    endpoint: str | None = Field(None, description="Service endpoint that was called")
    status_code: int | None = Field(None, description="HTTP or service status code")
    latency_ms: float | None = Field(None, description="Response time in milliseconds")


class AIServiceErrorDetails(ServiceErrorDetails):
    """Details for upstream generation errors"""

    model_name: str | None = Field(None, description="AI model name")
    phase: str | None = Field(None, description="Generation phase: metadata or content")


class ApplicationError(Exception):
    """Base class for all application errors"""

    status_code: int = 500
    title: str = "Internal Server Error"

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        level: ErrorLevel = ErrorLevel.ERROR,
        details: ErrorDetails | dict[str, Any] | None = None,
        status_code: int | None = None,
    ):
        self.message = message
        self.code = code
        self.level = level
        if status_code is not None:
            self.status_code = status_code

        # Convert dict to ErrorDetails if needed
        if details is None:
            self.details = ErrorDetails(source="unknown", operation="unknown")
        elif isinstance(details, dict):
            # Extract source and operation from dict if available, otherwise use defaults
            details = dict(details)
            source = details.pop("source", "unknown")
            operation = details.pop("operation", "unknown")
            self.details = ErrorDetails(source=source, operation=operation, **details)
        else:
            self.details = details

        super().__init__(message)

    def payload_fields(self) -> dict[str, Any]:
        """Extra camelCase fields merged into the client-facing error body."""
        return {}

    def to_payload(self) -> dict[str, Any]:
        """Client-facing JSON body shared by every transport."""
        body: dict[str, Any] = {
            "error": self.title,
            "message": self.message,
            "code": self.code.value,
        }
        body.update(self.payload_fields())
        return body
