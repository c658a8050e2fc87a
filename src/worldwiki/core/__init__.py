from .base import ApplicationError, ErrorCode, ErrorLevel
from .circuit_breaker import CircuitBreaker, CircuitState
from .errors import (
    AuthenticationError,
    CredentialError,
    ProtocolDecodeError,
    QuotaExceededError,
    RateLimitExceededError,
    StoreError,
    UpstreamGenerationError,
    ValidationError,
)
from .events import FallbackKind, FallbackMonitor
