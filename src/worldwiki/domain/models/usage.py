"""Quota, rate-limit and credential records."""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

from .base import WireModel


def utc_date(now: datetime | None = None) -> str:
    """Current UTC calendar day as YYYY-MM-DD, the quota bucket."""
    return (now or datetime.now(UTC)).strftime("%Y-%m-%d")


class UsageRecord(BaseModel):
    identity: str
    date: str
    count: int = Field(default=0, ge=0)


class UsageStatus(WireModel):
    """What the usage endpoint reports for a caller."""

    has_user_api_key: bool
    usage_count: int
    daily_limit: int
    remaining: int
    unlimited: bool


class RateLimitResult(BaseModel):
    allowed: bool
    remaining: int
    reset_at: int = Field(description="Epoch milliseconds when the window admits again")
    total_hits: int
    limit: int

    @property
    def reset_seconds(self) -> int:
        return -(-self.reset_at // 1000)

    def retry_after(self, now_ms: int) -> int:
        return max(1, -(-(self.reset_at - now_ms) // 1000))


class CredentialSource(str, Enum):
    USER = "user"
    SERVICE = "service"
    NONE = "none"


class ResolvedCredential(BaseModel):
    api_key: str | None = Field(default=None, repr=False)
    has_own_credential: bool = False
    source: CredentialSource = CredentialSource.NONE

    @property
    def available(self) -> bool:
        return self.api_key is not None
