"""Sliding-window rate limiting per caller identity and per IP."""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass

from worldwiki.core.base import RateLimitErrorDetails
from worldwiki.core.config import RateLimitRule, Settings
from worldwiki.core.errors import RateLimitExceededError
from worldwiki.core.events import FallbackKind, FallbackMonitor
from worldwiki.core.logging import get_logger
from worldwiki.domain.models import RateLimitResult
from worldwiki.infrastructure.stores import WindowStore

logger = get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class CombinedRateLimit:
    """Outcome of checking the identity key and the IP key for one request."""

    operation: str
    rule: RateLimitRule
    ip: RateLimitResult
    user: RateLimitResult | None = None
    checked_at: int = 0

    @property
    def allowed(self) -> bool:
        return self.ip.allowed and (self.user is None or self.user.allowed)

    @property
    def limit_type(self) -> str | None:
        """Which key rejected the request; the identity key wins when both did."""
        if self.user is not None and not self.user.allowed:
            return "user"
        if not self.ip.allowed:
            return "ip"
        return None

    @property
    def most_restrictive(self) -> RateLimitResult:
        if self.user is not None and self.user.remaining < self.ip.remaining:
            return self.user
        return self.ip

    def headers(self) -> dict[str, str]:
        result = self.most_restrictive
        headers = {
            "X-RateLimit-Limit": str(self.rule.max_requests),
            "X-RateLimit-Remaining": str(result.remaining),
            "X-RateLimit-Reset": str(result.reset_seconds),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after)
        return headers

    @property
    def retry_after(self) -> int:
        offending = self.user if self.limit_type == "user" and self.user is not None else self.ip
        return offending.retry_after(self.checked_at)

    def raise_for_rejection(self) -> None:
        limit_type = self.limit_type
        if limit_type is None:
            return
        subject = "user" if limit_type == "user" else "IP"
        raise RateLimitExceededError(
            f"Rate limit exceeded for {subject}. Try again in {self.retry_after} seconds.",
            RateLimitErrorDetails(
                source="rate_limiter",
                operation=self.operation,
                limit_type=limit_type,
                retry_after=self.retry_after,
                limit=self.rule.max_requests,
            ),
        )

    @classmethod
    def unchecked(cls, operation: str, rule: RateLimitRule, now_ms: int) -> "CombinedRateLimit":
        """Result used when the limiter itself failed and the request is let through."""
        result = RateLimitResult(
            allowed=True,
            remaining=rule.max_requests,
            reset_at=now_ms + rule.window_ms,
            total_hits=0,
            limit=rule.max_requests,
        )
        return cls(operation=operation, rule=rule, ip=result, checked_at=now_ms)


class SlidingWindowRateLimiter:
    def __init__(
        self,
        store: WindowStore,
        config: Settings,
        monitor: FallbackMonitor,
        clock_ms: Callable[[], int] = _now_ms,
    ):
        self.store = store
        self.config = config
        self.monitor = monitor
        self._clock_ms = clock_ms

    async def check(self, key: str, window_ms: int, max_hits: int, now_ms: int | None = None) -> RateLimitResult:
        """Record a hit for ``key`` and report whether it is within the window limit."""
        now_ms = self._clock_ms() if now_ms is None else now_ms
        total_hits = await self.store.hit(key, now_ms, window_ms)
        return RateLimitResult(
            allowed=total_hits <= max_hits,
            remaining=max(0, max_hits - total_hits),
            reset_at=now_ms + window_ms,
            total_hits=total_hits,
            limit=max_hits,
        )

    @staticmethod
    def _prefix(operation: str, rule: RateLimitRule) -> str:
        return rule.key_prefix or f"rl:{operation}"

    async def check_combined(self, identity: str | None, ip: str, operation: str) -> CombinedRateLimit:
        """Check the identity and IP keys together. Without an identity only the IP key counts.

        A failure inside the limiter admits the request and is recorded as a
        fallback event rather than failing the request.
        """
        rule = self.config.rate_limit_for(operation)
        prefix = self._prefix(operation, rule)
        now_ms = self._clock_ms()

        try:
            ip_check = self.check(f"{prefix}:ip:{ip}", rule.window_ms, rule.max_requests, now_ms)
            if identity is None:
                ip_result = await ip_check
                user_result = None
            else:
                user_check = self.check(f"{prefix}:{identity}", rule.window_ms, rule.max_requests, now_ms)
                user_result, ip_result = await asyncio.gather(user_check, ip_check)
        except Exception as e:
            self.monitor.record(FallbackKind.RATE_LIMIT_BYPASSED, source="rate_limiter", reason=e, operation=operation)
            return CombinedRateLimit.unchecked(operation, rule, now_ms)

        combined = CombinedRateLimit(operation=operation, rule=rule, ip=ip_result, user=user_result, checked_at=now_ms)
        if not combined.allowed:
            logger.warning(
                "Rate limit exceeded",
                limit_type=combined.limit_type,
                rate_limit_operation=operation,
                retry_after=combined.retry_after,
            )
        return combined
