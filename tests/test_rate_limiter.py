import asyncio

import pytest

from worldwiki.core.config import RateLimitRule
from worldwiki.core.errors import RateLimitExceededError
from worldwiki.core.events import FallbackKind, FallbackMonitor
from worldwiki.infrastructure.stores import InMemoryWindowStore
from worldwiki.services.rate_limiter import SlidingWindowRateLimiter

from .fakes import make_settings

START_MS = 1_700_000_000_000


class Clock:
    def __init__(self, now_ms: int = START_MS):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms


class BrokenWindowStore:
    async def hit(self, key, now_ms, window_ms):
        raise ConnectionError("store down")


def make_limiter(max_requests=3, window_ms=60_000, store=None, clock=None, monitor=None):
    rule = RateLimitRule(window_ms=window_ms, max_requests=max_requests, key_prefix="rl:wiki")
    config = make_settings(rate_limits={"wiki_generation": rule})
    clock = clock or Clock()
    return SlidingWindowRateLimiter(store or InMemoryWindowStore(clock), config, monitor or FallbackMonitor(), clock)


def test_admits_max_hits_then_rejects():
    limiter = make_limiter()

    async def run():
        return [await limiter.check("rl:wiki:alice", 1000, 3, now_ms=START_MS) for _ in range(4)]

    results = asyncio.run(run())
    assert [r.allowed for r in results] == [True, True, True, False]
    assert [r.remaining for r in results] == [2, 1, 0, 0]
    assert results[-1].total_hits == 4
    assert results[0].reset_at == START_MS + 1000


def test_window_slides():
    limiter = make_limiter()

    async def run():
        for _ in range(3):
            await limiter.check("k", 1000, 3, now_ms=START_MS)
        # Hits exactly one window old still count
        at_edge = await limiter.check("k", 1000, 3, now_ms=START_MS + 1000)
        after = await limiter.check("k", 1000, 3, now_ms=START_MS + 2001)
        return at_edge, after

    at_edge, after = asyncio.run(run())
    assert not at_edge.allowed
    assert after.allowed
    assert after.total_hits == 1


def test_identity_and_ip_keys_are_checked_together():
    limiter = make_limiter(max_requests=2)

    async def run():
        return [await limiter.check_combined("alice", "10.0.0.1", "wiki_generation") for _ in range(3)]

    results = asyncio.run(run())
    assert [r.allowed for r in results] == [True, True, False]
    # Both keys are over the limit; the identity key is reported
    assert results[-1].limit_type == "user"
    assert results[-1].user is not None


def test_shared_ip_limits_different_users():
    limiter = make_limiter(max_requests=2)

    async def run():
        first = await limiter.check_combined("alice", "10.0.0.1", "wiki_generation")
        second = await limiter.check_combined("bob", "10.0.0.1", "wiki_generation")
        third = await limiter.check_combined("carol", "10.0.0.1", "wiki_generation")
        return first, second, third

    first, second, third = asyncio.run(run())
    assert first.allowed and second.allowed
    assert not third.allowed
    assert third.limit_type == "ip"


def test_anonymous_callers_use_ip_key_only():
    limiter = make_limiter(max_requests=1)
    result = asyncio.run(limiter.check_combined(None, "10.0.0.9", "wiki_generation"))
    assert result.user is None
    assert result.allowed
    assert result.headers()["X-RateLimit-Remaining"] == "0"


def test_rejection_headers_and_error():
    clock = Clock()
    limiter = make_limiter(max_requests=1, clock=clock)

    async def run():
        await limiter.check_combined("alice", "10.0.0.1", "wiki_generation")
        return await limiter.check_combined("alice", "10.0.0.1", "wiki_generation")

    result = asyncio.run(run())
    headers = result.headers()
    assert headers["X-RateLimit-Limit"] == "1"
    assert headers["X-RateLimit-Remaining"] == "0"
    assert headers["X-RateLimit-Reset"] == str((START_MS + 60_000) // 1000)
    assert headers["Retry-After"] == "60"

    with pytest.raises(RateLimitExceededError) as exc_info:
        result.raise_for_rejection()
    payload = exc_info.value.to_payload()
    assert exc_info.value.status_code == 429
    assert payload["code"] == "TOO_MANY_REQUESTS"
    assert payload["retryAfter"] == 60
    assert payload["limitType"] == "user"


def test_unknown_operation_uses_global_class():
    limiter = make_limiter()
    result = asyncio.run(limiter.check_combined("alice", "10.0.0.1", "something_else"))
    assert result.rule.max_requests == 200


def test_limiter_failure_admits_and_records_fallback():
    monitor = FallbackMonitor()
    limiter = make_limiter(store=BrokenWindowStore(), monitor=monitor)

    result = asyncio.run(limiter.check_combined("alice", "10.0.0.1", "wiki_generation"))

    assert result.allowed
    assert "Retry-After" not in result.headers()
    assert monitor.count(FallbackKind.RATE_LIMIT_BYPASSED) == 1
