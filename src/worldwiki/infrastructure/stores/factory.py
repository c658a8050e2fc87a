"""Builds the quota and rate-limit stores from settings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from worldwiki.core.circuit_breaker import CircuitBreaker
from worldwiki.core.config import Settings
from worldwiki.core.events import FallbackMonitor
from worldwiki.core.logging import get_logger

from .base import CounterStore, WindowStore
from .memory import InMemoryCounterStore, InMemoryWindowStore
from .redis_store import RedisCounterStore, RedisWindowStore, create_redis_client
from .resilient import ResilientCounterStore, ResilientWindowStore

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = get_logger(__name__)


@dataclass
class StoreBundle:
    counters: CounterStore
    windows: WindowStore
    memory_counters: InMemoryCounterStore
    memory_windows: InMemoryWindowStore
    breaker: CircuitBreaker | None = None
    redis: Redis | None = None

    @property
    def shared(self) -> bool:
        return self.redis is not None

    def prune(self) -> dict[str, int]:
        """Sweep the in-process stores. Safe to call whether or not they are in use."""
        return {
            "counters": self.memory_counters.prune(),
            "windows": self.memory_windows.prune(),
        }

    async def close(self) -> None:
        if self.redis is not None:
            await self.redis.aclose()


def build_stores(config: Settings, monitor: FallbackMonitor, redis_client: Redis | None = None) -> StoreBundle:
    """In-process stores, or Redis with in-process fallback when a URL or client is given."""
    memory_counters = InMemoryCounterStore()
    memory_windows = InMemoryWindowStore()

    if redis_client is None and config.redis_url:
        redis_client = create_redis_client(config.redis_url)

    if redis_client is None:
        logger.info("No shared store configured, quotas and rate limits are per process")
        return StoreBundle(memory_counters, memory_windows, memory_counters, memory_windows)

    breaker = CircuitBreaker("redis")
    logger.info("Using Redis for quotas and rate limits")
    return StoreBundle(
        counters=ResilientCounterStore(RedisCounterStore(redis_client), memory_counters, breaker, monitor),
        windows=ResilientWindowStore(RedisWindowStore(redis_client), memory_windows, breaker, monitor),
        memory_counters=memory_counters,
        memory_windows=memory_windows,
        breaker=breaker,
        redis=redis_client,
    )
