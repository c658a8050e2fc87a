"""Store protocols for quota counters and sliding windows."""

from typing import Protocol


class CounterStore(Protocol):
    """Integer counters with a time-to-live, used for daily quotas."""

    async def get(self, key: str) -> int: ...

    async def increment(self, key: str, ttl_seconds: int) -> int:
        """Atomically add one and return the new value."""
        ...

    async def delete(self, key: str) -> None: ...


class WindowStore(Protocol):
    """Timestamped hits per key, used for sliding-window rate limits."""

    async def hit(self, key: str, now_ms: int, window_ms: int) -> int:
        """Record a hit at ``now_ms``, drop hits older than the window and return the count."""
        ...
