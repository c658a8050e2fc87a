"""In-process stores.

Used when no shared store is configured and as the fallback when it fails.
State is per process, so limits are only approximate when several processes
serve the same callers.
"""

import time
from collections import deque
from collections.abc import Callable


def _now_ms() -> int:
    return int(time.time() * 1000)


class InMemoryCounterStore:
    def __init__(self, clock_ms: Callable[[], int] = _now_ms):
        self._clock_ms = clock_ms
        self._counters: dict[str, tuple[int, int]] = {}  # key -> (count, expires_at_ms)

    def _live(self, key: str) -> int:
        entry = self._counters.get(key)
        if entry is None:
            return 0
        count, expires_at = entry
        if expires_at <= self._clock_ms():
            del self._counters[key]
            return 0
        return count

    async def get(self, key: str) -> int:
        return self._live(key)

    async def increment(self, key: str, ttl_seconds: int) -> int:
        count = self._live(key) + 1
        self._counters[key] = (count, self._clock_ms() + ttl_seconds * 1000)
        return count

    async def delete(self, key: str) -> None:
        self._counters.pop(key, None)

    def prune(self) -> int:
        now = self._clock_ms()
        expired = [key for key, (_, expires_at) in self._counters.items() if expires_at <= now]
        for key in expired:
            del self._counters[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._counters)


class InMemoryWindowStore:
    def __init__(self, clock_ms: Callable[[], int] = _now_ms):
        self._clock_ms = clock_ms
        self._hits: dict[str, deque[int]] = {}
        self._windows: dict[str, int] = {}

    @staticmethod
    def _evict(hits: deque[int], cutoff: int) -> None:
        while hits and hits[0] < cutoff:
            hits.popleft()

    async def hit(self, key: str, now_ms: int, window_ms: int) -> int:
        hits = self._hits.setdefault(key, deque())
        self._windows[key] = window_ms
        self._evict(hits, now_ms - window_ms)
        hits.append(now_ms)
        return len(hits)

    def prune(self) -> int:
        now = self._clock_ms()
        removed = 0
        for key in list(self._hits):
            hits = self._hits[key]
            self._evict(hits, now - self._windows.get(key, 0))
            if not hits:
                del self._hits[key]
                self._windows.pop(key, None)
                removed += 1
        return removed

    def __len__(self) -> int:
        return len(self._hits)
