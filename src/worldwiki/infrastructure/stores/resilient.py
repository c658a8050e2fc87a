"""Shared stores guarded by a circuit breaker, with in-process fallback."""

from collections.abc import Awaitable, Callable
from typing import TypeVar

from worldwiki.core.circuit_breaker import CircuitBreaker
from worldwiki.core.errors import StoreError
from worldwiki.core.events import FallbackKind, FallbackMonitor

from .base import CounterStore, WindowStore
from .memory import InMemoryCounterStore, InMemoryWindowStore

T = TypeVar("T")


class _Resilient:
    def __init__(self, name: str, breaker: CircuitBreaker, monitor: FallbackMonitor):
        self._name = name
        self._breaker = breaker
        self._monitor = monitor

    async def _call(
        self,
        operation: str,
        primary: Callable[[], Awaitable[T]],
        fallback: Callable[[], Awaitable[T]],
    ) -> T:
        try:
            return await self._breaker.call_async(primary)
        except StoreError as e:
            self._monitor.record(FallbackKind.STORE_FALLBACK, source=self._name, reason=e, operation=operation)
            return await fallback()


class ResilientCounterStore(_Resilient):
    def __init__(
        self,
        primary: CounterStore,
        fallback: InMemoryCounterStore,
        breaker: CircuitBreaker,
        monitor: FallbackMonitor,
    ):
        super().__init__("counter_store", breaker, monitor)
        self.primary = primary
        self.fallback = fallback

    async def get(self, key: str) -> int:
        return await self._call("get", lambda: self.primary.get(key), lambda: self.fallback.get(key))

    async def increment(self, key: str, ttl_seconds: int) -> int:
        return await self._call(
            "increment",
            lambda: self.primary.increment(key, ttl_seconds),
            lambda: self.fallback.increment(key, ttl_seconds),
        )

    async def delete(self, key: str) -> None:
        await self._call("delete", lambda: self.primary.delete(key), lambda: self.fallback.delete(key))


class ResilientWindowStore(_Resilient):
    def __init__(
        self,
        primary: WindowStore,
        fallback: InMemoryWindowStore,
        breaker: CircuitBreaker,
        monitor: FallbackMonitor,
    ):
        super().__init__("window_store", breaker, monitor)
        self.primary = primary
        self.fallback = fallback

    async def hit(self, key: str, now_ms: int, window_ms: int) -> int:
        return await self._call(
            "hit",
            lambda: self.primary.hit(key, now_ms, window_ms),
            lambda: self.fallback.hit(key, now_ms, window_ms),
        )
