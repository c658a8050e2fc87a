import asyncio

from worldwiki.core.circuit_breaker import CircuitBreaker, CircuitState
from worldwiki.core.errors import StoreError
from worldwiki.core.events import FallbackKind, FallbackMonitor
from worldwiki.infrastructure.credentials import InMemoryCredentialStore
from worldwiki.infrastructure.stores import InMemoryCounterStore, InMemoryWindowStore, build_stores
from worldwiki.services.maintenance import StoreMaintenance

from .fakes import FailingRedis, make_settings


def test_counter_entries_expire():
    now = [0]
    store = InMemoryCounterStore(clock_ms=lambda: now[0])

    async def run():
        await store.increment("a", ttl_seconds=10)
        await store.increment("a", ttl_seconds=10)
        await store.increment("b", ttl_seconds=100)
        live = await store.get("a")
        now[0] = 10_000
        return live, await store.get("a")

    assert asyncio.run(run()) == (2, 0)
    now[0] = 200_000
    assert store.prune() == 1
    assert len(store) == 0


def test_window_prune_drops_idle_keys():
    now = [0]
    store = InMemoryWindowStore(clock_ms=lambda: now[0])
    asyncio.run(store.hit("a", 0, 1000))
    asyncio.run(store.hit("b", 900, 1000))
    now[0] = 1500
    assert store.prune() == 1
    assert len(store) == 1


def test_in_process_stores_without_redis():
    stores = build_stores(make_settings(), FallbackMonitor())
    assert not stores.shared
    assert stores.counters is stores.memory_counters


def test_failing_redis_falls_back_to_memory():
    monitor = FallbackMonitor()
    redis = FailingRedis()
    stores = build_stores(make_settings(), monitor, redis_client=redis)

    async def run():
        counts = [await stores.counters.increment("quota:alice:2026-10-18", 60) for _ in range(5)]
        hits = await stores.windows.hit("rl:wiki:alice", 1_000, 60_000)
        return counts, hits

    counts, hits = asyncio.run(run())
    assert stores.shared
    assert counts == [1, 2, 3, 4, 5]
    assert hits == 1
    assert monitor.count(FallbackKind.STORE_FALLBACK) == 6
    # The breaker opened after three failures and stopped calling Redis
    assert redis.calls == 3
    assert {event.source for event in monitor.recent(FallbackKind.STORE_FALLBACK)} == {"counter_store", "window_store"}
    assert stores.breaker is not None and stores.breaker.state == CircuitState.OPEN


def test_breaker_half_opens_after_recovery_timeout():
    now = [0.0]
    breaker = CircuitBreaker("redis", failure_threshold=1, recovery_timeout=5, clock=lambda: now[0])

    async def fail():
        raise ConnectionError("down")

    async def succeed():
        return "ok"

    async def run():
        try:
            await breaker.call_async(fail)
        except StoreError:
            pass
        open_state = breaker.state
        assert breaker.is_open
        now[0] = 6.0
        return open_state, await breaker.call_async(succeed)

    open_state, result = asyncio.run(run())
    assert open_state == CircuitState.OPEN
    assert result == "ok"
    assert breaker.state == CircuitState.CLOSED


def test_maintenance_prunes_stores():
    now = [0]
    monitor = FallbackMonitor()
    stores = build_stores(make_settings(), monitor)
    stores.memory_counters._clock_ms = lambda: now[0]
    credentials = InMemoryCredentialStore(ttl_seconds=1, clock=lambda: now[0] / 1000)
    maintenance = StoreMaintenance(stores, credentials, interval_seconds=60)

    async def run():
        await stores.counters.increment("quota:alice:2026-10-18", 1)
        await credentials.set("alice", "sk-x")
        now[0] = 5_000
        return await maintenance.prune_stores()

    assert asyncio.run(run()) == {"counters": 1, "windows": 0, "credentials": 1}


def test_maintenance_schedules_prune_job():
    stores = build_stores(make_settings(), FallbackMonitor())
    maintenance = StoreMaintenance(stores, interval_seconds=30)

    async def run():
        await maintenance.start()
        status = maintenance.get_job_status()
        await maintenance.shutdown()
        return status

    status = asyncio.run(run())
    assert status["scheduler_running"] is True
    assert [job["id"] for job in status["jobs"]] == ["prune_stores"]
