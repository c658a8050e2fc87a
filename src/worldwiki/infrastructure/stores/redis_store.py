"""Redis-backed stores shared by every process."""

from uuid import uuid4

from redis.asyncio import Redis

from worldwiki.core.logging import get_logger

logger = get_logger(__name__)


def create_redis_client(url: str) -> Redis:
    """Create a lazily connecting client; the first command opens the connection."""
    return Redis.from_url(url, decode_responses=True, socket_timeout=2.0, socket_connect_timeout=2.0)


class RedisCounterStore:
    def __init__(self, client: Redis):
        self._client = client

    async def get(self, key: str) -> int:
        value = await self._client.get(key)
        return int(value) if value else 0

    async def increment(self, key: str, ttl_seconds: int) -> int:
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.expire(key, ttl_seconds)
            count, _ = await pipe.execute()
        return int(count)

    async def delete(self, key: str) -> None:
        await self._client.delete(key)


class RedisWindowStore:
    """Sliding window over a sorted set scored by hit time in milliseconds."""

    def __init__(self, client: Redis):
        self._client = client

    async def hit(self, key: str, now_ms: int, window_ms: int) -> int:
        async with self._client.pipeline(transaction=True) as pipe:
            # Exclusive bound keeps hits exactly window_ms old
            pipe.zremrangebyscore(key, "-inf", f"({now_ms - window_ms}")
            pipe.zadd(key, {f"{now_ms}-{uuid4().hex[:8]}": now_ms})
            pipe.zcard(key)
            pipe.expire(key, -(-window_ms // 1000) + 10)
            _, _, total_hits, _ = await pipe.execute()
        return int(total_hits)


async def ping(client: Redis) -> bool:
    try:
        return bool(await client.ping())
    except Exception as e:
        logger.warning("Redis ping failed", error=str(e))
        return False
