from .base import CounterStore, WindowStore
from .factory import StoreBundle, build_stores
from .memory import InMemoryCounterStore, InMemoryWindowStore
from .redis_store import RedisCounterStore, RedisWindowStore, create_redis_client
from .resilient import ResilientCounterStore, ResilientWindowStore
