"""计数器存储对外暴露的接口"""
from .redis_cache import (
    RedisCounterStore,
    init_redis_counter_store,
    shutdown_redis_counter_store,
    get_redis_counter_store,
)
from .memory_counter_store import InMemoryCounterStore

__all__ = [
    "RedisCounterStore",
    "InMemoryCounterStore",
    "init_redis_counter_store",
    "shutdown_redis_counter_store",
    "get_redis_counter_store",
]
