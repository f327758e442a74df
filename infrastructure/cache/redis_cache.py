"""Redis 计数器实现（买家限流的固定窗口计数）"""
from __future__ import annotations

import asyncio
from typing import Optional

from redis import asyncio as aioredis

from core.config import settings


class RedisCounterStore:
    """基于Redis INCR/EXPIRE 的固定窗口计数器"""

    def __init__(self, client: aioredis.Redis, namespace: str = "") -> None:
        self._client = client
        self._namespace = namespace.strip(":")

    def _format_key(self, key: str) -> str:
        if not self._namespace:
            return key
        return f"{self._namespace}:{key}"

    async def get(self, key: str) -> Optional[int]:
        value = await self._client.get(self._format_key(key))
        if value is None:
            return None
        return int(value)

    async def increment(self, key: str, ttl_seconds: int) -> int:
        formatted_key = self._format_key(key)
        value = await self._client.incr(formatted_key)
        # 仅在首次创建时设置过期，窗口不随后续请求顺延
        if value == 1:
            await self._client.expire(formatted_key, ttl_seconds)
        return value

    async def ttl(self, key: str) -> Optional[int]:
        remaining = await self._client.ttl(self._format_key(key))
        if remaining is None or remaining < 0:
            return None
        return remaining


_redis_client: Optional[aioredis.Redis] = None
_counter_store: Optional[RedisCounterStore] = None
_lock = asyncio.Lock()


async def init_redis_counter_store(namespace: Optional[str] = None) -> RedisCounterStore:
    """初始化Redis计数器实例"""
    global _redis_client, _counter_store

    if _counter_store is not None:
        return _counter_store

    async with _lock:
        if _counter_store is not None:
            return _counter_store

        if not settings.redis.url:
            raise RuntimeError("redis.url 未配置，无法初始化Redis计数器")

        client = aioredis.from_url(
            settings.redis.url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=settings.redis.max_connections,
        )

        _redis_client = client
        _counter_store = RedisCounterStore(
            client=client,
            namespace=namespace or settings.redis.namespace,
        )
        return _counter_store


def get_redis_counter_store() -> Optional[RedisCounterStore]:
    """获取全局Redis计数器实例（未初始化时返回 None）"""
    return _counter_store


async def shutdown_redis_counter_store() -> None:
    """关闭Redis连接"""
    global _redis_client, _counter_store

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        _counter_store = None
