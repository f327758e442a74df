"""
买家限流（固定窗口）

try_consume 只读，在创建事务开始前执行；record_consumption 仅在创建事务提交后调用。
两步不是原子的：同一地址同时到达的请求可能都通过检查，允许少量超出上限。
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from application.ports.counter_store import CounterStore
from core.logging_config import get_logger


logger = get_logger(__name__)

DEFAULT_WINDOW_SECONDS = 3600


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    current: int
    remaining: int
    retry_after: Optional[int] = None


class BuyerRateLimiter:
    """按 (merchant_id, source_address) 计数的买家下单限流"""

    def __init__(self, store: CounterStore, window_seconds: int = DEFAULT_WINDOW_SECONDS) -> None:
        self._store = store
        self._window_seconds = window_seconds

    @staticmethod
    def key(merchant_id: str, source_address: str) -> str:
        return f"buyer-orders:{merchant_id}:{source_address}"

    async def try_consume(self, merchant_id: str, source_address: str, limit: int) -> RateLimitDecision:
        key = self.key(merchant_id, source_address)
        current = await self._store.get(key) or 0
        if current >= limit:
            retry_after = await self._store.ttl(key)
            logger.info(
                "buyer_rate_limited",
                merchant_id=merchant_id,
                source_address=source_address,
                limit=limit,
                current=current,
                retry_after=retry_after,
            )
            return RateLimitDecision(
                allowed=False, limit=limit, current=current, remaining=0, retry_after=retry_after
            )
        return RateLimitDecision(
            allowed=True, limit=limit, current=current, remaining=max(0, limit - current - 1)
        )

    async def record_consumption(self, merchant_id: str, source_address: str) -> int:
        return await self._store.increment(self.key(merchant_id, source_address), self._window_seconds)
