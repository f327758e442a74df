"""进程内计数器 - 未配置 Redis 时及测试中使用"""
from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

from domain.common.clock import Clock, system_clock


class InMemoryCounterStore:
    """按时钟过期的固定窗口计数器（仅单进程有效）"""

    def __init__(self, clock: Clock = system_clock) -> None:
        self._clock = clock
        self._counters: Dict[str, Tuple[int, datetime]] = {}

    def _live(self, key: str) -> Optional[Tuple[int, datetime]]:
        entry = self._counters.get(key)
        if entry is None:
            return None
        if self._clock.now() >= entry[1]:
            del self._counters[key]
            return None
        return entry

    async def get(self, key: str) -> Optional[int]:
        entry = self._live(key)
        return entry[0] if entry else None

    async def increment(self, key: str, ttl_seconds: int) -> int:
        entry = self._live(key)
        if entry is None:
            entry = (0, self._clock.now() + timedelta(seconds=ttl_seconds))
        count = entry[0] + 1
        self._counters[key] = (count, entry[1])
        return count

    async def ttl(self, key: str) -> Optional[int]:
        entry = self._live(key)
        if entry is None:
            return None
        return max(0, math.ceil((entry[1] - self._clock.now()).total_seconds()))

    def clear(self) -> None:
        self._counters.clear()
