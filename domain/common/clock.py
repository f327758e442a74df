"""时钟抽象 - 领域层获取“当前时刻”的唯一入口"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone


class Clock(ABC):
    """时钟接口，返回带时区（UTC）的当前时刻"""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


system_clock = SystemClock()
