"""
时区日期解析 - 以商户所在时区计算订单日期与自然月边界

纯函数：只依赖 (时刻, 时区名)，无副作用。
"""
from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from domain.common.clock import Clock, system_clock
from domain.common.exceptions import InvalidTimezoneException


ORDER_DATE_FORMAT = "%Y%m%d"


@lru_cache(maxsize=256)
def resolve_zone(timezone_name: str) -> ZoneInfo:
    """解析 IANA 时区名；未知时区作为配置错误抛出，不静默回退 UTC"""
    if not timezone_name:
        raise InvalidTimezoneException(str(timezone_name))
    try:
        return ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise InvalidTimezoneException(timezone_name)


def _as_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def to_local(instant: datetime, timezone_name: str) -> datetime:
    return _as_utc(instant).astimezone(resolve_zone(timezone_name))


def order_date_for(instant: datetime, timezone_name: str) -> str:
    """返回给定时刻在商户时区下的日历日期（YYYYMMDD）"""
    return to_local(instant, timezone_name).strftime(ORDER_DATE_FORMAT)


def month_bounds_utc(instant: datetime, timezone_name: str) -> Tuple[datetime, datetime]:
    """
    商户时区下当前自然月的 UTC 边界 [month_start, next_month_start)

    边界取本地 00:00 再换算为 UTC，夏令时切换由 zoneinfo 处理。
    """
    zone = resolve_zone(timezone_name)
    local = to_local(instant, timezone_name)
    month_start = datetime(local.year, local.month, 1, tzinfo=zone)
    if local.month == 12:
        next_start = datetime(local.year + 1, 1, 1, tzinfo=zone)
    else:
        next_start = datetime(local.year, local.month + 1, 1, tzinfo=zone)
    return month_start.astimezone(timezone.utc), next_start.astimezone(timezone.utc)


class TimezoneDateResolver:
    """把“现在”换算为商户时区下的订单日期"""

    def __init__(self, clock: Clock = system_clock) -> None:
        self._clock = clock

    def now(self) -> datetime:
        return self._clock.now()

    def current_order_date(self, timezone_name: str, at: Optional[datetime] = None) -> str:
        """at 缺省取时钟当前时刻；同一事务内应传入同一个 at"""
        return order_date_for(at if at is not None else self._clock.now(), timezone_name)
