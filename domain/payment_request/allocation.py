"""
订单号分配与月度配额 - 必须在同一个事务（Unit of Work）内执行

OrderAllocator: 读取 (merchant_id, order_date) 当前最大订单号，返回 max+1。
并发安全依赖事务隔离级别（SERIALIZABLE）与唯一约束：冲突时由调用方整体重试，
已提交记录中不会出现重复订单号；被中止的尝试可能留下空号。

QuotaGuard: 统计商户时区自然月内已创建的数量，达到上限即拒绝。
"""
from __future__ import annotations

from datetime import datetime

from domain.common.exceptions import DailyLimitExceededException, MonthlyQuotaExceededException
from domain.common.timezones import month_bounds_utc
from .repository import PaymentRequestRepository
from .value_objects import MAX_ORDER_NUMBER


class OrderAllocator:
    """按商户/日期分配连续订单号"""

    def __init__(self, repository: PaymentRequestRepository, max_orders_per_day: int = MAX_ORDER_NUMBER):
        self.repository = repository
        self.max_orders_per_day = min(max_orders_per_day, MAX_ORDER_NUMBER)

    async def allocate(self, merchant_id: str, order_date: str) -> int:
        current_max = await self.repository.get_max_order_number(merchant_id, order_date)
        candidate = (current_max or 0) + 1
        if candidate > self.max_orders_per_day:
            raise DailyLimitExceededException(order_date, self.max_orders_per_day)
        return candidate


class QuotaGuard:
    """商户月度创建配额（0 表示不限）"""

    def __init__(self, repository: PaymentRequestRepository):
        self.repository = repository

    async def check_and_reserve(
        self,
        merchant_id: str,
        monthly_limit: int,
        now: datetime,
        timezone_name: str,
    ) -> None:
        if monthly_limit <= 0:
            return
        month_start, next_month_start = month_bounds_utc(now, timezone_name)
        count = await self.repository.count_created_between(merchant_id, month_start, next_month_start)
        if count >= monthly_limit:
            raise MonthlyQuotaExceededException(limit=monthly_limit, current=count)
