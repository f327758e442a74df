"""
商户实体 - 由外部商户管理维护，本服务只读
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple


@dataclass(frozen=True)
class Merchant:
    """
    商户快照

    业务规则：
    1. 被暂停（suspended_at 非空）的商户不能创建支付请求
    2. payment_link_monthly_limit 为 0 表示不限量
    3. max_buyer_orders_per_hour 取值 1-100
    """

    id: str
    slug: str
    timezone: str
    default_currency: str = "USD"
    max_buyer_orders_per_hour: int = 1
    payment_link_monthly_limit: int = 0
    default_payment_expiry_minutes: Optional[int] = None
    allowed_expiry_minutes: Optional[Tuple[int, ...]] = None  # 为空时使用系统默认集合
    allow_unsolicited_payments: bool = False
    suspended_at: Optional[datetime] = None

    @property
    def is_suspended(self) -> bool:
        return self.suspended_at is not None

    @property
    def has_monthly_limit(self) -> bool:
        return self.payment_link_monthly_limit > 0
