"""
支付请求仓储接口 - 定义支付请求数据访问的抽象接口

实现必须运行在调用方的事务（Unit of Work）之内。
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from .entity import PaymentRequest, PaymentRequestStatus, SettlementStatus


class PaymentRequestRepository(ABC):
    """支付请求仓储抽象接口 - 只定义能做什么，不管怎么做"""

    @abstractmethod
    async def create(self, payment_request: PaymentRequest) -> PaymentRequest:
        """
        插入支付请求

        违反 link_id 或 (merchant_id, order_date, order_number) 唯一约束时
        抛出 OrderConflictException。
        """
        pass

    @abstractmethod
    async def get_by_id(self, payment_request_id: str, *, for_update: bool = False) -> Optional[PaymentRequest]:
        """根据ID获取支付请求"""
        pass

    @abstractmethod
    async def get_by_link_id(self, link_id: str) -> Optional[PaymentRequest]:
        """根据 link_id 获取支付请求"""
        pass

    @abstractmethod
    async def get_max_order_number(self, merchant_id: str, order_date: str) -> Optional[int]:
        """商户在某订单日期下已使用的最大订单号，无记录返回 None"""
        pass

    @abstractmethod
    async def count_created_between(self, merchant_id: str, start: datetime, end: datetime) -> int:
        """统计 created_at 位于 [start, end) 的支付请求数"""
        pass

    @abstractmethod
    async def list_by_merchant(
        self,
        merchant_id: str,
        *,
        now: datetime,
        status: Optional[PaymentRequestStatus] = None,
        settlement_status: Optional[SettlementStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[PaymentRequest]:
        """获取商户的支付请求列表（status 过滤按惰性过期语义）"""
        pass

    @abstractmethod
    async def count_by_merchant(
        self,
        merchant_id: str,
        *,
        now: datetime,
        status: Optional[PaymentRequestStatus] = None,
        settlement_status: Optional[SettlementStatus] = None,
    ) -> int:
        """统计商户的支付请求数量"""
        pass

    @abstractmethod
    async def update_state(self, payment_request: PaymentRequest, *, expected_settlement: SettlementStatus) -> bool:
        """
        条件更新 status/settlement_status/updated_at

        仅当存储中的 settlement_status 仍为 expected_settlement 时生效，返回是否更新成功。
        """
        pass

    @abstractmethod
    async def mark_expired(self, payment_request_id: str, now: datetime) -> bool:
        """幂等写回过期：仅 status=PENDING 且已过期的行会被更新"""
        pass
